# SPDX-License-Identifier: Apache-2.0

from hostpatch.logging_utils.formatter import NewLineFormatter

__all__ = [
    "NewLineFormatter",
]
