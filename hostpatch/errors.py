# SPDX-License-Identifier: Apache-2.0


class HostPatchError(Exception):
    """Base class for errors raised by hostpatch."""


class PatchCompileError(HostPatchError):
    """Rewritten source text could not be turned back into a factory."""

    def __init__(self, module_id, message: str):
        super().__init__(f"Module {module_id}: {message}")
        self.module_id = module_id
