# SPDX-License-Identifier: Apache-2.0

from hostpatch.errors import HostPatchError, PatchCompileError
from hostpatch.patch import (PatchDescriptor, Replacement, compile_pattern,
                             install_hooks, register_patch, uninstall_hooks)

try:
    from hostpatch._version import __version__
except ImportError:
    __version__ = "dev"

__all__ = [
    "HostPatchError",
    "PatchCompileError",
    "PatchDescriptor",
    "Replacement",
    "compile_pattern",
    "install_hooks",
    "register_patch",
    "uninstall_hooks",
    "__version__",
]
