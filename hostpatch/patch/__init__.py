# SPDX-License-Identifier: Apache-2.0
"""
Runtime patch engine.

Responsibilities:
1. Install descriptors on the host's shared runtime base class that capture
   the genuine runtime's module factory table and chunks-loaded callback.
2. Hand the host a lazy module table that patches each factory the first
   time it is read.
3. Rewrite factory source with the registered patch descriptors and
   recompile it.
4. Run patched factories with fallback to the original, and notify module
   listeners and export subscriptions.
"""

from .canonicalize import compile_pattern
from .hook_registry import (HookRegistry, add_before_init_listener,
                            add_factory_listener, add_module_listener,
                            get_registry, register_patch, wait_for)
from .hooks import RuntimeMatcher, RuntimeRegistry, install_hooks, uninstall_hooks
from .normalize import NormalizationPolicy, PolicyTable
from .types import ModuleRecord, PatchDescriptor, Replacement

__all__ = [
    'HookRegistry',
    'ModuleRecord',
    'NormalizationPolicy',
    'PatchDescriptor',
    'PolicyTable',
    'Replacement',
    'RuntimeMatcher',
    'RuntimeRegistry',
    'add_before_init_listener',
    'compile_pattern',
    'add_factory_listener',
    'add_module_listener',
    'get_registry',
    'install_hooks',
    'register_patch',
    'uninstall_hooks',
    'wait_for',
]
