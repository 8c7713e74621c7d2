# SPDX-License-Identifier: Apache-2.0
"""
The callable the host actually runs for a module.

It runs the patched factory, falls back to the original one when a patch
breaks at run time, and feeds the resulting exports to module listeners and
export subscriptions.
"""
import functools
from typing import TYPE_CHECKING

import hostpatch.envs as envs
from hostpatch.logger import init_logger
from hostpatch.patch.exports import ExportKind, normalize_exports
from hostpatch.patch.types import Factory, ModuleRecord

if TYPE_CHECKING:
    from hostpatch.patch.hook_proxy import LazyModuleTable
    from hostpatch.patch.hook_registry import HookRegistry

logger = init_logger(__name__)


def wrap_factory(record: ModuleRecord,
                 registry: "HookRegistry",
                 table: "LazyModuleTable") -> Factory:
    module_id = record.id
    original = record.original
    mod = record.current

    @functools.wraps(mod)
    def factory(module, exports, require):
        if registry.require is None and envs.HOSTPATCH_DEV:
            if not registry.uninitialized_logged:
                registry.uninitialized_logged = True
                logger.error("Runtime require was not initialized, "
                             "running modules without patches instead.")
            return original(module, exports, require)

        try:
            mod(module, exports, require)
        except Exception:
            # genuine host errors propagate untouched
            if mod is original:
                raise
            logger.exception("Error in patched module %s, falling back to the original",
                             module_id)
            return original(module, exports, require)

        exports = getattr(module, "exports", None)
        if exports is None:
            return

        normalized = normalize_exports(exports)
        # several modules export the global object; never rescan them
        if normalized.kind is ExportKind.GLOBAL:
            table.hide(module_id)
            return

        registry.notify_module_listeners(exports, module_id)
        registry.fire_subscriptions(exports, module_id)

    factory.__module_record__ = record
    return factory
