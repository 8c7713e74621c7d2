# SPDX-License-Identifier: Apache-2.0
"""
Registry for patch descriptors, listeners and export subscriptions.

This module holds the state the patch engine consumes:
- Patch descriptors: drained as they successfully patch a module.
- Before-init listeners: run once with the live runtime, before host startup resumes.
- Factory listeners: run on every raw factory before it is patched.
- Module listeners: run on the exports of every successfully executed module.
- Export subscriptions: one-shot filter/callback pairs.
"""
from collections.abc import Iterator
from typing import Any, Callable, Optional

from hostpatch.logger import init_logger
from hostpatch.patch.exports import normalize_exports
from hostpatch.patch.normalize import PolicyTable
from hostpatch.patch.types import PatchDescriptor

logger = init_logger(__name__)

ExportFilter = Callable[[Any], bool]
ExportCallback = Callable[[Any, Any], None]

_NO_MATCH = object()


class HookRegistry:

    def __init__(self):
        self.patches: list[PatchDescriptor] = []
        self.before_init_listeners: list[Callable[[Any], None]] = []
        self.factory_listeners: list[Callable[[Callable], None]] = []
        self.module_listeners: list[ExportCallback] = []
        self.subscriptions: dict[ExportFilter, ExportCallback] = {}
        self.policies = PolicyTable()

        # live require handle, set once the host is about to initialize
        self.require: Optional[Any] = None
        # intercepted module factory table
        self.modules = None
        self.uninitialized_logged = False

    # registration
    def register_patch(self, patch: PatchDescriptor) -> None:
        self.patches.append(patch)
        logger.debug("Registered patch by %s: %s", patch.owner, patch.find)

    def add_before_init_listener(self, listener: Callable[[Any], None]) -> None:
        self.before_init_listeners.append(listener)

    def add_factory_listener(self, listener: Callable[[Callable], None]) -> None:
        self.factory_listeners.append(listener)

    def add_module_listener(self, listener: ExportCallback) -> None:
        self.module_listeners.append(listener)

    def wait_for(self, export_filter: ExportFilter, callback: ExportCallback) -> None:
        """
        Calls ``callback(exports, module_id)`` once for the first module
        whose exports (or default export) satisfy ``export_filter``.
        Modules that already executed are searched first.
        """
        for module_id, value in self._search(export_filter):
            try:
                callback(value, module_id)
            except Exception:
                logger.exception(
                    "Error while firing callback for export subscription %r", export_filter)
            return
        self.subscriptions[export_filter] = callback

    # runtime
    def init_runtime(self, require: Any) -> bool:
        if self.require is not None:
            return False
        self.require = require
        return True

    def run_before_init_listeners(self, require: Any) -> None:
        for listener in list(self.before_init_listeners):
            try:
                listener(require)
            except Exception:
                logger.exception("Error in before-init listener %r", listener)

    def notify_module_listeners(self, exports: Any, module_id: Any) -> None:
        for listener in list(self.module_listeners):
            try:
                listener(exports, module_id)
            except Exception:
                logger.exception("Error in module listener %r", listener)

    def fire_subscriptions(self, exports: Any, module_id: Any) -> None:
        normalized = normalize_exports(exports)
        for export_filter, callback in list(self.subscriptions.items()):
            if export_filter not in self.subscriptions:
                continue
            try:
                for candidate in normalized.candidates():
                    if export_filter(candidate):
                        del self.subscriptions[export_filter]
                        callback(candidate, module_id)
                        break
            except Exception:
                logger.exception(
                    "Error while firing callback for export subscription %r", export_filter)

    # lookup
    def _search(self, export_filter: ExportFilter) -> Iterator[tuple[Any, Any]]:
        cache = getattr(self.require, "cache", None)
        if not cache:
            return
        hidden = self.modules.hidden if self.modules is not None else ()
        for module_id, module in list(cache.items()):
            if module_id in hidden:
                continue
            exports = getattr(module, "exports", None)
            if exports is None:
                continue
            try:
                matched = next((candidate
                                for candidate in normalize_exports(exports).candidates()
                                if export_filter(candidate)), _NO_MATCH)
            except Exception:
                logger.exception("Error while testing module %s against export filter %r",
                                 module_id, export_filter)
                continue
            if matched is not _NO_MATCH:
                yield module_id, matched

    def find(self, export_filter: ExportFilter) -> Any:
        """First executed module export matching ``export_filter``, or None."""
        for _, value in self._search(export_filter):
            return value
        return None


_REGISTRY = HookRegistry()


def get_registry() -> HookRegistry:
    return _REGISTRY


def register_patch(patch: PatchDescriptor) -> None:
    _REGISTRY.register_patch(patch)


def add_before_init_listener(listener: Callable[[Any], None]) -> None:
    _REGISTRY.add_before_init_listener(listener)


def add_factory_listener(listener: Callable[[Callable], None]) -> None:
    _REGISTRY.add_factory_listener(listener)


def add_module_listener(listener: ExportCallback) -> None:
    _REGISTRY.add_module_listener(listener)


def wait_for(export_filter: ExportFilter, callback: ExportCallback) -> None:
    _REGISTRY.wait_for(export_filter, callback)
