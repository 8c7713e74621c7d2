# SPDX-License-Identifier: Apache-2.0
"""
Interception points on the host's shared runtime base class.

Two data descriptors are installed on the base class every host runtime
derives from:
- the module factory table attribute, replaced by a LazyModuleTable;
- the "all chunks loaded" callback attribute, wrapped so the live runtime
  is captured and before-init listeners run right before the host starts.

Unrelated runtimes may share the base class, so each descriptor only
commits to a runtime whose assignment comes from a known origin and whose
chunk loader looks like the genuine one. After committing it removes
itself from the class.
"""
import functools
import inspect
import traceback
from collections.abc import MutableMapping, Sequence
from typing import Any, Callable, Optional

from hostpatch.logger import init_logger
from hostpatch.patch.apply import patch_factory
from hostpatch.patch.canonicalize import compile_pattern
from hostpatch.patch.hook_proxy import LazyModuleTable
from hostpatch.patch.hook_registry import HookRegistry, get_registry

logger = init_logger(__name__)

INIT_CALLBACK_PATTERN = compile_pattern(r"""(?:return|lambda[^:]*:)\s*\i\(["'].+?["']\)""")

_MISSING = object()
_RUNTIME_REGISTRY: Optional["RuntimeRegistry"] = None


def _source_text(obj: Any) -> str:
    try:
        return inspect.getsource(obj)
    except (OSError, TypeError):
        return repr(obj)


class RuntimeMatcher:
    """Tells the genuine host runtime apart from look-alikes."""

    def __init__(self,
                 origin_markers: Sequence[str],
                 loader_attr: str = "load_chunk",
                 loader_marker: str = "gather("):
        self.origin_markers = tuple(origin_markers)
        self.loader_attr = loader_attr
        self.loader_marker = loader_marker

    def origin_matches(self) -> bool:
        stack = "".join(traceback.format_stack())
        return any(marker in stack for marker in self.origin_markers)

    def loader_matches(self, runtime: Any) -> bool:
        loader = getattr(runtime, self.loader_attr, None)
        if loader is None:
            return False
        return self.loader_marker in _source_text(loader)

    def matches(self, runtime: Any) -> bool:
        return self.origin_matches() and self.loader_matches(runtime)


class _InterceptedAttribute:

    def __init__(self, owner: type, name: str, matcher: RuntimeMatcher,
                 on_commit: Callable[[Any, Any], Any]):
        self.owner = owner
        self.name = name
        self.matcher = matcher
        self.on_commit = on_commit
        self.committed = False
        self.previous = owner.__dict__.get(name, _MISSING)

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        try:
            return instance.__dict__[self.name]
        except KeyError:
            if self.previous is not _MISSING:
                return self.previous
            raise AttributeError(self.name) from None

    def __set__(self, instance, value):
        if not self.committed and self.matcher.matches(instance):
            self.committed = True
            self.remove()
            value = self.on_commit(instance, value)
        instance.__dict__[self.name] = value

    def __delete__(self, instance):
        try:
            del instance.__dict__[self.name]
        except KeyError:
            raise AttributeError(self.name) from None

    def install(self) -> None:
        setattr(self.owner, self.name, self)

    def remove(self) -> None:
        if self.owner.__dict__.get(self.name) is not self:
            return
        if self.previous is _MISSING:
            delattr(self.owner, self.name)
        else:
            setattr(self.owner, self.name, self.previous)


class RuntimeRegistry:

    def __init__(self,
                 base_cls: type,
                 matcher: RuntimeMatcher,
                 registry: Optional[HookRegistry] = None,
                 init_callback_pattern=INIT_CALLBACK_PATTERN):
        self.base_cls = base_cls
        self.matcher = matcher
        self.registry = registry if registry is not None else get_registry()
        self.init_callback_pattern = init_callback_pattern
        self.hooks: list[_InterceptedAttribute] = []

    def _install(self, name: str, on_commit: Callable[[Any, Any], Any]) -> None:
        hook = _InterceptedAttribute(self.base_cls, name, self.matcher, on_commit)
        hook.install()
        self.hooks.append(hook)

    def register_factory_table_hook(self, attr: str = "modules") -> None:
        self._install(attr, self._intercept_factory_table)

    def register_chunk_loaded_hook(self, attr: str = "on_chunks_loaded") -> None:
        self._install(attr, functools.partial(self._intercept_chunks_loaded, attr))

    def uninstall(self) -> None:
        for hook in self.hooks:
            hook.remove()
        self.hooks.clear()

    def _intercept_factory_table(self, runtime: Any, modules: Any) -> LazyModuleTable:
        logger.info("Found module factory table on %s", type(runtime).__name__)

        factories = dict(modules)
        # pre-populated factories must be reached through the lazy table too
        if isinstance(modules, MutableMapping):
            modules.clear()

        table = LazyModuleTable(factories, functools.partial(patch_factory, self.registry))
        self.registry.modules = table
        return table

    def _intercept_chunks_loaded(self, attr: str, runtime: Any,
                                 on_chunks_loaded: Callable) -> Callable:
        logger.info("Found chunks-loaded callback on %s", type(runtime).__name__)
        original = on_chunks_loaded

        @functools.wraps(original)
        def wrapper(*args, **kwargs):
            args = list(args)
            callback = args[2] if len(args) > 2 else kwargs.get("callback")

            if callback is not None and self.init_callback_pattern.search(
                    _source_text(callback)):
                setattr(runtime, attr, original)
                callback = self._wrap_init_callback(runtime, callback)
                if len(args) > 2:
                    args[2] = callback
                else:
                    kwargs["callback"] = callback

            return original(*args, **kwargs)

        return wrapper

    def _wrap_init_callback(self, runtime: Any, callback: Callable) -> Callable:
        registry = self.registry

        @functools.wraps(callback)
        def init_callback(*args, **kwargs):
            logger.info("Patched initialize app callback invoked, initializing "
                        "runtime require and running before-init listeners")
            registry.init_runtime(runtime)
            registry.run_before_init_listeners(runtime)
            return callback(*args, **kwargs)

        return init_callback


def install_hooks(base_cls: type,
                  origin_markers: Sequence[str],
                  *,
                  registry: Optional[HookRegistry] = None,
                  loader_attr: str = "load_chunk",
                  loader_marker: str = "gather(",
                  table_attr: str = "modules",
                  chunk_loaded_attr: str = "on_chunks_loaded") -> RuntimeRegistry:
    """Install the runtime hooks on ``base_cls``, replacing any previous install."""
    global _RUNTIME_REGISTRY

    uninstall_hooks()

    matcher = RuntimeMatcher(origin_markers, loader_attr, loader_marker)
    runtime_registry = RuntimeRegistry(base_cls, matcher, registry)
    runtime_registry.register_factory_table_hook(table_attr)
    runtime_registry.register_chunk_loaded_hook(chunk_loaded_attr)
    _RUNTIME_REGISTRY = runtime_registry

    logger.info("Runtime hooks installed on %s", base_cls.__name__)
    return runtime_registry


def uninstall_hooks() -> None:
    global _RUNTIME_REGISTRY

    if _RUNTIME_REGISTRY is not None:
        _RUNTIME_REGISTRY.uninstall()
        _RUNTIME_REGISTRY = None
        logger.info("Runtime hooks uninstalled")
