# SPDX-License-Identifier: Apache-2.0
"""
The single place where rewritten source text becomes executable again.

The definition is executed against the original factory's globals with a
private locals namespace, so the new function resolves names exactly like
the one it replaces without leaking into the host module. The text is
registered in :mod:`linecache` so :func:`inspect.getsource` and tracebacks
keep working on patched factories.
"""
import inspect
import itertools
import linecache
import types
from collections.abc import Iterable
from typing import Any, Optional

from hostpatch.errors import PatchCompileError
from hostpatch.patch.types import Factory

_COMPILE_COUNTER = itertools.count()


def serialize_factory(factory: Factory) -> str:
    """Raises OSError or TypeError when no source text is available."""
    return inspect.getsource(factory)


def _register_source(filename: str, text: str) -> None:
    # mtime None keeps linecache.checkcache from evicting the entry
    linecache.cache[filename] = (len(text), None, text.splitlines(True), filename)


def compile_factory(source: str,
                    module_id: Any,
                    patched_by: Iterable[str],
                    namespace: Optional[dict] = None) -> Factory:
    patched_by = tuple(patched_by)
    filename = f"<patched module {module_id} #{next(_COMPILE_COUNTER)}>"
    text = f"# Module {module_id} - Patched by {', '.join(patched_by)}\n{source}\n"

    try:
        code = compile(text, filename, "exec")
    except SyntaxError as e:
        raise PatchCompileError(module_id, f"rewritten source does not compile: {e}") from e

    _register_source(filename, text)

    if namespace is None:
        namespace = {"__builtins__": __builtins__}
    defined: dict[str, Any] = {}
    exec(code, namespace, defined)

    factories = [v for v in defined.values() if isinstance(v, types.FunctionType)]
    if not factories:
        raise PatchCompileError(module_id, "rewritten source defines no function")

    factory = factories[0]
    factory.__patched_by__ = patched_by
    return factory
