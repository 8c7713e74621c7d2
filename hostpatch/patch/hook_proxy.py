# SPDX-License-Identifier: Apache-2.0
"""
Lazy module factory table handed to the host in place of its own.

Factories are patched on first read, not when they are registered: most
modules never load in a session, and the host reads the table for plenty
of reasons that must not trigger patching.
"""
import math
from collections.abc import Iterator, MutableMapping
from dataclasses import dataclass
from typing import Any, Callable

# Host introspection expects these to always be reported, even when unset.
UNCONFIGURABLE_KEYS = ("__dict__", "__doc__", "__module__")

Patcher = Callable[["LazyModuleTable", Any, Callable], Callable]


def is_module_id(key: Any) -> bool:
    if isinstance(key, bool):
        return False
    if isinstance(key, int):
        return True
    if not isinstance(key, str):
        return False
    try:
        return not math.isnan(float(key))
    except ValueError:
        return False


@dataclass(frozen=True)
class EntryDescriptor:
    key: Any
    value: Any
    enumerable: bool = True
    writable: bool = True
    configurable: bool = True


class LazyModuleTable(MutableMapping):
    """Module id -> factory mapping that patches each factory on first read."""

    def __init__(self, factories: dict, patcher: Patcher):
        self._factories = factories
        self._patcher = patcher
        self._processed: set = set()
        self._pinned: set = set()
        self.hidden: set = set()

    def __getitem__(self, key):
        factory = self._factories[key]
        if factory is None or not is_module_id(key) or key in self._processed:
            return factory

        self._processed.add(key)
        return self._patcher(self, key, factory)

    def __setitem__(self, key, value):
        self._factories[key] = value

    def __delitem__(self, key):
        if key in self._pinned:
            raise TypeError(f"Module table entry {key!r} was described and cannot be removed")
        del self._factories[key]
        self.hidden.discard(key)

    def __contains__(self, key):
        return key in self._factories

    def __iter__(self) -> Iterator:
        return (k for k in self._factories if k not in self.hidden)

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __repr__(self) -> str:
        return f"<LazyModuleTable {len(self._factories)} factories, {len(self._processed)} processed>"

    def is_processed(self, key) -> bool:
        return key in self._processed

    def hide(self, key) -> None:
        """Keeps the entry readable and writable, but stops enumerating it."""
        self.hidden.add(key)

    def own_keys(self) -> list:
        keys = list(self._factories)
        keys.extend(k for k in UNCONFIGURABLE_KEYS if k not in self._factories)
        return keys

    def describe(self, key):
        if key in UNCONFIGURABLE_KEYS and key not in self._factories:
            return EntryDescriptor(key, None, enumerable=False, writable=False,
                                   configurable=False)
        if key not in self._factories:
            return None

        # once observed, a descriptor must stay stable across reads
        self._pinned.add(key)
        return EntryDescriptor(key, self._factories[key], enumerable=key not in self.hidden)
