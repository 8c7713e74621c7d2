# SPDX-License-Identifier: Apache-2.0
"""
Data model shared by the patch engine.

- Replacement: one find-and-replace rule, immutable once constructed.
- PatchDescriptor: an owner's declaration of which module to target and
  the ordered replacements to apply to it.
- ModuleRecord: the per-module outcome of patching (original factory,
  current factory, source text and provenance).
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

# compiled pattern from either the stdlib re module or regex
Pattern = Any
Matcher = Union[str, Pattern]
ReplaceFn = Callable[[Any], str]
Predicate = Callable[[], bool]
Factory = Callable[[Any, Any, Any], Any]


@dataclass(frozen=True)
class Replacement:
    match: Matcher
    replace: Union[str, ReplaceFn]
    predicate: Optional[Predicate] = None
    # Occurrences to rewrite; 0 rewrites all of them.
    count: int = 1


@dataclass(eq=False)
class PatchDescriptor:
    owner: str
    find: Matcher
    replacement: list[Replacement]
    predicate: Optional[Predicate] = None
    # All replacements apply, or none do.
    group: bool = False
    # Stay registered after patching a module so later modules can match too.
    apply_to_all: bool = False
    no_warn: bool = False

    def __post_init__(self):
        if isinstance(self.replacement, Replacement):
            self.replacement = [self.replacement]
        else:
            self.replacement = list(self.replacement)


@dataclass(eq=False)
class ModuleRecord:
    id: Any
    original: Factory
    current: Factory
    source: Optional[str] = None
    patched_by: list[str] = field(default_factory=list)

    @property
    def is_patched(self) -> bool:
        return self.current is not self.original
