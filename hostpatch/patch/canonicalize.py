# SPDX-License-Identifier: Apache-2.0
"""
Canonicalization of rule patterns before they touch module source.

Rule authors may write patterns with the stdlib ``re`` module or with
``regex``; both are recompiled with ``regex`` so flags mean the same thing
everywhere. Patterns built with :func:`compile_pattern` may use ``\\i`` as
shorthand for "any identifier", since generated host code rarely keeps
stable names.
"""
import re
from functools import cache
from typing import Callable, Union

import regex

from hostpatch.patch.types import Matcher, Replacement

IDENTIFIER = r"(?:[A-Za-z_][\w]*)"

_IDENTIFIER_SHORTHAND = regex.compile(r"(?<!\\)\\i")
_REGEX_PATTERN = type(regex.compile(""))
_FLAG_NAMES = ("IGNORECASE", "MULTILINE", "DOTALL", "VERBOSE", "ASCII")


def is_pattern(match) -> bool:
    return isinstance(match, (re.Pattern, _REGEX_PATTERN))


def _normalize_flags(pattern) -> int:
    # stdlib and regex flag values differ (ASCII), so translate by name
    flags = 0
    source = re if isinstance(pattern, re.Pattern) else regex
    for name in _FLAG_NAMES:
        if pattern.flags & getattr(source, name):
            flags |= getattr(regex, name)
    return flags


def compile_pattern(source: str, flags: int = 0) -> "regex.Pattern":
    """Compile ``source`` with the ``regex`` library, expanding ``\\i`` first."""
    return regex.compile(_IDENTIFIER_SHORTHAND.sub(lambda _: IDENTIFIER, source), flags)


@cache
def canonicalize_match(match: Matcher) -> Matcher:
    if isinstance(match, str):
        return match
    if not is_pattern(match):
        raise TypeError(f"Expected str or compiled pattern, got {type(match).__name__}")
    return regex.compile(match.pattern, _normalize_flags(match))


@cache
def canonicalize_replacement(
        replacement: Replacement) -> tuple["regex.Pattern", Union[str, Callable], int]:
    """
    Returns ``(pattern, repl, count)`` ready for ``pattern.sub``.

    A literal ``match`` is escaped and its string ``replace`` is inserted
    verbatim; a pattern ``match`` treats ``replace`` as a template
    (``\\1``, ``\\g<name>``).
    """
    match = replacement.match
    replace = replacement.replace

    if isinstance(match, str):
        pattern = regex.compile(regex.escape(match))
        if isinstance(replace, str):
            literal = replace
            replace = lambda _: literal  # noqa: E731
    else:
        pattern = canonicalize_match(match)

    return pattern, replace, replacement.count


def find_matches(find: Matcher, source: str) -> bool:
    find = canonicalize_match(find)
    if isinstance(find, str):
        return find in source
    return find.search(source) is not None
