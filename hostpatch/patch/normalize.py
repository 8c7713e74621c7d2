# SPDX-License-Identifier: Apache-2.0
"""
Source text normalization applied before any rewrite rule sees a factory.

Host builds may split a logical line with backslash continuations at
arbitrary token boundaries, which breaks naive pattern matching. Which
rewrites are safe depends on the tooling that produced the host build, so
the policy is looked up by host version instead of being hard-coded.
"""
import io
import textwrap
import tokenize
from dataclasses import dataclass
from typing import Callable, Optional

from packaging.specifiers import SpecifierSet
from packaging.version import InvalidVersion, Version

from hostpatch.logger import init_logger

logger = init_logger(__name__)


def _comment_rows(source: str) -> Optional[set[int]]:
    rows = set()
    try:
        for token in tokenize.generate_tokens(io.StringIO(source).readline):
            if token.type == tokenize.COMMENT:
                rows.add(token.start[0])
    except (tokenize.TokenError, SyntaxError):
        return None
    return rows


def join_line_continuations(source: str) -> str:
    """
    Joins backslash-continued lines. A backslash that ends a comment is not
    a continuation, so those lines are kept; source that does not tokenize
    is returned unchanged.
    """
    comments = _comment_rows(source)
    if comments is None:
        logger.debug("Source does not tokenize, leaving continuations alone")
        return source
    lines = source.splitlines(True)
    for row, line in enumerate(lines, start=1):
        if line.endswith("\\\n") and row not in comments:
            lines[row - 1] = line[:-2]
    return "".join(lines)


@dataclass(frozen=True)
class NormalizationPolicy:
    name: str
    newline: str = "\n"
    join_continuations: bool = True
    # Indented sources (methods, nested functions) do not compile standalone.
    dedent: bool = True

    def __call__(self, source: str) -> str:
        source = source.replace("\r\n", "\n").replace("\r", "\n")
        if self.join_continuations:
            source = join_line_continuations(source)
        if self.dedent:
            source = textwrap.dedent(source)
        if self.newline != "\n":
            source = source.replace("\n", self.newline)
        return source


DEFAULT_POLICY = NormalizationPolicy("default")
VERBATIM_POLICY = NormalizationPolicy("verbatim", join_continuations=False)


class PolicyTable:
    """Maps host version ranges to normalization policies."""

    def __init__(self, default: Callable[[str], str] = DEFAULT_POLICY):
        self.default = default
        self._entries: list[tuple[SpecifierSet, Callable[[str], str]]] = []

    def register(self, specifier: str, policy: Callable[[str], str]) -> None:
        self._entries.append((SpecifierSet(specifier), policy))

    def select(self, host_version: Optional[str]) -> Callable[[str], str]:
        if not host_version:
            return self.default
        try:
            version = Version(host_version)
        except InvalidVersion:
            logger.warning_once(
                "Invalid host version %r, using default normalization policy",
                host_version)
            return self.default

        # latest registration wins
        for specifier, policy in reversed(self._entries):
            if specifier.contains(version, prereleases=True):
                return policy
        return self.default
