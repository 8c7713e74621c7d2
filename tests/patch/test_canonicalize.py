# SPDX-License-Identifier: Apache-2.0
import re

import pytest
import regex

from hostpatch.patch.canonicalize import (canonicalize_match, canonicalize_replacement,
                                          compile_pattern, find_matches)
from hostpatch.patch.types import Replacement


def test_identifier_shorthand_is_expanded():
    pattern = compile_pattern(r"return \i\(\)")
    assert pattern.search("return _setup2()")
    assert not pattern.search("return 2()")


def test_escaped_shorthand_is_left_alone():
    pattern = compile_pattern(r"\\i")
    assert pattern.search("a\\i")


@pytest.mark.parametrize("module", [re, regex])
def test_flags_are_normalized(module):
    pattern = canonicalize_match(module.compile("FOO", module.IGNORECASE))
    assert pattern.search("call foo")
    assert isinstance(pattern, type(regex.compile("")))


def test_stdlib_ascii_flag_maps_to_regex_ascii():
    pattern = canonicalize_match(re.compile(r"\w+", re.ASCII))
    assert pattern.flags & regex.ASCII
    assert pattern.fullmatch("é") is None


def test_strings_are_not_touched():
    assert canonicalize_match("foo(") == "foo("


def test_non_pattern_is_rejected():
    with pytest.raises(TypeError):
        canonicalize_match(42)


def test_literal_replacement_is_inserted_verbatim():
    pattern, repl, count = canonicalize_replacement(Replacement("a.b", r"x\1y"))
    assert count == 1
    assert pattern.sub(repl, "a.b axb a.b", count=count) == r"x\1y axb a.b"


def test_pattern_replacement_uses_template():
    pattern, repl, count = canonicalize_replacement(
        Replacement(re.compile(r"(\w+)\(1\)"), r"\1(2)", count=0))
    assert pattern.sub(repl, "f(1) + g(1)", count=count) == "f(2) + g(2)"


@pytest.mark.parametrize("find, expected", [
    ("foo(", True),
    ("bar(", False),
    (compile_pattern(r"\i\(2\)"), True),
    (compile_pattern(r"\i\(3\)"), False),
])
def test_find_matches(find, expected):
    assert find_matches(find, 'exports["value"] = foo(2)') is expected
