# SPDX-License-Identifier: Apache-2.0
import pytest

from hostpatch.patch.hook_proxy import (UNCONFIGURABLE_KEYS, LazyModuleTable,
                                        is_module_id)


def stock(module, exports, require):
    pass


def other(module, exports, require):
    pass


class FakePatcher:

    def __init__(self):
        self.calls = []

    def __call__(self, table, module_id, factory):
        self.calls.append(module_id)
        wrapped = ("patched", factory)
        table[module_id] = wrapped
        return wrapped


@pytest.fixture
def patcher():
    return FakePatcher()


@pytest.fixture
def table(patcher):
    return LazyModuleTable({"1": stock, "2": other, "name": "modules"}, patcher)


@pytest.mark.parametrize("key, expected", [
    ("1", True),
    ("0.5", True),
    (7, True),
    ("nan", False),
    ("name", False),
    (True, False),
    (None, False),
])
def test_is_module_id(key, expected):
    assert is_module_id(key) is expected


def test_factory_is_patched_once_on_first_read(table, patcher):
    first = table["1"]
    second = table["1"]

    assert first == ("patched", stock)
    assert second is first
    assert patcher.calls == ["1"]
    assert table.is_processed("1")
    assert not table.is_processed("2")


def test_non_module_keys_pass_through(table, patcher):
    assert table["name"] == "modules"
    with pytest.raises(KeyError):
        table["404"]
    assert patcher.calls == []


def test_membership_and_enumeration_do_not_patch(table, patcher):
    assert "1" in table
    assert sorted(table) == ["1", "2", "name"]
    assert len(table) == 3
    assert patcher.calls == []


def test_writes_pass_through_and_stay_lazy(table, patcher):
    table["3"] = stock

    assert patcher.calls == []
    assert table["3"] == ("patched", stock)
    assert patcher.calls == ["3"]


def test_reserved_keys_are_always_reported(table):
    keys = table.own_keys()

    for key in UNCONFIGURABLE_KEYS:
        assert key in keys
        descriptor = table.describe(key)
        assert descriptor is not None and not descriptor.configurable


def test_described_entries_stay_defined(table):
    descriptor = table.describe("2")

    assert descriptor.value is other
    with pytest.raises(TypeError):
        del table["2"]
    del table["1"]
    assert "1" not in table
    assert table.describe("missing") is None


def test_hidden_entries_are_not_enumerated(table):
    table.hide("2")

    assert sorted(table) == ["1", "name"]
    assert table["2"] == ("patched", other)
    assert table.describe("2").enumerable is False
