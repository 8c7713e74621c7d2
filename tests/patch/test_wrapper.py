# SPDX-License-Identifier: Apache-2.0
import logging

import pytest

from hostpatch.patch.apply import patch_factory
from hostpatch.patch.hook_proxy import LazyModuleTable
from hostpatch.patch.types import PatchDescriptor, Replacement
from tests.utils import HostModule, make_factory

STOCK = """
def factory(module, exports, require):
    exports["value"] = compute(2)
"""


@pytest.fixture
def table(registry):
    factories = {
        "1": make_factory(STOCK, {"compute": lambda x: x + 1}),
        "2": make_factory(STOCK, {"compute": lambda x: x * 2}),
    }
    table = LazyModuleTable(factories, lambda t, k, f: patch_factory(registry, t, k, f))
    registry.modules = table
    registry.require = object()
    return table


def run(table, module_id):
    module = HostModule(module_id)
    table[module_id](module, module.exports, None)
    return module.exports


def test_broken_patch_falls_back_to_original(registry, table, caplog):
    registry.register_patch(PatchDescriptor(
        "Breaker", "compute(", [Replacement("compute(2)", "undefined_name(2)")]))

    with caplog.at_level(logging.ERROR):
        exports = run(table, "1")

    assert exports == {"value": 3}
    assert "Error in patched module 1" in caplog.text


def test_original_errors_propagate(registry):
    failing = make_factory("""
    def factory(module, exports, require):
        raise ValueError("host bug")
    """)
    table = LazyModuleTable({"1": failing},
                            lambda t, k, f: patch_factory(registry, t, k, f))
    registry.require = object()

    with pytest.raises(ValueError, match="host bug"):
        run(table, "1")


def test_global_exports_are_hidden_and_not_scanned(registry):
    exports_globals = make_factory("""
    def factory(module, exports, require):
        import builtins
        module.exports = builtins
    """)
    table = LazyModuleTable({"9": exports_globals},
                            lambda t, k, f: patch_factory(registry, t, k, f))
    registry.require = object()
    seen = []
    registry.add_module_listener(lambda exports, module_id: seen.append(module_id))
    registry.wait_for(lambda exports: True, lambda exports, module_id: seen.append(module_id))

    run(table, "9")

    assert seen == []
    assert "9" in table and list(table) == []


def test_module_listeners_run_in_order_despite_errors(registry, table, caplog):
    seen = []

    def broken(exports, module_id):
        raise RuntimeError("listener failure")

    registry.add_module_listener(broken)
    registry.add_module_listener(lambda exports, module_id: seen.append((module_id, exports)))

    with caplog.at_level(logging.ERROR):
        run(table, "1")

    assert seen == [("1", {"value": 3})]
    assert "Error in module listener" in caplog.text


def test_subscription_fires_at_most_once(registry, table):
    fired = []
    registry.wait_for(lambda exports: "value" in exports,
                      lambda exports, module_id: fired.append(module_id))

    run(table, "1")
    run(table, "2")

    assert fired == ["1"]
    assert registry.subscriptions == {}


def test_subscription_matches_default_export(registry):
    class Widget:
        pass

    factory = make_factory("""
    def factory(module, exports, require):
        exports["default"] = Widget
    """, {"Widget": Widget})
    table = LazyModuleTable({"5": factory},
                            lambda t, k, f: patch_factory(registry, t, k, f))
    registry.require = object()
    fired = []
    registry.wait_for(lambda exports: exports is Widget,
                      lambda exports, module_id: fired.append((exports, module_id)))

    run(table, "5")

    assert fired == [(Widget, "5")]


def test_failing_subscription_does_not_block_others(registry, table, caplog):
    fired = []

    def broken(exports, module_id):
        raise RuntimeError("subscription failure")

    registry.wait_for(lambda exports: exports.get("value") == 3, broken)
    registry.wait_for(lambda exports: "value" in exports,
                      lambda exports, module_id: fired.append(module_id))

    with caplog.at_level(logging.ERROR):
        run(table, "1")

    assert fired == ["1"]
    assert "Error while firing callback for export subscription" in caplog.text
    assert registry.subscriptions == {}


def test_unpatched_factories_run_before_runtime_init_in_dev(registry, table, monkeypatch, caplog):
    monkeypatch.setenv("HOSTPATCH_DEV", "1")
    registry.require = None
    registry.register_patch(PatchDescriptor(
        "Doubler", "compute(", [Replacement("compute(2)", "compute(20)")]))
    seen = []
    registry.add_module_listener(lambda exports, module_id: seen.append(module_id))

    with caplog.at_level(logging.ERROR):
        assert run(table, "1") == {"value": 3}
        assert run(table, "2") == {"value": 4}

    assert caplog.text.count("Runtime require was not initialized") == 1
    assert seen == []


def test_live_entry_is_a_wrapper_around_the_patched_factory(registry, table):
    registry.register_patch(PatchDescriptor(
        "Doubler", "compute(", [Replacement("compute(2)", "compute(20)")]))

    wrapper = table["1"]

    assert wrapper.__module_record__.is_patched
    assert wrapper.__wrapped__ is wrapper.__module_record__.current
    assert run(table, "1") == {"value": 21}
    assert registry.patches == []


def test_side_effect_only_module_still_notifies(registry):
    factory = make_factory("""
    def factory(module, exports, require):
        pass
    """)
    table = LazyModuleTable({"7": factory}, lambda t, k, f: patch_factory(registry, t, k, f))
    registry.modules = table
    registry.require = object()
    seen, fired = [], []
    registry.add_module_listener(lambda exports, module_id: seen.append((module_id, exports)))
    registry.wait_for(lambda exports: exports == {},
                      lambda exports, module_id: fired.append(module_id))

    assert run(table, "7") == {}
    assert seen == [("7", {})]
    assert fired == ["7"]
