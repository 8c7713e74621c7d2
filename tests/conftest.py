# SPDX-License-Identifier: Apache-2.0
import os

# leave log records propagating to the root logger so caplog sees them
os.environ.setdefault("HOSTPATCH_CONFIGURE_LOGGING", "0")

import pytest  # noqa: E402

from hostpatch.patch.hook_registry import HookRegistry  # noqa: E402
from hostpatch.patch.hooks import uninstall_hooks  # noqa: E402


@pytest.fixture
def registry() -> HookRegistry:
    return HookRegistry()


@pytest.fixture(autouse=True)
def _clean_hooks(monkeypatch):
    monkeypatch.delenv("HOSTPATCH_DEV", raising=False)
    monkeypatch.delenv("HOSTPATCH_HOST_VERSION", raising=False)
    yield
    uninstall_hooks()
