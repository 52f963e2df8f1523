"""
Kernel test configuration.

Shared fixtures: a bare runtime and one with surface "s1" already created.
Environment-driven settings are cleared so the default trust policy is "allow".
"""

import pytest

from uiprotocol.kernel.commands import make_surface_create
from uiprotocol.kernel.runtime import Runtime


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("UIPROTOCOL_DEFAULT_POLICY", "UIPROTOCOL_REQUIRE_CONSENT", "UIPROTOCOL_A2UI_VERSION"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def runtime():
    return Runtime()


@pytest.fixture
def surface_runtime(runtime):
    result = runtime.apply_single(make_surface_create("s1"))
    assert result.ok
    return runtime
