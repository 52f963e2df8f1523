"""
Adapter test configuration.

Environment-driven settings are cleared so every test sees the defaults
(allow-all trust policy, A2UI version v0.9).
"""

import pytest


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("UIPROTOCOL_DEFAULT_POLICY", "UIPROTOCOL_REQUIRE_CONSENT", "UIPROTOCOL_A2UI_VERSION"):
        monkeypatch.delenv(name, raising=False)
