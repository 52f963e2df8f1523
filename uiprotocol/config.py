"""
uiprotocol configuration — all environment variables in one place.

Read from environment at access time so a host process (or a test) can
change them without re-importing the package.
"""

from __future__ import annotations

import os


class Settings:
    """Runtime settings from environment variables."""

    @property
    def DEFAULT_POLICY(self) -> str:
        return os.environ.get("UIPROTOCOL_DEFAULT_POLICY", "allow").strip().lower()

    @property
    def REQUIRE_CONSENT(self) -> list[str]:
        raw = os.environ.get("UIPROTOCOL_REQUIRE_CONSENT", "")
        return [item.strip() for item in raw.split(",") if item.strip()]

    @property
    def A2UI_VERSION(self) -> str:
        return os.environ.get("UIPROTOCOL_A2UI_VERSION", "v0.9")


# Singleton instance
settings = Settings()
