"""
config.py – Centralised configuration loaded from environment variables.

Command-line arguments override these values through
``Settings.apply_overrides`` before ``Settings.validate`` runs.
"""

import os
import re

from dotenv import load_dotenv

from errors import ConfigurationError

load_dotenv()


class Settings:
    """Validated application settings; CLI values may override them once."""

    # ── Azure DevOps ────────────────────────────────────────
    ADO_ORG_URL: str = os.getenv("ADO_ORG_URL", "")
    ADO_PROJECT: str = os.getenv("ADO_PROJECT", "")
    ADO_PAT: str = os.getenv("ADO_PAT", "")
    ADO_TEST_PLAN_ID: int = int(os.getenv("ADO_TEST_PLAN_ID", "0"))
    ADO_SUITE_REGEX: str = os.getenv("ADO_SUITE_REGEX", ".*")

    # ── Tags ────────────────────────────────────────────────
    LINK_TAG_PREFIX: str = os.getenv("LINK_TAG_PREFIX", "@TestCaseId:")
    OPT_OUT_TAG: str = os.getenv("OPT_OUT_TAG", "@NoSync")

    # ── Behaviour ───────────────────────────────────────────
    SYNC_WORKERS: int = int(os.getenv("SYNC_WORKERS", "1"))
    HTTP_TIMEOUT: float = float(os.getenv("HTTP_TIMEOUT", "30"))

    @classmethod
    def apply_overrides(cls, **values) -> None:
        """Replace settings with non-empty values given on the command line."""
        for name, value in values.items():
            if value in (None, ""):
                continue
            if not hasattr(cls, name):
                raise ConfigurationError(f"Unknown setting '{name}'")
            setattr(cls, name, value)

    @classmethod
    def validate(cls) -> None:
        """Halt early if required values are missing."""
        missing: list[str] = []
        if not cls.ADO_ORG_URL:
            missing.append("ADO_ORG_URL")
        if not cls.ADO_PROJECT:
            missing.append("ADO_PROJECT")
        if not cls.ADO_PAT:
            missing.append("ADO_PAT")
        if not cls.ADO_TEST_PLAN_ID:
            missing.append("ADO_TEST_PLAN_ID")

        if missing:
            raise ConfigurationError(
                f"Missing required settings: {', '.join(missing)}\n"
                "  → Pass them as arguments or set them in .env."
            )

        try:
            re.compile(cls.ADO_SUITE_REGEX)
        except re.error as exc:
            raise ConfigurationError(
                f"ADO_SUITE_REGEX is not a valid pattern: {exc}"
            ) from exc

        if cls.SYNC_WORKERS < 1:
            raise ConfigurationError(
                f"SYNC_WORKERS must be at least 1, got {cls.SYNC_WORKERS}"
            )
