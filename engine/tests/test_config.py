"""
Unit tests for EngineSettings configuration.

Tests verify:
- All settings have working defaults.
- Environment variables override defaults.
- Validators reject malformed values.

CHANGELOG:
- 2026-10-15: Report settings tests (STORY-009)
- 2026-10-12: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

from pathlib import Path

import pytest
from engine.src.config import EngineSettings
from pydantic import ValidationError


class TestDefaults:
    """Every setting is optional."""

    def test_defaults(self) -> None:
        settings = EngineSettings()
        assert settings.x_suffix_convention == "multiplier"
        assert settings.vacuum_marker == "Vacuo"
        assert settings.known_statuses == frozenset({"online", "offline", "waiting", "bad"})
        assert settings.report_slot_minutes == 30
        assert settings.report_placeholder == "SEM DADOS"
        assert settings.log_level == "INFO"
        assert settings.health_path == ""


class TestEnvOverrides:
    """Values are read from the environment."""

    def test_env_vars(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("X_SUFFIX_CONVENTION", "adjustment")
        monkeypatch.setenv("VACUUM_MARKER", "Vácuo")
        monkeypatch.setenv("STATUS_VALUES", "up, down ,")
        monkeypatch.setenv("REPORT_SLOT_MINUTES", "15")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        settings = EngineSettings()
        assert settings.x_suffix_convention == "adjustment"
        assert settings.vacuum_marker == "Vácuo"
        assert settings.known_statuses == frozenset({"up", "down"})
        assert settings.report_slot_minutes == 15
        assert settings.log_level == "DEBUG"

    def test_env_file(self) -> None:
        Path(".env").write_text("REPORT_PLACEHOLDER=NO DATA\n", encoding="utf-8")
        assert EngineSettings().report_placeholder == "NO DATA"


class TestValidation:
    """Malformed values fail fast."""

    @pytest.mark.parametrize(
        ("var", "value"),
        [
            ("X_SUFFIX_CONVENTION", "both"),
            ("VACUUM_MARKER", "two words"),
            ("VACUUM_MARKER", " "),
            ("REPORT_SLOT_MINUTES", "7"),
            ("REPORT_SLOT_MINUTES", "0"),
            ("LOG_LEVEL", "LOUD"),
        ],
    )
    def test_rejected(self, monkeypatch: pytest.MonkeyPatch, var: str, value: str) -> None:
        monkeypatch.setenv(var, value)
        with pytest.raises(ValidationError):
            EngineSettings()
