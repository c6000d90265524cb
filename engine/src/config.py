"""
Engine configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
The engine itself is pure; settings only select between documented naming
conventions and tune the report and CLI layers.

CHANGELOG:
- 2026-10-15: Add REPORT_SLOT_MINUTES and REPORT_PLACEHOLDER (STORY-009)
- 2026-10-12: Initial creation (STORY-001)

TODO:
- None
"""

from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class EngineSettings(BaseSettings):
    """Normalization engine configuration.

    All values are optional and loaded from environment variables or a
    ``.env`` file in the working directory.

    Attributes:
        x_suffix_convention: How a bare ``x<N>`` name suffix is read.
            ``"multiplier"`` treats it as a calibration multiplier token;
            ``"adjustment"`` treats it as a multiplicative adjustment.
            Suffixes carrying a unit letter (``x100A``) are always
            multipliers.
        vacuum_marker: Name token that selects the vacuum formula.
        status_values: Comma separated list of known connection states.
        report_slot_minutes: Slot width for the slot report (divides 60).
        report_placeholder: Value written for slots without data.
        log_level: Root log level for the CLI.
        health_path: Optional path of the JSON health file written by the
            CLI after each pass. Empty disables it.
    """

    x_suffix_convention: Literal["multiplier", "adjustment"] = "multiplier"
    vacuum_marker: str = "Vacuo"
    status_values: str = "online,offline,waiting,bad"
    report_slot_minutes: int = 30
    report_placeholder: str = "SEM DADOS"
    log_level: str = "INFO"
    health_path: str = ""

    @field_validator("vacuum_marker")
    @classmethod
    def vacuum_marker_must_be_single_token(cls, v: str) -> str:
        """Validate the vacuum marker is one non-empty whitespace-free token."""
        v = v.strip()
        if not v or len(v.split()) != 1:
            raise ValueError("VACUUM_MARKER must be a single non-empty token")
        return v

    @field_validator("report_slot_minutes")
    @classmethod
    def report_slot_must_divide_hour(cls, v: int) -> int:
        """Validate the slot width is a positive divisor of 60."""
        if v < 1 or 60 % v != 0:
            raise ValueError("REPORT_SLOT_MINUTES must be a positive divisor of 60")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate and upper-case the log level name."""
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}")
        return level

    @property
    def known_statuses(self) -> frozenset[str]:
        """Parsed set of known connection states."""
        return frozenset(s.strip() for s in self.status_values.split(",") if s.strip())

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
