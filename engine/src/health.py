"""
Health file writer for the engine CLI.

Writes a JSON health file at a configurable path with four fields:
- last_pass_ts: ISO timestamp of the most recent processing pass.
- readings_in: Number of readings (or status entries) in that pass.
- readings_dropped: Number of them that were dropped.
- warning_count: Number of structured warnings the pass reported.

The file is rewritten after every pass, giving the orchestrating flow a
simple liveness and data-quality signal to inspect.

CHANGELOG:
- 2026-10-17: Initial creation (STORY-010)

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from engine.src.models import PassResult


class HealthWriter:
    """Writes engine pass health to a JSON file.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_pass_ts: str | None = None
        self._readings_in: int = 0
        self._readings_dropped: int = 0
        self._warning_count: int = 0

    def record_pass(self, result: PassResult) -> None:
        """Record a finished pass and write the health file.

        Args:
            result: Outcome of the pass.
        """
        self._last_pass_ts = datetime.now(tz=UTC).isoformat()
        self._readings_in = result.readings_in
        self._readings_dropped = result.readings_dropped
        self._warning_count = len(result.warnings)
        self._write()

    def _write(self) -> None:
        """Write the health JSON file with current state."""
        data = {
            "last_pass_ts": self._last_pass_ts,
            "readings_in": self._readings_in,
            "readings_dropped": self._readings_dropped,
            "warning_count": self._warning_count,
        }
        self.path.write_text(json.dumps(data))
