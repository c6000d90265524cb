"""
Command-line driver for the telemetry normalization engine.

Runs one processing pass over JSON files and writes the canonical telemetry
batch as JSON to stdout::

    meter-telemetry normalize --registry registry.json --batch readings.json
    meter-telemetry status    --registry registry.json --feed status.json
    meter-telemetry report    --registry registry.json --rows rows.json \\
        --slaves 1,2,3 --start 2026-10-01T00:00:00Z --end 2026-10-02T00:00:00Z

Structured JSON logging goes to stderr. When HEALTH_PATH is set, a
HealthWriter records the outcome of each pass.

Exit codes: 0 success, 1 unreadable input, 2 missing required field.

CHANGELOG:
- 2026-10-17: Add report subcommand and health file (STORY-010)
- 2026-10-16: Initial creation (STORY-010)

TODO:
- None
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from engine.src.config import EngineSettings
from engine.src.errors import MissingRequiredFieldError
from engine.src.health import HealthWriter
from engine.src.pipeline import process_batch, process_status
from engine.src.registry import build_registry
from engine.src.report import fill_report_slots

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the engine CLI.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def log_config_summary(settings: EngineSettings) -> None:
    """Log the effective engine configuration at startup."""
    logger.info(
        "Engine starting with config: x_suffix_convention=%s, vacuum_marker=%s, "
        "status_values=%s, report_slot_minutes=%s, report_placeholder=%s, "
        "log_level=%s, health_path=%s",
        settings.x_suffix_convention,
        settings.vacuum_marker,
        settings.status_values,
        settings.report_slot_minutes,
        settings.report_placeholder,
        settings.log_level,
        settings.health_path or "<disabled>",
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_json(path: str) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _now_ms(args: argparse.Namespace) -> int:
    return args.now_ms if args.now_ms is not None else int(time.time() * 1000)


def _dump(data: Any) -> None:
    sys.stdout.write(json.dumps(data, ensure_ascii=False, indent=2))
    sys.stdout.write("\n")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    p = argparse.ArgumentParser(
        prog="meter-telemetry",
        description="Normalize field-device readings into keyed telemetry batches.",
    )
    sub = p.add_subparsers(dest="command", required=True)

    norm = sub.add_parser("normalize", help="Normalize a batch of raw readings")
    norm.add_argument("--registry", required=True, help="Registry snapshot JSON file")
    norm.add_argument("--batch", required=True, help="Reading batch JSON file")

    status = sub.add_parser("status", help="Join a connectivity status feed")
    status.add_argument("--registry", required=True, help="Registry snapshot JSON file")
    status.add_argument("--feed", required=True, help="Status feed JSON file")

    report = sub.add_parser("report", help="Build a fixed-slot report")
    report.add_argument("--registry", required=True, help="Registry snapshot JSON file")
    report.add_argument("--rows", required=True, help="Query rows JSON file")
    report.add_argument("--slaves", required=True, help="Comma separated slave ids")
    report.add_argument("--start", required=True, help="Range start (ISO-8601)")
    report.add_argument("--end", required=True, help="Range end (ISO-8601)")

    for sp in (norm, status):
        sp.add_argument("--now-ms", type=int, default=None, dest="now_ms")
        sp.add_argument(
            "--with-warnings",
            action="store_true",
            dest="with_warnings",
            help="Print the full pass result instead of the telemetry only",
        )

    return p.parse_args(argv)


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def run(args: argparse.Namespace, settings: EngineSettings) -> int:
    """Execute one CLI command; returns the process exit code."""
    try:
        registry = build_registry(_load_json(args.registry), settings=settings)

        if args.command == "report":
            rows = _load_json(args.rows)
            slaves = [s for s in args.slaves.split(",") if s.strip()]
            report = fill_report_slots(
                rows, registry, slaves, args.start, args.end, settings=settings
            )
            _dump(report)
            return 0

        if args.command == "normalize":
            result = process_batch(_load_json(args.batch), registry, now_ms=_now_ms(args))
        else:
            result = process_status(
                _load_json(args.feed), registry, now_ms=_now_ms(args), settings=settings
            )
    except MissingRequiredFieldError as exc:
        logger.error("Pass aborted: %s", exc)
        return 2
    except (OSError, ValueError) as exc:
        logger.error("Cannot read input: %s", exc)
        return 1

    if settings.health_path:
        try:
            HealthWriter(settings.health_path).record_pass(result)
        except OSError:
            logger.warning("Failed to write health file", exc_info=True)

    _dump(result.model_dump(mode="json") if args.with_warnings else result.telemetry)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Synchronous entrypoint for the engine CLI."""
    settings = EngineSettings()
    configure_logging(settings.log_level)
    log_config_summary(settings)
    return run(parse_args(argv), settings)


if __name__ == "__main__":
    sys.exit(main())
