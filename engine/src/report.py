"""
Fixed-slot report builder.

Ensures every requested slave appears in the report for every slot of the
requested range, even when the query returned no data for it. Slots are
aligned to UTC boundaries of ``REPORT_SLOT_MINUTES`` (30 by default): the
start is rounded down, the end rounded up so partial slots are included.

Each row carries the device's clean name and the calibrated value; missing
or non-numeric values become the placeholder (``"SEM DADOS"`` by default).
Rows are sorted by slave id, then slot time.

CHANGELOG:
- 2026-10-19: Skip rows whose time or value is out of range
- 2026-10-16: Initial creation (STORY-009)

TODO:
- None
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from engine.src.batch import parse_timestamp_ms
from engine.src.calibration import calibrate
from engine.src.config import EngineSettings
from engine.src.errors import InvalidNumericError, ReadingRejected
from engine.src.models import Address, DeviceDescriptor
from engine.src.registry import Registry, normalize_id, resolve

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | str) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _iso(dt: datetime) -> str:
    return dt.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def floor_slot(dt: datetime, minutes: int) -> datetime:
    """Round *dt* down to the enclosing slot boundary."""
    return dt.replace(minute=dt.minute - dt.minute % minutes, second=0, microsecond=0)


def ceil_slot(dt: datetime, minutes: int) -> datetime:
    """Round *dt* up to the next slot boundary (unchanged if already on one)."""
    floored = floor_slot(dt, minutes)
    if floored == dt:
        return dt
    return floored + timedelta(minutes=minutes)


def generate_slots(start: datetime, end: datetime, minutes: int) -> list[datetime]:
    """All slot start times covering ``[start, end)``."""
    slots: list[datetime] = []
    current = floor_slot(start, minutes)
    stop = ceil_slot(end, minutes)
    while current < stop:
        slots.append(current)
        current += timedelta(minutes=minutes)
    return slots


def _slave_sort_key(slave_id: str) -> tuple[int, int | str]:
    return (0, int(slave_id)) if slave_id.isdigit() else (1, slave_id)


def fill_report_slots(
    rows: Iterable[Mapping[str, Any]],
    registry: Registry,
    slave_ids: Sequence[Any],
    start: datetime | str,
    end: datetime | str,
    *,
    settings: EngineSettings | None = None,
) -> list[dict[str, Any]]:
    """Build a complete slot report for *slave_ids* between *start* and *end*.

    Args:
        rows: Query rows ``{"slave_id", "time_interval", "avg_value"}``.
        registry: Registry snapshot used for names and calibration.
        slave_ids: Slaves that must appear in the report.
        start: Range start (datetime or ISO-8601 string, UTC if naive).
        end: Range end (exclusive, rounded up to the next slot).
        settings: Engine settings (slot width, placeholder).

    Returns:
        Rows ``{"reading_date", "slave_id", "time_interval", "avg_value",
        "deviceName", "value"}`` sorted by slave id then time.

    Raises:
        ValueError: If the dates cannot be parsed or *end* is not after
            *start*.
    """
    settings = settings or EngineSettings()
    minutes = settings.report_slot_minutes
    placeholder = settings.report_placeholder

    start_dt, end_dt = _as_utc(start), _as_utc(end)
    if end_dt <= start_dt:
        raise ValueError(f"Invalid date range: {start!r} .. {end!r}")

    found: dict[tuple[str, datetime], tuple[Mapping[str, Any], int]] = {}
    for row in rows:
        slave_id = normalize_id(row.get("slave_id"))
        if slave_id is None or row.get("time_interval") is None:
            logger.warning(
                "Report row without slave_id/time_interval skipped: keys %s", sorted(map(str, row))
            )
            continue
        try:
            ts_ms = parse_timestamp_ms(row["time_interval"], default_ms=0)
            slot = floor_slot(datetime.fromtimestamp(ts_ms / 1000, tz=UTC), minutes)
        except ReadingRejected as exc:
            logger.warning("Report row for slave %s skipped: %s", slave_id, exc)
            continue
        except (OverflowError, ValueError, OSError):
            logger.warning("Report row for slave %s skipped: time out of range", slave_id)
            continue
        found[(slave_id, slot)] = (row, ts_ms)

    wanted = [s for s in (normalize_id(x) for x in slave_ids) if s is not None]
    report: list[dict[str, Any]] = []

    for slot in generate_slots(start_dt, end_dt, minutes):
        reading_date = _iso(slot.replace(hour=0, minute=0))
        for slave_id in wanted:
            device = resolve(Address(slave_id), registry)
            name = device.clean_name if device is not None else f"Device {slave_id}"
            hit = found.get((slave_id, slot))

            avg_value: Any = placeholder
            value: Any = placeholder
            time_interval = _iso(slot)
            if hit is not None:
                row, ts_ms = hit
                avg_value = _row_text(row.get("avg_value"), placeholder)
                time_interval = _iso(datetime.fromtimestamp(ts_ms / 1000, tz=UTC))
                value = _row_value(row.get("avg_value"), device, placeholder)

            report.append(
                {
                    "reading_date": reading_date,
                    "slave_id": slave_id,
                    "time_interval": time_interval,
                    "avg_value": avg_value,
                    "deviceName": name,
                    "value": value,
                }
            )

    report.sort(key=lambda r: (_slave_sort_key(r["slave_id"]), r["time_interval"]))
    return report


def _row_text(raw: Any, placeholder: str) -> str:
    try:
        return str(raw)
    except ValueError:
        return placeholder


def _row_value(raw: Any, device: DeviceDescriptor | None, placeholder: str) -> Any:
    """Calibrated row value, or *placeholder* when absent or not numeric."""
    if raw is None or isinstance(raw, bool):
        return placeholder
    try:
        number = float(raw)
    except (TypeError, ValueError, OverflowError):
        return placeholder
    if device is None:
        return number if math.isfinite(number) else placeholder
    try:
        return calibrate(device.calibration, number)
    except InvalidNumericError:
        return placeholder
