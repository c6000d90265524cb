"""
Batch boundary: validates raw payloads into typed readings.

Raw reading batches come from several ingestion paths and use different
field names for the same thing (``slave_id``/``slaveId``,
``timestamp``/``reference_hour``, ``value``/``avg_sum``...). This module is
the only place that looks at those loose shapes. Everything downstream works
on :class:`RawReading`.

A payload that is not a list of readings raises
:class:`MissingRequiredFieldError` and aborts the pass. A single malformed
reading only produces a :class:`PassWarning`.

CHANGELOG:
- 2026-10-19: Reject out-of-range numbers and timestamps per reading
- 2026-10-15: Accept per-quantity phase maps and flat a/b/c with "quantity" (STORY-008)
- 2026-10-14: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from engine.src.errors import MissingRequiredFieldError, ReadingRejected
from engine.src.models import (
    PHASE_QUANTITIES,
    PHASES,
    Address,
    PassWarning,
    RawReading,
    WarningCode,
    WindowAggregate,
)
from engine.src.registry import normalize_id

logger = logging.getLogger(__name__)

_SLAVE_KEYS = ("slave_id", "slaveId")
_CHANNEL_KEYS = ("channel", "channel_id", "channelId")
_TS_KEYS = ("timestamp", "reference_hour", "ts")
_WINDOW_KEYS = {"avg": "avg_sum", "min": "avg_min_sum", "max": "avg_max_sum"}
_MAX_EPOCH_MS = 2**63 - 1


def _first(entry: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if entry.get(key) is not None:
            return entry[key]
    return None


def _preview(value: Any) -> str:
    """Short repr of a raw value for warning messages."""
    if isinstance(value, int) and value.bit_length() > 64:
        return f"<{value.bit_length()}-bit integer>"
    text = repr(value)
    return text if len(text) <= 40 else f"{text[:37]}..."


def _epoch_ms(ms: int, raw: Any) -> int:
    if not -_MAX_EPOCH_MS <= ms <= _MAX_EPOCH_MS:
        raise ReadingRejected(
            WarningCode.INVALID_NUMERIC, f"timestamp is out of range: {_preview(raw)}"
        )
    return ms


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def parse_number(value: Any, what: str = "value") -> float:
    """Coerce a raw numeric field to a finite float.

    Accepts ints, floats and numeric strings (comma decimals included).
    Booleans are rejected.

    Raises:
        ReadingRejected: With code INVALID_NUMERIC when the value is not a
            finite number.
    """
    if isinstance(value, bool):
        raise ReadingRejected(
            WarningCode.INVALID_NUMERIC, f"{what} is a boolean: {_preview(value)}"
        )
    try:
        if isinstance(value, str):
            number = float(value.strip().replace(",", "."))
        else:
            number = float(value)
    except OverflowError:
        raise ReadingRejected(
            WarningCode.INVALID_NUMERIC, f"{what} is out of range: {_preview(value)}"
        ) from None
    except (TypeError, ValueError):
        raise ReadingRejected(
            WarningCode.INVALID_NUMERIC, f"{what} is not numeric: {_preview(value)}"
        ) from None
    if not math.isfinite(number):
        raise ReadingRejected(
            WarningCode.INVALID_NUMERIC, f"{what} is not finite: {_preview(value)}"
        )
    return number


def parse_timestamp_ms(value: Any, *, default_ms: int) -> int:
    """Convert a reading timestamp to epoch milliseconds.

    Integers (and digit strings) are taken as epoch ms, strings otherwise as
    ISO-8601 (naive times are UTC), datetimes are converted. ``None`` yields
    *default_ms*.

    Raises:
        ReadingRejected: With code INVALID_NUMERIC when the timestamp cannot
            be parsed or lies outside the signed 64-bit millisecond range.
    """
    if value is None:
        return default_ms
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return _epoch_ms(int(parse_number(value, "timestamp")), value)
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        text = value.strip()
        if len(text) > len(str(_MAX_EPOCH_MS)):
            raise ReadingRejected(
                WarningCode.INVALID_NUMERIC, f"timestamp is out of range: {_preview(value)}"
            )
        return _epoch_ms(int(text), value)
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip())
        except ValueError:
            raise ReadingRejected(
                WarningCode.INVALID_NUMERIC, f"timestamp is not parseable: {_preview(value)}"
            ) from None
    else:
        raise ReadingRejected(
            WarningCode.INVALID_NUMERIC, f"timestamp has bad type: {_preview(value)}"
        )

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(dt.timestamp() * 1000)


def _parse_phase_group(group: Any, quantity: str) -> dict[str, float | None]:
    if not isinstance(group, Mapping):
        raise ReadingRejected(WarningCode.INVALID_NUMERIC, f"phases.{quantity} is not an object")
    return {
        p: None if group.get(p) is None else parse_number(group[p], f"{quantity}_{p}")
        for p in PHASES
    }


def _parse_phases(entry: Mapping[str, Any]) -> dict[str, dict[str, float | None]] | None:
    phases = entry.get("phases")
    if phases is None:
        return None
    if not isinstance(phases, Mapping):
        raise ReadingRejected(WarningCode.INVALID_NUMERIC, "phases is not an object")

    if set(phases) <= set(PHASES):
        quantity = entry.get("quantity")
        if quantity not in PHASE_QUANTITIES:
            raise ReadingRejected(
                WarningCode.INVALID_NUMERIC,
                f"flat phases need a quantity in {PHASE_QUANTITIES}, got {_preview(quantity)}",
            )
        return {quantity: _parse_phase_group(phases, quantity)}

    unknown = set(phases) - set(PHASE_QUANTITIES)
    if unknown:
        raise ReadingRejected(
            WarningCode.INVALID_NUMERIC, f"unknown phase quantities: {sorted(unknown)}"
        )
    return {q: _parse_phase_group(g, q) for q, g in phases.items()}


def _parse_window(entry: Mapping[str, Any]) -> WindowAggregate | None:
    if not any(entry.get(k) is not None for k in _WINDOW_KEYS.values()):
        return None
    return WindowAggregate(
        **{
            field: None if entry.get(key) is None else parse_number(entry[key], key)
            for field, key in _WINDOW_KEYS.items()
        }
    )


def parse_reading(entry: Any, *, now_ms: int) -> RawReading:
    """Validate a single raw reading dict into a :class:`RawReading`.

    Raises:
        ReadingRejected: When the reading cannot be used; the caller turns
            it into a warning.
    """
    if not isinstance(entry, Mapping):
        raise ReadingRejected(
            WarningCode.UNRESOLVED_DEVICE, f"reading is not an object: {_preview(entry)}"
        )

    slave_id = normalize_id(_first(entry, _SLAVE_KEYS))
    if slave_id is None:
        raise ReadingRejected(WarningCode.UNRESOLVED_DEVICE, "reading has no slave id")
    address = Address(slave_id, normalize_id(_first(entry, _CHANNEL_KEYS)))

    try:
        timestamp_ms = parse_timestamp_ms(_first(entry, _TS_KEYS), default_ms=now_ms)
        value = None if entry.get("value") is None else parse_number(entry["value"])
        window = _parse_window(entry)
        phases = _parse_phases(entry)
    except ReadingRejected as exc:
        exc.message = f"{address}: {exc.message}"
        raise

    if value is None and window is None and not phases:
        raise ReadingRejected(
            WarningCode.INVALID_NUMERIC, f"{address}: reading carries no value"
        )

    return RawReading(
        address=address,
        timestamp_ms=timestamp_ms,
        value=value,
        window=window,
        phases=phases,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def extract_items(payload: Any, field: str = "payload") -> list[Any]:
    """Return the list of items carried by *payload*.

    *payload* is either the list itself or a message mapping holding it
    under *field*.

    Raises:
        MissingRequiredFieldError: If no list can be found.
    """
    if isinstance(payload, Mapping):
        if field not in payload or payload[field] is None:
            raise MissingRequiredFieldError(field)
        payload = payload[field]
    if isinstance(payload, (str, bytes)) or not isinstance(payload, Sequence):
        raise MissingRequiredFieldError(field, f"expected an array, got {type(payload).__name__}")
    return list(payload)


def parse_batch(payload: Any, *, now_ms: int) -> tuple[list[RawReading], list[PassWarning]]:
    """Validate a whole reading batch.

    Args:
        payload: A list of raw reading dicts, or a message mapping with the
            list under ``"payload"``.
        now_ms: Pass clock, used for readings without a timestamp.

    Returns:
        ``(readings, warnings)`` with readings in arrival order.

    Raises:
        MissingRequiredFieldError: If the payload array is absent.
    """
    readings: list[RawReading] = []
    warnings: list[PassWarning] = []

    for entry in extract_items(payload):
        try:
            readings.append(parse_reading(entry, now_ms=now_ms))
        except ReadingRejected as exc:
            slave = None
            channel = None
            if isinstance(entry, Mapping):
                slave = normalize_id(_first(entry, _SLAVE_KEYS))
                channel = normalize_id(_first(entry, _CHANNEL_KEYS))
            logger.warning("Reading dropped (%s): %s", exc.code, exc.message)
            warnings.append(
                PassWarning(
                    code=exc.code,
                    message=exc.message,
                    slave_id=slave,
                    channel_id=channel,
                )
            )

    return readings, warnings
