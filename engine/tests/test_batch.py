"""
Tests for the batch boundary.

Tests verify:
- Field aliases (slave_id/slaveId, timestamp/reference_hour, avg_sum...).
- Numeric coercion incl. comma decimals and rejection of non-finite values.
- Timestamp parsing (epoch ms, ISO-8601, missing -> pass clock).
- Phase and window payloads.
- Per-reading problems become warnings; a missing payload array raises.

CHANGELOG:
- 2026-10-19: Out-of-range numbers and timestamps
- 2026-10-15: Phase payload tests (STORY-008)
- 2026-10-14: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

from datetime import UTC, datetime

import json

import pytest
from engine.src.batch import (
    extract_items,
    parse_batch,
    parse_number,
    parse_reading,
    parse_timestamp_ms,
)
from engine.src.errors import MissingRequiredFieldError, ReadingRejected
from engine.src.models import Address, WarningCode

_NOW_MS = 1732445678123


class TestParseNumber:
    """Raw numeric coercion."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(5, 5.0), (2.5, 2.5), ("7", 7.0), (" 1,5 ", 1.5), ("-3.25", -3.25)],
    )
    def test_accepted(self, raw: object, expected: float) -> None:
        assert parse_number(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", [True, "abc", "nan", "inf", [], {}])
    def test_rejected(self, raw: object) -> None:
        with pytest.raises(ReadingRejected) as exc_info:
            parse_number(raw)
        assert exc_info.value.code is WarningCode.INVALID_NUMERIC

    def test_huge_integer_rejected(self) -> None:
        with pytest.raises(ReadingRejected) as exc_info:
            parse_number(10**400)
        assert exc_info.value.code is WarningCode.INVALID_NUMERIC
        assert "out of range" in exc_info.value.message
        assert "-bit integer" in exc_info.value.message


class TestParseTimestamp:
    """Timestamps to epoch ms."""

    def test_epoch_ms_int(self) -> None:
        assert parse_timestamp_ms(1732445678123, default_ms=0) == 1732445678123

    def test_epoch_ms_digit_string(self) -> None:
        assert parse_timestamp_ms("1732445678123", default_ms=0) == 1732445678123

    def test_iso_with_zone(self) -> None:
        assert parse_timestamp_ms("2026-10-01T12:00:00+00:00", default_ms=0) == int(
            datetime(2026, 10, 1, 12, tzinfo=UTC).timestamp() * 1000
        )

    def test_naive_iso_is_utc(self) -> None:
        assert parse_timestamp_ms("2026-10-01T12:00:00", default_ms=0) == parse_timestamp_ms(
            "2026-10-01T12:00:00Z", default_ms=0
        )

    def test_datetime(self) -> None:
        dt = datetime(2026, 10, 1, tzinfo=UTC)
        assert parse_timestamp_ms(dt, default_ms=0) == int(dt.timestamp() * 1000)

    def test_missing_uses_default(self) -> None:
        assert parse_timestamp_ms(None, default_ms=_NOW_MS) == _NOW_MS

    @pytest.mark.parametrize("raw", [10**400, 1e300, -(2**63), "9" * 19, "9" * 30, "1" * 5000])
    def test_out_of_range(self, raw: object) -> None:
        with pytest.raises(ReadingRejected) as exc_info:
            parse_timestamp_ms(raw, default_ms=0)
        assert exc_info.value.code is WarningCode.INVALID_NUMERIC
        assert "out of range" in exc_info.value.message

    def test_int64_bounds_accepted(self) -> None:
        assert parse_timestamp_ms(str(2**63 - 1), default_ms=0) == 2**63 - 1

    @pytest.mark.parametrize("raw", ["yesterday", [1], True])
    def test_unparseable(self, raw: object) -> None:
        with pytest.raises(ReadingRejected):
            parse_timestamp_ms(raw, default_ms=0)


class TestParseReading:
    """Single reading validation."""

    def test_scalar_reading(self) -> None:
        reading = parse_reading({"slaveId": 7, "value": "5", "timestamp": 1}, now_ms=_NOW_MS)
        assert reading.address == Address("7")
        assert reading.value == 5.0
        assert reading.timestamp_ms == 1

    def test_aliases(self) -> None:
        reading = parse_reading(
            {"slave_id": "7", "channel_id": 2, "value": 1, "reference_hour": 10},
            now_ms=_NOW_MS,
        )
        assert reading.address == Address("7", "2")
        assert reading.timestamp_ms == 10

    def test_missing_timestamp_uses_pass_clock(self) -> None:
        reading = parse_reading({"slave_id": 1, "value": 1}, now_ms=_NOW_MS)
        assert reading.timestamp_ms == _NOW_MS

    def test_window(self) -> None:
        reading = parse_reading(
            {"slave_id": 1, "avg_sum": 10, "avg_min_sum": 8, "avg_max_sum": 12}, now_ms=_NOW_MS
        )
        assert reading.value is None
        assert reading.window.avg == 10
        assert reading.window.min == 8
        assert reading.window.max == 12

    def test_phase_map(self) -> None:
        reading = parse_reading(
            {
                "slave_id": 1,
                "phases": {"current": {"a": 1, "b": 2, "c": 3}, "fp": {"a": 0.9}},
            },
            now_ms=_NOW_MS,
        )
        assert reading.phases["current"] == {"a": 1.0, "b": 2.0, "c": 3.0}
        assert reading.phases["fp"] == {"a": 0.9, "b": None, "c": None}

    def test_flat_phases_with_quantity(self) -> None:
        reading = parse_reading(
            {"slave_id": 1, "quantity": "voltage", "phases": {"a": 220, "b": 221, "c": 219}},
            now_ms=_NOW_MS,
        )
        assert reading.phases == {"voltage": {"a": 220.0, "b": 221.0, "c": 219.0}}

    def test_flat_phases_without_quantity_rejected(self) -> None:
        with pytest.raises(ReadingRejected):
            parse_reading({"slave_id": 1, "phases": {"a": 1}}, now_ms=_NOW_MS)

    def test_no_slave_id(self) -> None:
        with pytest.raises(ReadingRejected) as exc_info:
            parse_reading({"value": 1}, now_ms=_NOW_MS)
        assert exc_info.value.code is WarningCode.UNRESOLVED_DEVICE

    def test_oversized_slave_id(self) -> None:
        with pytest.raises(ReadingRejected) as exc_info:
            parse_reading({"slave_id": 10**5000, "value": 1}, now_ms=_NOW_MS)
        assert exc_info.value.code is WarningCode.UNRESOLVED_DEVICE

    def test_huge_non_object_reading(self) -> None:
        with pytest.raises(ReadingRejected) as exc_info:
            parse_reading(10**5000, now_ms=_NOW_MS)
        assert exc_info.value.code is WarningCode.UNRESOLVED_DEVICE

    def test_no_value(self) -> None:
        with pytest.raises(ReadingRejected) as exc_info:
            parse_reading({"slave_id": 1}, now_ms=_NOW_MS)
        assert exc_info.value.code is WarningCode.INVALID_NUMERIC

    def test_message_names_address(self) -> None:
        with pytest.raises(ReadingRejected) as exc_info:
            parse_reading({"slave_id": 1, "channel": 2, "value": "x"}, now_ms=_NOW_MS)
        assert exc_info.value.message.startswith("1/2:")


class TestExtractItems:
    """Payload array location."""

    def test_list(self) -> None:
        assert extract_items([1, 2]) == [1, 2]

    def test_message_mapping(self) -> None:
        assert extract_items({"payload": [1]}) == [1]

    @pytest.mark.parametrize("payload", [{}, {"payload": None}, {"payload": "x"}, 42, "abc"])
    def test_missing(self, payload: object) -> None:
        with pytest.raises(MissingRequiredFieldError) as exc_info:
            extract_items(payload)
        assert exc_info.value.field == "payload"


class TestParseBatch:
    """Whole-batch validation isolates failures."""

    def test_bad_readings_become_warnings(self) -> None:
        readings, warnings = parse_batch(
            [
                {"slave_id": 1, "value": 5},
                {"slave_id": 2, "value": "NaN"},
                "garbage",
                {"value": 3},
                {"slave_id": 3, "value": 7},
            ],
            now_ms=_NOW_MS,
        )
        assert [r.address.slave_id for r in readings] == ["1", "3"]
        assert [w.code for w in warnings] == [
            WarningCode.INVALID_NUMERIC,
            WarningCode.UNRESOLVED_DEVICE,
            WarningCode.UNRESOLVED_DEVICE,
        ]
        assert warnings[0].slave_id == "2"

    def test_empty_batch(self) -> None:
        assert parse_batch([], now_ms=_NOW_MS) == ([], [])

    def test_huge_value_isolated(self) -> None:
        payload = json.loads(
            '[{"slaveId": 1, "timestamp": 1, "value": 1' + "0" * 400 + "},"
            ' {"slaveId": 1, "timestamp": 2, "value": 3}]'
        )
        readings, warnings = parse_batch(payload, now_ms=_NOW_MS)
        assert [r.timestamp_ms for r in readings] == [2]
        assert [w.code for w in warnings] == [WarningCode.INVALID_NUMERIC]
        assert warnings[0].slave_id == "1"

    def test_huge_timestamp_isolated(self) -> None:
        readings, warnings = parse_batch(
            [
                {"slaveId": 1, "timestamp": 10**400, "value": 1},
                {"slaveId": 1, "timestamp": 2, "value": 3},
            ],
            now_ms=_NOW_MS,
        )
        assert [r.value for r in readings] == [3.0]
        assert [w.code for w in warnings] == [WarningCode.INVALID_NUMERIC]
