"""
Single-pass processing driver.

Wires the engine stages for one invocation::

    payload --parse_batch--> RawReading* --resolve--> DeviceDescriptor
            --calibrate--> CalibratedReading* --Aggregator--> samples --emit-->
            TelemetryBatch

Each pass is synchronous and pure given its inputs (registry snapshot,
payload, clock). Failures are isolated per reading: a reading that cannot be
resolved or calibrated is dropped with a structured warning and the rest of
the batch carries on. Only a missing payload array aborts the pass.

A device whose label carries no calibration tokens still contributes, with
default calibration, and is reported once per pass as MALFORMED_NAME.

CHANGELOG:
- 2026-10-19: MALFORMED_NAME per device; duplicate warnings on status passes
- 2026-10-15: Report duplicate registry addresses once per pass (STORY-005)
- 2026-10-14: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import Any

from engine.src.aggregator import Aggregator, CalibratedReading
from engine.src.batch import extract_items, parse_batch
from engine.src.calibration import calibrate, calibrate_phases
from engine.src.config import EngineSettings
from engine.src.emitter import emit
from engine.src.errors import InvalidNumericError
from engine.src.models import (
    VALUE_KEYS,
    Address,
    DeviceDescriptor,
    PassResult,
    PassWarning,
    RawReading,
    WarningCode,
    WindowAggregate,
)
from engine.src.registry import Registry, resolve
from engine.src.status import join_with_warnings

logger = logging.getLogger(__name__)


def _window_values(device: DeviceDescriptor, window: WindowAggregate) -> dict[str, float | None]:
    """Calibrate avg/min/max into ``<key>HourlyAverage[Min|Max]`` values."""
    prefix = f"{VALUE_KEYS[device.kind]}HourlyAverage"
    raw = {prefix: window.avg, f"{prefix}Min": window.min, f"{prefix}Max": window.max}
    return {k: None if v is None else calibrate(device.calibration, v) for k, v in raw.items()}


def calibrate_reading(device: DeviceDescriptor, reading: RawReading) -> list[CalibratedReading]:
    """Turn one raw reading into the calibrated readings it carries.

    A scalar value follows the device kind's policy; window aggregates and
    phase groups are always point samples.

    Raises:
        InvalidNumericError: If any carried value is not a finite number.
    """
    out: list[CalibratedReading] = []
    name, kind, ts = device.clean_name, device.kind, reading.timestamp_ms

    if reading.value is not None:
        value = calibrate(device.calibration, reading.value)
        out.append(CalibratedReading.scalar(name, kind, ts, VALUE_KEYS[kind], value))

    if reading.window is not None:
        out.append(CalibratedReading(name, kind, ts, _window_values(device, reading.window)))

    if reading.phases:
        values: dict[str, float | str | None] = {}
        for quantity, phases in reading.phases.items():
            calibrated = calibrate_phases(device.calibration, quantity, phases)
            values.update({f"{quantity}_{p}": v for p, v in calibrated.items()})
        out.append(CalibratedReading(name, kind, ts, values))

    return out


def conflict_warnings(registry: Registry) -> list[PassWarning]:
    """One DUPLICATE_DEVICE warning per ambiguous registry address."""
    return [
        PassWarning(
            code=WarningCode.DUPLICATE_DEVICE,
            message=f"address {address} is claimed by more than one registry device",
            slave_id=address.slave_id,
            channel_id=address.channel_id,
        )
        for address in registry.conflicts
    ]


def process_batch(
    payload: Any,
    registry: Registry,
    *,
    now_ms: int,
) -> PassResult:
    """Normalize one batch of raw readings into a telemetry batch.

    Args:
        payload: List of raw reading dicts, or a message mapping with the
            list under ``"payload"``.
        registry: Registry snapshot for this pass.
        now_ms: Pass clock (epoch ms) for readings without a timestamp.

    Returns:
        The telemetry batch plus warnings and counters.

    Raises:
        MissingRequiredFieldError: If the payload array is absent.
    """
    readings, warnings = parse_batch(payload, now_ms=now_ms)
    readings_in = len(readings) + len(warnings)
    dropped = len(warnings)
    warnings = conflict_warnings(registry) + warnings

    aggregator = Aggregator()
    untokenized: set[Address] = set()
    for reading in readings:
        address = reading.address
        device = resolve(address, registry)
        if device is None:
            logger.warning("Reading dropped: no registry device for address %s", address)
            warnings.append(
                PassWarning(
                    code=WarningCode.UNRESOLVED_DEVICE,
                    message=f"no registry device for address {address}",
                    slave_id=address.slave_id,
                    channel_id=address.channel_id,
                )
            )
            dropped += 1
            continue

        try:
            calibrated = calibrate_reading(device, reading)
        except InvalidNumericError as exc:
            logger.warning("Reading dropped for device '%s': %s", device.clean_name, exc)
            warnings.append(
                PassWarning(
                    code=WarningCode.INVALID_NUMERIC,
                    message=str(exc),
                    slave_id=address.slave_id,
                    channel_id=address.channel_id,
                    device=device.clean_name,
                )
            )
            dropped += 1
            continue

        if not device.tokenized and device.address not in untokenized:
            untokenized.add(device.address)
            warnings.append(
                PassWarning(
                    code=WarningCode.MALFORMED_NAME,
                    message=f"label '{device.raw_label}' has no calibration tokens; "
                    "default calibration applied",
                    slave_id=address.slave_id,
                    channel_id=address.channel_id,
                    device=device.clean_name,
                )
            )

        for item in calibrated:
            aggregator.add(item)

    telemetry = emit(aggregator.groups())
    logger.info(
        "Pass complete: %d readings in, %d dropped, %d devices out",
        readings_in,
        dropped,
        len(telemetry),
    )
    return PassResult(
        telemetry=telemetry,
        warnings=warnings,
        readings_in=readings_in,
        readings_dropped=dropped,
    )


def process_status(
    status_feed: Any,
    registry: Registry,
    *,
    now_ms: int,
    settings: EngineSettings | None = None,
) -> PassResult:
    """Join a connectivity feed into a telemetry batch with warnings.

    Raises:
        MissingRequiredFieldError: If the feed array is absent.
    """
    items = extract_items(status_feed)
    telemetry, dropped = join_with_warnings(items, registry, now_ms=now_ms, settings=settings)
    return PassResult(
        telemetry=telemetry,
        warnings=conflict_warnings(registry) + dropped,
        readings_in=len(items),
        readings_dropped=len(dropped),
    )
