"""
Connectivity-status join.

Merges an external connectivity feed (``[{"id": <slave id>, "status": ...}]``)
into the same clean-name keyspace as the telemetry. Every registry device on
a slave listed in the feed gets exactly one sample::

    {"Hidr. Loja1": [{"ts": now_ms, "values": {"connectionStatus": "offline"}}]}

Devices absent from the feed are omitted; no default state is invented.
Devices on an address claimed by more than one registry entry get no
sample, the same as readings for that address.

CHANGELOG:
- 2026-10-19: Skip devices on ambiguous registry addresses
- 2026-10-15: Log unknown status values instead of dropping them (STORY-009)
- 2026-10-14: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from engine.src.batch import extract_items
from engine.src.config import EngineSettings
from engine.src.emitter import TelemetryBatch, emit
from engine.src.models import (
    VALUE_KEYS,
    CanonicalSample,
    DeviceDescriptor,
    PassWarning,
    SignalKind,
    WarningCode,
)
from engine.src.registry import Registry, normalize_id

logger = logging.getLogger(__name__)

STATUS_KEY = VALUE_KEYS[SignalKind.STATUS]


def join_with_warnings(
    status_feed: Any,
    registry: Registry,
    *,
    now_ms: int,
    settings: EngineSettings | None = None,
) -> tuple[TelemetryBatch, list[PassWarning]]:
    """Join *status_feed* against *registry*, returning warnings as well.

    Raises:
        MissingRequiredFieldError: If the feed array is absent.
    """
    settings = settings or EngineSettings()
    known = settings.known_statuses
    warnings: list[PassWarning] = []

    conflicts = set(registry.conflicts)
    by_slave: dict[str, list[DeviceDescriptor]] = {}
    ambiguous: set[str] = set()
    for device in registry.devices:
        if device.address in conflicts:
            ambiguous.add(device.address.slave_id)
            continue
        by_slave.setdefault(device.address.slave_id, []).append(device)

    latest: dict[str, CanonicalSample] = {}
    for entry in extract_items(status_feed):
        if not isinstance(entry, Mapping):
            warnings.append(
                PassWarning(
                    code=WarningCode.UNRESOLVED_DEVICE,
                    message=f"status entry is not an object: {type(entry).__name__}",
                )
            )
            continue

        slave_id = normalize_id(entry.get("id"))
        status = entry.get("status")
        if slave_id is None or not isinstance(status, str) or not status.strip():
            warnings.append(
                PassWarning(
                    code=WarningCode.UNRESOLVED_DEVICE,
                    message=f"status entry without id or status: keys {sorted(map(str, entry))}",
                    slave_id=slave_id,
                )
            )
            continue

        devices = by_slave.get(slave_id)
        if not devices and slave_id in ambiguous:
            logger.warning("Status for slave %s dropped: ambiguous registry address", slave_id)
            warnings.append(
                PassWarning(
                    code=WarningCode.UNRESOLVED_DEVICE,
                    message=f"slave {slave_id} has only ambiguous registry addresses",
                    slave_id=slave_id,
                )
            )
            continue
        if not devices:
            logger.warning("Status for unknown slave %s dropped", slave_id)
            warnings.append(
                PassWarning(
                    code=WarningCode.UNRESOLVED_DEVICE,
                    message=f"no registry device for slave {slave_id}",
                    slave_id=slave_id,
                )
            )
            continue

        status = status.strip()
        if known and status not in known:
            logger.info("Slave %s reports unrecognized status '%s'", slave_id, status)

        for device in devices:
            latest[device.clean_name] = CanonicalSample(ts=now_ms, values={STATUS_KEY: status})

    return emit({name: [sample] for name, sample in latest.items()}), warnings


def join(
    status_feed: Any,
    registry: Registry,
    *,
    now_ms: int,
    settings: EngineSettings | None = None,
) -> TelemetryBatch:
    """Map each registry device on a reported slave to its connection status.

    Args:
        status_feed: ``[{"id": ..., "status": ...}]`` or a message mapping
            with that list under ``"payload"``.
        registry: Registry snapshot for this pass.
        now_ms: Timestamp written on every status sample.
        settings: Engine settings; defaults are loaded when omitted.

    Returns:
        ``{clean_name: [{"ts": now_ms, "values": {"connectionStatus": ...}}]}``
    """
    batch, _ = join_with_warnings(status_feed, registry, now_ms=now_ms, settings=settings)
    return batch
