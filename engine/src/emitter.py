"""
Telemetry emitter: grouped samples to the canonical output shape.

The output is consumed by the ingestion transport and must keep this exact
shape::

    {"<clean device name>": [{"ts": 1732445678123, "values": {"pulses": 8.0}}]}

Pure structural transform; no numeric logic.

CHANGELOG:
- 2026-10-14: Initial creation (STORY-006)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from engine.src.models import CanonicalSample

TelemetryBatch = dict[str, list[dict]]


def emit(grouped: Mapping[str, Sequence[CanonicalSample]]) -> TelemetryBatch:
    """Wrap each device's ordered samples into the canonical output shape.

    Devices without samples are omitted. Sample order is preserved.
    """
    return {
        device: [sample.model_dump() for sample in samples]
        for device, samples in grouped.items()
        if samples
    }

