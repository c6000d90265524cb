"""
Aggregation of calibrated readings into per-device sample sequences.

Two policies, selected per reading:

- **cumulative** (pulse and energy counters): every reading for the same
  clean device name and value key is summed into one sample. The sample's
  ``ts`` is the timestamp of the last contributing reading; the sample keeps
  the position of the first one.
- **point**: each reading becomes its own sample, in arrival order.

Window aggregates (avg/min/max) and phase readings are always point samples,
whatever the device kind. Grouping is always by clean name, so devices that
differ only in calibration suffixes merge into one logical device.

CHANGELOG:
- 2026-10-14: Initial creation (STORY-006)

TODO:
- None
"""

from __future__ import annotations

from dataclasses import dataclass, field

from engine.src.models import CUMULATIVE_KINDS, CanonicalSample, SignalKind


@dataclass(slots=True)
class CalibratedReading:
    """A reading after resolution and calibration, ready for grouping.

    Attributes:
        device: Clean device name (grouping key).
        kind: Signal kind of the device.
        ts: Reading timestamp in epoch ms.
        values: Output values for this reading.
        cumulative: Whether the values are counter increments to sum.
    """

    device: str
    kind: SignalKind
    ts: int
    values: dict[str, float | str | None]
    cumulative: bool = False

    @classmethod
    def scalar(
        cls,
        device: str,
        kind: SignalKind,
        ts: int,
        key: str,
        value: float,
    ) -> CalibratedReading:
        """Single-value reading; cumulative when *kind* is a counter kind."""
        return cls(device, kind, ts, {key: value}, cumulative=kind in CUMULATIVE_KINDS)


@dataclass(slots=True)
class _Slot:
    ts: int
    values: dict[str, float | str | None] = field(default_factory=dict)


class Aggregator:
    """Collects calibrated readings for one pass and groups them.

    Not thread-safe; create one per pass.
    """

    def __init__(self) -> None:
        self._slots: dict[str, list[_Slot]] = {}
        self._totals: dict[tuple[str, str], _Slot] = {}

    def add(self, reading: CalibratedReading) -> None:
        """Add one calibrated reading."""
        slots = self._slots.setdefault(reading.device, [])

        if not reading.cumulative:
            slots.append(_Slot(reading.ts, dict(reading.values)))
            return

        for key, value in reading.values.items():
            total = self._totals.get((reading.device, key))
            if total is None:
                total = _Slot(reading.ts, {key: value})
                self._totals[(reading.device, key)] = total
                slots.append(total)
                continue
            total.ts = reading.ts
            total.values[key] = (total.values[key] or 0.0) + (value or 0.0)

    def groups(self) -> dict[str, list[CanonicalSample]]:
        """Return samples grouped by clean device name, order preserved."""
        return {
            device: [CanonicalSample(ts=s.ts, values=dict(s.values)) for s in slots]
            for device, slots in self._slots.items()
        }


def aggregate(readings: list[CalibratedReading]) -> dict[str, list[CanonicalSample]]:
    """Group *readings* with :class:`Aggregator` in one call."""
    agg = Aggregator()
    for reading in readings:
        agg.add(reading)
    return agg.groups()
