"""
Data model for the normalization engine.

Immutable definitions (addresses, calibration specs, device descriptors) are
frozen slotted dataclasses so a registry snapshot cannot be mutated during a
pass. Values crossing the batch boundary or leaving the engine (readings,
samples, warnings, pass results) are Pydantic models.

CHANGELOG:
- 2026-10-14: Add PassWarning / PassResult for structured per-reading warnings (STORY-007)
- 2026-10-12: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Formula(StrEnum):
    """Conversion formula selected for a device at parse time."""

    LINEAR = "LINEAR"
    VACUUM_DERIVED = "VACUUM_DERIVED"


class Unit(StrEnum):
    """Quantity a multiplier token is scoped to (``x200A``, ``x1.5V``)."""

    NONE = "NONE"
    AMPERE = "AMPERE"
    VOLT = "VOLT"


class AdjustmentOp(StrEnum):
    """Operator of a trailing ``+N`` / ``-N`` / ``xN`` adjustment token."""

    NONE = "NONE"
    ADD = "ADD"
    SUB = "SUB"
    MUL = "MUL"


class SignalKind(StrEnum):
    """What a device measures; selects aggregation policy and value key."""

    PULSES = "PULSES"
    ENERGY = "ENERGY"
    CONSUMPTION = "CONSUMPTION"
    TEMPERATURE = "TEMPERATURE"
    PRESSURE = "PRESSURE"
    STATUS = "STATUS"


class WarningCode(StrEnum):
    """Per-reading / per-snapshot problem categories."""

    UNRESOLVED_DEVICE = "UNRESOLVED_DEVICE"
    MALFORMED_NAME = "MALFORMED_NAME"
    INVALID_NUMERIC = "INVALID_NUMERIC"
    DUPLICATE_DEVICE = "DUPLICATE_DEVICE"


CUMULATIVE_KINDS: frozenset[SignalKind] = frozenset(
    {SignalKind.PULSES, SignalKind.ENERGY, SignalKind.CONSUMPTION}
)
"""Kinds whose same-batch readings are summed into one running total."""

VALUE_KEYS: dict[SignalKind, str] = {
    SignalKind.PULSES: "pulses",
    SignalKind.ENERGY: "Wh4",
    SignalKind.CONSUMPTION: "consumption",
    SignalKind.TEMPERATURE: "temperature",
    SignalKind.PRESSURE: "pressure",
    SignalKind.STATUS: "connectionStatus",
}
"""Output ``values`` key emitted for a scalar reading of each kind."""

PHASE_QUANTITIES: tuple[str, ...] = ("current", "voltage", "fp")
"""Quantities a phase-structured reading may carry (keys ``<q>_a/b/c``)."""

PHASES: tuple[str, ...] = ("a", "b", "c")


# ---------------------------------------------------------------------------
# Immutable definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Address:
    """Physical fieldbus address of a device.

    Attributes:
        slave_id: Modbus-style slave identifier, normalized to ``str``.
        channel_id: Optional channel on a multi-channel slave.
    """

    slave_id: str
    channel_id: str | None = None

    def __str__(self) -> str:
        if self.channel_id is None:
            return self.slave_id
        return f"{self.slave_id}/{self.channel_id}"


@dataclass(frozen=True, slots=True)
class CalibrationSpec:
    """Numeric transform parameters recovered from a device name.

    Attributes:
        multiplier: Scale factor, always > 0 (1 when absent).
        offset: Zero offset subtracted before scaling.
        height: Physical height, only meaningful for the vacuum formula.
        formula: ``LINEAR`` or ``VACUUM_DERIVED``.
        unit: Quantity the multiplier is scoped to for phase readings.
    """

    multiplier: float = 1.0
    offset: float = 0.0
    height: float | None = None
    formula: Formula = Formula.LINEAR
    unit: Unit = Unit.NONE


@dataclass(frozen=True, slots=True)
class ParsedName:
    """Result of tokenizing a raw device label.

    Attributes:
        stripped: Trailing label tokens recognized as calibration data.
    """

    clean_name: str
    multiplier: float = 1.0
    adjustment_op: AdjustmentOp = AdjustmentOp.NONE
    adjustment_value: float = 0.0
    unit: Unit = Unit.NONE
    offset: float | None = None
    height: float | None = None
    formula: Formula = Formula.LINEAR
    stripped: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class DeviceDescriptor:
    """One registry entry, parsed once per snapshot.

    Attributes:
        address: Physical address of the device.
        raw_label: Name as assigned by a human, suffixes included.
        clean_name: Canonical name used as the output key.
        calibration: Transform applied to the device's raw values.
        kind: Signal kind, resolved once from the registry type or name.
        device_type: Registry or inferred device type label.
        tokenized: Whether the label carried any calibration token.
    """

    address: Address
    raw_label: str
    clean_name: str
    calibration: CalibrationSpec
    kind: SignalKind
    device_type: str = ""
    tokenized: bool = False


# ---------------------------------------------------------------------------
# Boundary / output models
# ---------------------------------------------------------------------------


class WindowAggregate(BaseModel):
    """Window aggregate carried by a reading instead of a single value."""

    model_config = ConfigDict(frozen=True)

    avg: float | None = None
    min: float | None = None
    max: float | None = None


class RawReading(BaseModel):
    """A single raw reading after batch-boundary validation.

    Exactly one of *value*, *window* or *phases* is expected to carry data;
    *phases* maps a quantity (``current``/``voltage``/``fp``) to its
    per-phase raw values.
    """

    model_config = ConfigDict(frozen=True)

    address: Address
    timestamp_ms: int
    value: float | None = None
    window: WindowAggregate | None = None
    phases: dict[str, dict[str, float | None]] | None = None


class CanonicalSample(BaseModel):
    """One output sample: epoch-ms timestamp plus signal-specific values."""

    ts: int
    values: dict[str, float | str | None]


class PassWarning(BaseModel):
    """Structured warning for a reading or registry entry that was skipped."""

    code: WarningCode
    message: str
    slave_id: str | None = None
    channel_id: str | None = None
    device: str | None = None


class PassResult(BaseModel):
    """Outcome of one processing pass."""

    telemetry: dict[str, list[dict]]
    warnings: list[PassWarning] = Field(default_factory=list)
    readings_in: int = 0
    readings_dropped: int = 0
