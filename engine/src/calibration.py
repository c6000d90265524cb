"""
Calibration engine: raw device values to physical units.

Applies a :class:`CalibrationSpec` resolved at registry build time:

- ``LINEAR``:          ``(raw - offset) * multiplier``
- ``VACUUM_DERIVED``:  ``((raw - offset) * multiplier / 100 - 1) * 750``

Phase-structured (three-phase) readings apply the scalar transform to each
phase independently. The multiplier is scoped by the calibration unit: an
``A`` multiplier scales current only, a ``V`` multiplier scales voltage
only, an unscoped multiplier scales both. Power factor is never scaled.
A missing phase stays ``None``; zero is a valid reading.

Pure functions: no side effects, no I/O.

CHANGELOG:
- 2026-10-15: Scope phase multipliers by unit letter (STORY-008)
- 2026-10-13: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import math
from collections.abc import Mapping

from engine.src.errors import InvalidNumericError
from engine.src.models import PHASES, CalibrationSpec, Formula, Unit

VACUUM_SCALE = 750.0
"""Fixed conversion constant of the vacuum sensor class."""

_SCALED_QUANTITIES: dict[Unit, frozenset[str]] = {
    Unit.NONE: frozenset({"current", "voltage"}),
    Unit.AMPERE: frozenset({"current"}),
    Unit.VOLT: frozenset({"voltage"}),
}


def _finite(value: float, what: str) -> float:
    if not math.isfinite(value):
        raise InvalidNumericError(f"{what} is not a finite number: {value!r}")
    return value


def calibrate(spec: CalibrationSpec, raw_value: float) -> float:
    """Apply *spec* to a scalar raw value.

    Args:
        spec: Calibration parameters of the device.
        raw_value: Raw value as delivered by the device.

    Returns:
        The calibrated value.

    Raises:
        InvalidNumericError: If the input or the result is NaN or infinite.
    """
    raw = _finite(float(raw_value), "raw value")
    intermediate = (raw - spec.offset) * spec.multiplier

    if spec.formula is Formula.VACUUM_DERIVED:
        result = (intermediate / 100 - 1) * VACUUM_SCALE
    else:
        result = intermediate

    return _finite(result, "calibrated value")


def calibrate_phases(
    spec: CalibrationSpec,
    quantity: str,
    phases: Mapping[str, float | None],
) -> dict[str, float | None]:
    """Calibrate one quantity of a three-phase reading.

    Only the offset/multiplier part of *spec* applies, and only to the
    quantities its unit scopes; the vacuum formula has no meaning
    for phase values.

    Args:
        spec: Calibration parameters of the device.
        quantity: ``"current"``, ``"voltage"`` or ``"fp"``.
        phases: Raw per-phase values keyed ``a``/``b``/``c``.

    Returns:
        Calibrated values for all three phases, ``None`` where absent.

    Raises:
        InvalidNumericError: If any present phase value is not finite.
    """
    scaled = quantity in _SCALED_QUANTITIES[spec.unit]
    out: dict[str, float | None] = {}
    for phase in PHASES:
        raw = phases.get(phase)
        if raw is None:
            out[phase] = None
            continue
        value = _finite(float(raw), f"{quantity}_{phase}")
        if scaled:
            value = _finite((value - spec.offset) * spec.multiplier, f"{quantity}_{phase}")
        out[phase] = value
    return out
