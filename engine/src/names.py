"""
Device-name tokenizer: recovers calibration metadata from free-text labels.

Field devices are named by people, and calibration data rides along as
whitespace-delimited suffixes, e.g.::

    "Hidr. Colonial x100 2810m3"   -> "Hidr. Colonial", multiplier 100
    "Vacuo Sala02 100 50 x0.75"    -> "Vacuo Sala02", offset 100, height 50,
                                      multiplier 0.75, vacuum formula
    "Temp. Sala 3 -1.5"            -> "Temp. Sala 3", subtract 1.5
    "Entrada 3F x200A"             -> "Entrada 3F", multiplier 200 on current

Grammar (ordered token classes, applied to the trailing token repeatedly
while more than one token remains):

1. initial-reading  ``<int>m``, ``<int>m3``, ``<int>m³``  -> discarded
2. adjustment       ``+N`` / ``-N`` (and bare ``xN`` under the
                    ``adjustment`` x-suffix convention)
3. multiplier       ``xN`` with optional unit letter ``A`` / ``V``; when the
                    name carries the vacuum marker, the two numeric tokens
                    directly before it are ``<offset> <height>``

The rightmost token of each class wins. Because stripping only stops when
the trailing token matches no class, parsing a clean name returns it
unchanged.

A label without tokens is returned verbatim, whitespace included. A
single-token label is always a name: ``"x100"`` alone is never stripped and
keeps default calibration, so no device ends up with an empty name.

This is a pure module: no I/O, no clock.

CHANGELOG:
- 2026-10-19: Return token-free labels verbatim; record stripped tokens
- 2026-10-16: Accept comma decimals ("x0,75") seen on some sites
- 2026-10-14: Make bare "xN" precedence configurable (STORY-006)
- 2026-10-12: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

import logging
import re
import unicodedata
from typing import Literal

from engine.src.models import (
    AdjustmentOp,
    CalibrationSpec,
    Formula,
    ParsedName,
    Unit,
)

logger = logging.getLogger(__name__)

XSuffixConvention = Literal["multiplier", "adjustment"]

# ---------------------------------------------------------------------------
# Token classes
# ---------------------------------------------------------------------------

_NUMBER = r"\d+(?:[.,]\d+)?"

_INITIAL_READING_RE = re.compile(r"^\d+m[³3]?$", re.IGNORECASE)
_ADJUSTMENT_RE = re.compile(rf"^(?P<op>[+-])(?P<num>{_NUMBER})$")
_MULTIPLIER_RE = re.compile(rf"^x(?P<num>{_NUMBER})(?P<unit>[av])?$", re.IGNORECASE)
_BARE_NUMBER_RE = re.compile(rf"^-?{_NUMBER}$")

_UNITS: dict[str, Unit] = {"a": Unit.AMPERE, "v": Unit.VOLT}


def _to_float(text: str) -> float:
    """Parse a token number, accepting a comma as decimal separator."""
    return float(text.replace(",", "."))


def _fold(text: str) -> str:
    """Upper-case and strip diacritics for marker comparison."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).upper()


def has_marker(label: str, marker: str) -> bool:
    """Return True if *marker* appears as a whole token of *label*.

    Comparison ignores case and accents, so ``"Vácuo"`` matches ``"Vacuo"``.
    """
    folded = _fold(marker)
    return any(_fold(tok) == folded for tok in label.split())


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse(
    raw_label: str,
    *,
    x_suffix_convention: XSuffixConvention = "multiplier",
    vacuum_marker: str = "Vacuo",
) -> ParsedName:
    """Split *raw_label* into a clean name and calibration tokens.

    Never raises: a label without recognizable tokens comes back unchanged
    with default calibration.

    Args:
        raw_label: Device name as stored in the registry.
        x_suffix_convention: ``"multiplier"`` reads a bare ``xN`` as a
            calibration multiplier, ``"adjustment"`` reads it as a
            multiplicative adjustment.
        vacuum_marker: Token that marks a vacuum sensor name.

    Returns:
        The parsed name.
    """
    raw_tokens = (raw_label or "").split()
    tokens = list(raw_tokens)
    is_vacuum = has_marker(raw_label or "", vacuum_marker)

    multiplier: float | None = None
    unit = Unit.NONE
    adjustment_op = AdjustmentOp.NONE
    adjustment_value = 0.0
    offset: float | None = None
    height: float | None = None

    while len(tokens) > 1:
        tok = tokens[-1]

        if _INITIAL_READING_RE.match(tok):
            tokens.pop()
            continue

        m = _ADJUSTMENT_RE.match(tok)
        if m is None and x_suffix_convention == "adjustment":
            x = _MULTIPLIER_RE.match(tok)
            if x is not None and x.group("unit") is None:
                m = x
        if m is not None:
            tokens.pop()
            if adjustment_op is not AdjustmentOp.NONE:
                logger.debug("Label '%s': extra adjustment token '%s' ignored", raw_label, tok)
                continue
            op = m.groupdict().get("op")
            adjustment_op = {"+": AdjustmentOp.ADD, "-": AdjustmentOp.SUB}.get(
                op, AdjustmentOp.MUL
            )
            adjustment_value = _to_float(m.group("num"))
            continue

        m = _MULTIPLIER_RE.match(tok)
        if m is not None:
            tokens.pop()
            if multiplier is not None:
                logger.debug("Label '%s': extra multiplier token '%s' ignored", raw_label, tok)
                continue
            value = _to_float(m.group("num"))
            if value <= 0:
                logger.warning("Label '%s': non-positive multiplier '%s' ignored", raw_label, tok)
                multiplier = 1.0
            else:
                multiplier = value
                unit = _UNITS.get((m.group("unit") or "").lower(), Unit.NONE)
            if (
                is_vacuum
                and offset is None
                and len(tokens) > 2
                and _BARE_NUMBER_RE.match(tokens[-1])
                and _BARE_NUMBER_RE.match(tokens[-2])
            ):
                height = _to_float(tokens.pop())
                offset = _to_float(tokens.pop())
            continue

        break

    formula = Formula.LINEAR
    if is_vacuum:
        if offset is not None and height is not None:
            formula = Formula.VACUUM_DERIVED
        else:
            logger.warning(
                "Label '%s': vacuum marker without '<offset> <height> x<N>' suffix; "
                "using linear calibration",
                raw_label,
            )

    stripped = tuple(raw_tokens[len(tokens) :])
    return ParsedName(
        clean_name=" ".join(tokens) if stripped else (raw_label or ""),
        multiplier=multiplier if multiplier is not None else 1.0,
        adjustment_op=adjustment_op,
        adjustment_value=adjustment_value,
        unit=unit,
        offset=offset,
        height=height,
        formula=formula,
        stripped=stripped,
    )


def clean_name(
    raw_label: str,
    *,
    x_suffix_convention: XSuffixConvention = "multiplier",
    vacuum_marker: str = "Vacuo",
) -> str:
    """Shortcut for ``parse(raw_label).clean_name``."""
    return parse(
        raw_label,
        x_suffix_convention=x_suffix_convention,
        vacuum_marker=vacuum_marker,
    ).clean_name


def to_calibration(parsed: ParsedName) -> CalibrationSpec:
    """Fold a parsed name into the calibration spec the engine applies.

    ``+N`` becomes offset ``-N`` and ``-N`` becomes offset ``N`` so that every
    linear transform is ``(raw - offset) * multiplier``. A multiplicative
    adjustment scales on top of any multiplier token.
    """
    multiplier = parsed.multiplier
    offset = 0.0

    if parsed.adjustment_op is AdjustmentOp.ADD:
        offset = -parsed.adjustment_value
    elif parsed.adjustment_op is AdjustmentOp.SUB:
        offset = parsed.adjustment_value
    elif parsed.adjustment_op is AdjustmentOp.MUL and parsed.adjustment_value > 0:
        multiplier *= parsed.adjustment_value

    if parsed.formula is Formula.VACUUM_DERIVED:
        offset = parsed.offset if parsed.offset is not None else 0.0

    return CalibrationSpec(
        multiplier=multiplier,
        offset=offset,
        height=parsed.height if parsed.formula is Formula.VACUUM_DERIVED else None,
        formula=parsed.formula,
        unit=parsed.unit,
    )


def has_tokens(parsed: ParsedName) -> bool:
    """Return True if any calibration token was stripped from the label."""
    return bool(parsed.stripped)
