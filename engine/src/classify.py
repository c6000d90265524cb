"""
Device type classification from device names.

Registry entries do not always carry a ``type``. When missing, the device
type is inferred from the clean name with ordered, accent-insensitive
substring rules, and the type is mapped to the :class:`SignalKind` that
drives calibration output keys and aggregation policy. A registry ``type``
that is neither a known device type nor a SignalKind name is ignored and
the name is classified instead.

CHANGELOG:
- 2026-10-19: Validate registry types against the known device types
- 2026-10-13: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import unicodedata

from engine.src.models import SignalKind

# ---------------------------------------------------------------------------
# Device types
# ---------------------------------------------------------------------------

COMPRESSOR = "COMPRESSOR"
VENTILADOR = "VENTILADOR"
ESCADA_ROLANTE = "ESCADA_ROLANTE"
ELEVADOR = "ELEVADOR"
MOTOR = "MOTOR"
RELOGIO = "RELOGIO"
ENTRADA = "ENTRADA"
CHILLER = "CHILLER"
FANCOIL = "FANCOIL"
BOMBA_CAG = "BOMBA_CAG"
MEDIDOR_3F = "3F_MEDIDOR"
HIDROMETRO = "HIDROMETRO"
CAIXA_DAGUA = "CAIXA_DAGUA"
TANK = "TANK"
SELETOR_AUTO_MANUAL = "SELETOR_AUTO_MANUAL"
TERMOSTATO = "TERMOSTATO"
SOLENOIDE = "SOLENOIDE"
GLOBAL_AUTOMACAO = "GLOBAL_AUTOMACAO"
CONTROLE_REMOTO = "CONTROLE REMOTO"

DEVICE_TYPES: frozenset[str] = frozenset(
    {
        COMPRESSOR,
        VENTILADOR,
        ESCADA_ROLANTE,
        ELEVADOR,
        MOTOR,
        RELOGIO,
        ENTRADA,
        CHILLER,
        FANCOIL,
        BOMBA_CAG,
        MEDIDOR_3F,
        HIDROMETRO,
        CAIXA_DAGUA,
        TANK,
        SELETOR_AUTO_MANUAL,
        TERMOSTATO,
        SOLENOIDE,
        GLOBAL_AUTOMACAO,
        CONTROLE_REMOTO,
    }
)
"""Every device type the classifier can produce."""

_KIND_BY_TYPE: dict[str, SignalKind] = {
    HIDROMETRO: SignalKind.PULSES,
    CAIXA_DAGUA: SignalKind.PRESSURE,
    TANK: SignalKind.PRESSURE,
    TERMOSTATO: SignalKind.TEMPERATURE,
}


def _normalize(name: str) -> str:
    decomposed = unicodedata.normalize("NFD", name or "")
    return "".join(c for c in decomposed if not unicodedata.combining(c)).upper()


def classify_device_type(name: str) -> str:
    """Infer the device type from a device name.

    Rules are checked in order; the first hit wins. Unknown names default to
    a three-phase energy meter.

    Examples:
        >>> classify_device_type("Compressor AC Norte 01")
        'COMPRESSOR'
        >>> classify_device_type("Hidrometro Loja 15")
        'HIDROMETRO'
        >>> classify_device_type("Sensor 3F Entrada")
        'ENTRADA'
    """
    upper = _normalize(name)

    if "COMPRESSOR" in upper:
        return COMPRESSOR
    if "VENT" in upper:
        return VENTILADOR
    if "ESRL" in upper or "ESCADA" in upper:
        return ESCADA_ROLANTE
    if "ELEV" in upper:
        return ELEVADOR
    if ("MOTR" in upper and "CHILLER" not in upper) or "MOTOR" in upper or "RECALQUE" in upper:
        return MOTOR
    if "RELOGIO" in upper or "RELOG" in upper or "REL " in upper:
        return RELOGIO
    if "ENTRADA" in upper or "SUBESTACAO" in upper or "SUBEST" in upper:
        return ENTRADA

    if "3F" in upper:
        if "CHILLER" in upper:
            return CHILLER
        if "FANCOIL" in upper:
            return FANCOIL
        if "TRAFO" in upper or "ENTRADA" in upper:
            return ENTRADA
        if "CAG" in upper:
            return BOMBA_CAG
        return MEDIDOR_3F

    if "HIDR" in upper or "BANHEIRO" in upper:
        return HIDROMETRO
    if any(k in upper for k in ("CAIXA DAGUA", "CX DAGUA", "CXDAGUA", "SCD")):
        return CAIXA_DAGUA
    if any(k in upper for k in ("TANK", "TANQUE", "RESERVATORIO")):
        return TANK
    if "AUTOMATICO" in upper:
        return SELETOR_AUTO_MANUAL
    if "TERMOSTATO" in upper or "TERMO" in upper or "TEMP" in upper:
        return TERMOSTATO
    if "ABRE" in upper:
        return SOLENOIDE
    if "AUTOMACAO" in upper or "GW_AUTO" in upper:
        return GLOBAL_AUTOMACAO
    if " AC " in upper or upper.endswith(" AC"):
        return CONTROLE_REMOTO

    return MEDIDOR_3F


def kind_for_device_type(device_type: str) -> SignalKind:
    """Map a device type (or a SignalKind name) to a SignalKind.

    Registry ``type`` values may already be a kind name (``"PULSES"``) or a
    device type (``"HIDROMETRO"``). Energy and unknown types map to ENERGY.
    """
    key = (device_type or "").strip().upper()
    if key in SignalKind.__members__:
        return SignalKind[key]
    return _KIND_BY_TYPE.get(key, SignalKind.ENERGY)


def is_known_device_type(device_type: str) -> bool:
    """Return True if *device_type* is a device type or a SignalKind name."""
    key = (device_type or "").strip().upper()
    return key in DEVICE_TYPES or key in SignalKind.__members__
