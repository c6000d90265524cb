"""
Immutable device registry snapshot and device resolution.

The registry is owned by an external collaborator and handed to the engine
once per pass. :func:`build_registry` parses every device name exactly once,
resolves the calibration formula and signal kind, and indexes descriptors by
physical address. The resulting :class:`Registry` is read-only.

Resolution order for a reading address:

1. exact ``(slave_id, channel_id)`` when both the reading and an entry carry
   a channel;
2. ``slave_id`` alone when the matching entry has no channel dimension.

Addresses claimed by more than one entry are a configuration error: they
are logged once when the snapshot is built, listed in
:attr:`Registry.conflicts`, and never resolved.

CHANGELOG:
- 2026-10-19: Ignore unknown registry types; flag labels without tokens;
  treat oversized integer ids as missing
- 2026-10-14: Refuse to resolve duplicate addresses instead of first-wins (STORY-005)
- 2026-10-13: Add exact clean-name lookup for status/sync flows (STORY-005)
- 2026-10-12: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from engine.src.classify import (
    classify_device_type,
    is_known_device_type,
    kind_for_device_type,
)
from engine.src.config import EngineSettings
from engine.src.models import Address, DeviceDescriptor, Formula, SignalKind
from engine.src.names import has_tokens, parse, to_calibration

logger = logging.getLogger(__name__)

_SLAVE_KEYS = ("slaveId", "slave_id", "id")
_CHANNEL_KEYS = ("channelId", "channel_id", "channel")
_NAME_KEYS = ("name", "label")


def _first(entry: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = entry.get(key)
        if value is not None and value != "":
            return value
    return None


def normalize_id(value: Any) -> str | None:
    """Normalize a slave/channel id to ``str`` (``7``, ``7.0`` and ``"7"`` agree).

    Integers wider than 64 bits are no device id and come back as ``None``.
    """
    if value is None:
        return None
    if isinstance(value, int) and value.bit_length() > 64:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Registry:
    """Read-only registry snapshot for one processing pass.

    Attributes:
        devices: All descriptors in registry order.
        by_address: Unambiguous address index.
        by_name: Clean name -> descriptors sharing that name.
        conflicts: Addresses claimed by more than one registry entry.
    """

    devices: tuple[DeviceDescriptor, ...] = ()
    by_address: Mapping[Address, DeviceDescriptor] = field(
        default_factory=lambda: MappingProxyType({})
    )
    by_name: Mapping[str, tuple[DeviceDescriptor, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    conflicts: tuple[Address, ...] = ()

    def __len__(self) -> int:
        return len(self.devices)

    def for_slave(self, slave_id: str) -> tuple[DeviceDescriptor, ...]:
        """Return every descriptor on *slave_id*, any channel."""
        return tuple(d for d in self.devices if d.address.slave_id == slave_id)


def describe(
    raw_label: str,
    address: Address,
    device_type: str | None = None,
    *,
    settings: EngineSettings | None = None,
) -> DeviceDescriptor:
    """Build a single :class:`DeviceDescriptor` from a raw label.

    The formula and kind are fixed here; nothing downstream inspects the
    name again.
    """
    settings = settings or EngineSettings()
    parsed = parse(
        raw_label,
        x_suffix_convention=settings.x_suffix_convention,
        vacuum_marker=settings.vacuum_marker,
    )
    if not has_tokens(parsed):
        logger.debug("Device '%s': no calibration tokens, using defaults", raw_label)

    resolved_type = (device_type or "").strip()
    if resolved_type and not is_known_device_type(resolved_type):
        logger.warning(
            "Device '%s': unknown registry type '%s', classifying by name",
            raw_label,
            resolved_type,
        )
        resolved_type = ""
    resolved_type = resolved_type or classify_device_type(parsed.clean_name)
    kind = kind_for_device_type(resolved_type)
    if parsed.formula is Formula.VACUUM_DERIVED:
        kind = SignalKind.PRESSURE

    return DeviceDescriptor(
        address=address,
        raw_label=raw_label,
        clean_name=parsed.clean_name,
        calibration=to_calibration(parsed),
        kind=kind,
        device_type=resolved_type,
        tokenized=has_tokens(parsed),
    )


def build_registry(
    entries: Mapping[str, Mapping[str, Any]] | Iterable[Mapping[str, Any]],
    *,
    settings: EngineSettings | None = None,
) -> Registry:
    """Parse raw registry entries into an immutable :class:`Registry`.

    Args:
        entries: Either a mapping ``device key -> entry`` or a sequence of
            entries. Each entry carries ``slaveId``/``slave_id``, an optional
            ``channelId``/``channel_id``/``channel``, ``name`` and an
            optional ``type``.
        settings: Engine settings; defaults are loaded when omitted.

    Returns:
        The snapshot. Entries without a slave id or name are skipped with a
        warning.
    """
    settings = settings or EngineSettings()
    items = entries.items() if isinstance(entries, Mapping) else enumerate(entries)

    devices: list[DeviceDescriptor] = []
    index: dict[Address, DeviceDescriptor] = {}
    conflicts: dict[Address, None] = {}

    for key, entry in items:
        if not isinstance(entry, Mapping):
            logger.warning("Registry entry '%s': not an object, skipped", key)
            continue
        slave_id = normalize_id(_first(entry, _SLAVE_KEYS))
        name = _first(entry, _NAME_KEYS)
        if slave_id is None or not isinstance(name, str):
            logger.warning("Registry entry '%s': missing slave id or name, skipped", key)
            continue

        address = Address(slave_id, normalize_id(_first(entry, _CHANNEL_KEYS)))
        device_type = entry.get("type")
        if not isinstance(device_type, str):
            device_type = None
        descriptor = describe(name, address, device_type, settings=settings)
        devices.append(descriptor)

        if address in index or address in conflicts:
            conflicts[address] = None
            continue
        index[address] = descriptor

    for address in conflicts:
        index.pop(address, None)
        logger.error(
            "Registry: address %s is claimed by more than one device; "
            "readings for it will not be resolved",
            address,
        )

    by_name: dict[str, list[DeviceDescriptor]] = {}
    for descriptor in devices:
        by_name.setdefault(descriptor.clean_name, []).append(descriptor)

    return Registry(
        devices=tuple(devices),
        by_address=MappingProxyType(index),
        by_name=MappingProxyType({k: tuple(v) for k, v in by_name.items()}),
        conflicts=tuple(conflicts),
    )


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def resolve(address: Address, registry: Registry) -> DeviceDescriptor | None:
    """Map a reading address to its descriptor.

    Returns ``None`` when no entry matches or the address is ambiguous;
    callers drop the reading and continue.
    """
    if address.channel_id is not None:
        exact = registry.by_address.get(address)
        if exact is not None:
            return exact
        if address in registry.conflicts:
            return None
    return registry.by_address.get(Address(address.slave_id))


def resolve_by_name(
    name: str,
    registry: Registry,
    *,
    settings: EngineSettings | None = None,
) -> DeviceDescriptor | None:
    """Find a device by its clean name.

    *name* is cleaned with the same tokenizer as the registry and compared
    case-sensitively and exactly; there is no substring matching. Several
    entries may share one clean name (they are the same logical device);
    the first in registry order is returned.
    """
    settings = settings or EngineSettings()
    key = parse(
        name,
        x_suffix_convention=settings.x_suffix_convention,
        vacuum_marker=settings.vacuum_marker,
    ).clean_name
    matches = registry.by_name.get(key, ())
    return matches[0] if matches else None
