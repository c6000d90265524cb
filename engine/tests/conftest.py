"""
Shared test fixtures for the normalization engine tests.

All engine env vars are cleaned before each test so EngineSettings always
starts from its defaults. Provides a small registry snapshot covering every
signal kind.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

import pytest
from engine.src.registry import Registry, build_registry

# All EngineSettings environment variable names, used for cleanup.
_ALL_ENGINE_ENV_VARS = (
    "X_SUFFIX_CONVENTION",
    "VACUUM_MARKER",
    "STATUS_VALUES",
    "REPORT_SLOT_MINUTES",
    "REPORT_PLACEHOLDER",
    "LOG_LEVEL",
    "HEALTH_PATH",
)


@pytest.fixture(autouse=True)
def _clean_engine_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all engine env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_ENGINE_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def registry_entries() -> dict[str, dict]:
    """Raw registry entries as delivered by the registry owner."""
    return {
        "hidr-colonial": {"slaveId": 1, "name": "Hidr. Colonial x100 2810m3"},
        "hidr-loja1": {"slaveId": 2, "name": "Hidr. Loja1 x1 0m3"},
        "temp-sala3": {"slaveId": 3, "name": "Temp. Sala 3 -1.5"},
        "vacuo-sala02": {"slaveId": 4, "name": "Vacuo Sala02 100 50 x0.75"},
        "entrada-3f": {"slaveId": 5, "channelId": 1, "name": "Entrada 3F x200A"},
        "entrada-3f-b": {"slaveId": 5, "channelId": 2, "name": "Bomba CAG 3F"},
        "loja-energia": {"slaveId": 6, "name": "Loja 12", "type": "ENERGY"},
    }


@pytest.fixture()
def registry(registry_entries: dict[str, dict]) -> Registry:
    """Registry snapshot built from :func:`registry_entries`."""
    return build_registry(registry_entries)
