"""
Telemetry normalization engine for field-device slave readings.

Parses calibration metadata out of human-assigned device names, resolves raw
fieldbus readings to canonical devices, calibrates and aggregates them, and
emits keyed telemetry batches ready for the ingestion transport.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-001)

TODO:
- None
"""
