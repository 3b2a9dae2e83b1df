"""Fixtures compartidas de la suite."""

from __future__ import annotations

import pytest

from historian.core.domain.record import TelemetryRecord
from historian.storage import TelemetryStore


def make_record(timestamp: int, temperature: float = 30.0, pump_on: bool = True,
                overheat: bool = False, cycle_id: int = 1) -> TelemetryRecord:
    return TelemetryRecord(
        timestamp=timestamp,
        temperature=temperature,
        pump_on=pump_on,
        overheat=overheat,
        cycle_id=cycle_id,
    )


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "data" / "telemetry.db")


@pytest.fixture
def store(db_path):
    """Store SQLite en un directorio temporal."""
    s = TelemetryStore.open(db_path)
    yield s
    s.close()
