"""Modelo de dominio del historiador de la celda de limpieza."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional


MS_PER_HOUR = 3_600_000
MS_PER_MINUTE = 60_000


def now_ms() -> int:
    """Hora local de captura en milisegundos epoch."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TelemetryRecord:
    """Una observación de la celda.

    `timestamp` es el momento del cambio del punto primario (source timestamp)
    o la hora local de captura si el origen no lo informa. El resto de campos
    es el último valor conocido de cada punto secundario al capturar.
    """
    timestamp: int
    temperature: float
    pump_on: bool
    overheat: bool
    cycle_id: int

    def to_row(self) -> dict:
        """Convierte a parámetros de la tabla `telemetry`."""
        return {
            "timestamp": int(self.timestamp),
            "temperature": float(self.temperature),
            "pump_status": 1 if self.pump_on else 0,
            "overheat": 1 if self.overheat else 0,
            "cycle_id": int(self.cycle_id),
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TelemetryRecord":
        """Construye desde una fila de `telemetry`."""
        return cls(
            timestamp=int(row["timestamp"]),
            temperature=float(row["temperature"]),
            pump_on=bool(row["pump_status"]),
            overheat=bool(row["overheat"]),
            cycle_id=int(row["cycle_id"]),
        )


@dataclass(frozen=True)
class Window:
    """Ventana de turno.

    La consulta usa solo `start` (inclusive, sin límite superior); `end` es el
    borde cerrado hasta el que se extrapola el downtime.
    """
    start: int
    end: int

    @classmethod
    def ending_at(cls, end: int, hours: float) -> "Window":
        return cls(start=int(end - hours * MS_PER_HOUR), end=int(end))

    @property
    def duration_ms(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Kpi:
    """KPIs de una ventana. `avg_temperature` es None sin registros."""
    avg_temperature: Optional[float]
    downtime_ms: int

    @property
    def downtime_minutes(self) -> float:
        return self.downtime_ms / MS_PER_MINUTE


@dataclass(frozen=True)
class Notification:
    """Cambio de valor de un punto suscrito."""
    point_id: str
    value: Any
    source_timestamp: Optional[int] = None
