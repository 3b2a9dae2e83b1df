"""Puntos monitorizados expuestos por la celda de limpieza."""

from __future__ import annotations

TEMPERATURE = "Temperature"
PUMP_STATUS = "PumpStatus"
CLEANING_CYCLE_ID = "CleaningCycleID"
OVERHEAT_ALARM = "Overheat_Alarm"

PRIMARY_POINT = TEMPERATURE

# Orden fijo: es el orden en que se piden en la lectura de snapshot.
SNAPSHOT_POINTS: tuple[str, ...] = (PUMP_STATUS, CLEANING_CYCLE_ID, OVERHEAT_ALARM)

ALL_POINTS: tuple[str, ...] = (PRIMARY_POINT,) + SNAPSHOT_POINTS
