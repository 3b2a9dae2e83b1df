"""Simulador de la celda de limpieza de piezas.

El estado es un valor inmutable que avanza una vez por tick con una función
de transición pura; el simulador solo guarda el estado vigente y aplica las
escrituras externas (p.ej. arrancar la bomba).
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from ..core.domain import points

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleanerState:
    temperature: float = 30.0
    pump_on: bool = False
    cycle_id: int = 0
    overheat: bool = False

    def as_points(self) -> Dict[str, Any]:
        return {
            points.TEMPERATURE: self.temperature,
            points.PUMP_STATUS: self.pump_on,
            points.CLEANING_CYCLE_ID: self.cycle_id,
            points.OVERHEAT_ALARM: self.overheat,
        }


@dataclass(frozen=True)
class SimulatorConfig:
    """Parámetros físicos del simulador (por tick)."""
    heating_rate: float = 1.2
    heating_jitter: float = 1.4
    cooling_rate: float = 0.5
    ambient_floor: float = 26.0
    overheat_threshold: float = 90.0
    reset_threshold: float = 70.0
    tick_seconds: float = 1.0


def advance(state: CleanerState, config: SimulatorConfig, jitter: float = 0.0) -> CleanerState:
    """Transición pura de un tick.

    `jitter` en [0, 1) escala el calentamiento extra mientras la bomba está en
    marcha. Al superar el umbral de sobretemperatura se activa la alarma y la
    bomba se apaga (auto shut-off); la alarma se rearma por debajo del umbral
    de reset.
    """
    if state.pump_on:
        temperature = state.temperature + config.heating_rate + jitter * config.heating_jitter
    else:
        temperature = max(config.ambient_floor, state.temperature - config.cooling_rate)

    pump_on = state.pump_on
    overheat = state.overheat
    if temperature > config.overheat_threshold:
        overheat = True
        pump_on = False
    elif temperature < config.reset_threshold:
        overheat = False

    return replace(state, temperature=temperature, pump_on=pump_on, overheat=overheat)


class DeviceSimulator:
    """Dueño del estado simulado de la celda."""

    def __init__(
        self,
        config: Optional[SimulatorConfig] = None,
        initial: Optional[CleanerState] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or SimulatorConfig()
        self._state = initial or CleanerState()
        self._rng = rng or random.Random()
        self._ticks = 0

    @property
    def state(self) -> CleanerState:
        return self._state

    @property
    def ticks(self) -> int:
        return self._ticks

    def tick(self) -> CleanerState:
        previous = self._state
        self._state = advance(previous, self.config, self._rng.random())
        self._ticks += 1
        if self._state.overheat and not previous.overheat:
            logger.warning(
                "[SIM] Overheat at %.1f°C, pump shut off", self._state.temperature
            )
        return self._state

    def write(self, point_id: str, value: Any) -> CleanerState:
        """Escritura externa sobre un punto.

        Poner la bomba en marcha incrementa el contador de ciclos.
        """
        state = self._state
        if point_id == points.TEMPERATURE:
            state = replace(state, temperature=float(value))
        elif point_id == points.PUMP_STATUS:
            pump_on = bool(value)
            cycle_id = state.cycle_id + 1 if pump_on else state.cycle_id
            state = replace(state, pump_on=pump_on, cycle_id=cycle_id)
        elif point_id == points.CLEANING_CYCLE_ID:
            state = replace(state, cycle_id=int(value))
        elif point_id == points.OVERHEAT_ALARM:
            state = replace(state, overheat=bool(value))
        else:
            raise KeyError(f"unknown point: {point_id}")
        self._state = state
        logger.info("[SIM] write %s=%s", point_id, value)
        return state

    def snapshot(self) -> Dict[str, Any]:
        return self._state.as_points()
