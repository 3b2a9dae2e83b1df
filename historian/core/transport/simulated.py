"""Transporte en proceso sobre el simulador de la celda.

Doble de test determinista para el pipeline: no hay hilos ni red, las
notificaciones se emiten explícitamente con `tick()` o `emit()`.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Sequence

from ..domain import points
from ..domain.record import Notification, now_ms
from ...simulation.device_simulator import DeviceSimulator
from .base import DeviceTransport, TransportError

logger = logging.getLogger(__name__)


class SimulatedTransport(DeviceTransport):
    """Transporte simulado con fallos inyectables."""

    def __init__(
        self,
        simulator: Optional[DeviceSimulator] = None,
        clock: Callable[[], int] = now_ms,
        fail_connect: bool = False,
        fail_subscribe: bool = False,
    ):
        super().__init__()
        self.simulator = simulator or DeviceSimulator()
        self._clock = clock
        self._connected = False
        self.fail_connect = fail_connect
        self.fail_subscribe = fail_subscribe
        self._read_failures = 0
        self.reads = 0

    @property
    def transport_name(self) -> str:
        return "simulated"

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        if self.fail_connect:
            raise TransportError("connect", "simulated connection refused")
        self._connected = True
        logger.info("[SIMULATED] Connected")

    def disconnect(self) -> None:
        self._connected = False

    def drop_connection(self) -> None:
        """Simula una caída del transporte."""
        was_connected = self._connected
        self._connected = False
        logger.warning("[SIMULATED] Connection closed")
        if was_connected:
            self._notify_closed()

    def _open_subscription(self, point_id: str) -> None:
        if self.fail_subscribe:
            raise TransportError("subscribe", f"simulated subscription failure for {point_id}")

    def fail_next_reads(self, count: int = 1) -> None:
        self._read_failures += count

    def read(self, point_ids: Sequence[str]) -> Dict[str, Any]:
        self.reads += 1
        if not self._connected:
            raise TransportError("read", "transport not connected")
        if self._read_failures > 0:
            self._read_failures -= 1
            raise TransportError("read", "simulated read timeout")
        current = self.simulator.snapshot()
        try:
            return {p: current[p] for p in point_ids}
        except KeyError as e:
            raise TransportError("read", f"unknown point {e}")

    def emit(self, value: Any, source_timestamp: Optional[int] = None,
             point_id: str = points.PRIMARY_POINT) -> None:
        self._dispatch(Notification(point_id, value, source_timestamp))

    def tick(self, with_source_timestamp: bool = True) -> None:
        """Avanza el simulador y notifica la temperatura."""
        state = self.simulator.tick()
        ts = self._clock() if with_source_timestamp else None
        self.emit(state.temperature, ts)
