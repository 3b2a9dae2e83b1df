"""Cola acotada de notificaciones con backpressure.

Cuando el dispositivo notifica más rápido de lo que el pipeline drena, la
cola descarta la notificación más antigua: el pipeline solo ve el backlog
más reciente (se cambia completitud por frescura).

Con intervalo de muestreo se acepta como mucho un item por intervalo. Los
cambios que llegan dentro del intervalo se colapsan en el último, que se
entrega al vencer el intervalo: el valor final de una ráfaga nunca se pierde.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable, Generic, Optional, TypeVar

from .backpressure_config import QueueConfig, QueueStats

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NotificationQueue(Generic[T]):
    """Cola con backpressure para notificaciones de un punto suscrito.

    Características:
    - Capacidad fija (queue depth de la suscripción)
    - Drop oldest/newest cuando se llena
    - Intervalo de muestreo: un item por intervalo, gana el más reciente
    - Thread-safe; `close()` despierta a los consumidores bloqueados

    Uso:
        queue = NotificationQueue[Notification](QueueConfig(max_queue_size=20))

        # Productor (hilo del transporte)
        queue.put(notification)

        # Consumidor (worker del pipeline)
        notification = queue.get(timeout=1.0)
    """

    def __init__(
        self,
        config: Optional[QueueConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config = config or QueueConfig()
        self._queue: deque[T] = deque()  # Manejamos límite manualmente
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._closed = False
        self._clock = clock

        self._stats = QueueStats(max_size=self._config.max_queue_size)

        self._min_interval = self._config.sampling_interval_ms / 1000.0
        self._last_accept_time: Optional[float] = None
        # último item recibido dentro del intervalo vigente
        self._pending: Optional[T] = None
        self._has_pending = False

        logger.debug(
            "NotificationQueue initialized: max_size=%d, sampling=%dms, drop_oldest=%s",
            self._config.max_queue_size,
            self._config.sampling_interval_ms,
            self._config.drop_oldest,
        )

    def put(self, item: T) -> bool:
        """Agrega un item a la cola.

        Returns:
            True si se encoló, False si la cola está cerrada, el item quedó
            retenido hasta el próximo muestreo o se descartó por estar llena
            (solo con drop newest)
        """
        with self._lock:
            if self._closed:
                return False

            if self._min_interval > 0:
                now = self._clock()
                self._flush_due(now)
                if (
                    self._last_accept_time is not None
                    and now - self._last_accept_time < self._min_interval
                ):
                    if self._has_pending:
                        self._stats.sampled_out += 1
                    self._pending = item
                    self._has_pending = True
                    return False
                self._last_accept_time = now

            return self._enqueue(item)

    def get(self, timeout: Optional[float] = None) -> Optional[T]:
        """Obtiene un item de la cola.

        Args:
            timeout: Segundos a esperar (None = bloquear hasta item o close)

        Returns:
            Item o None si timeout / cola cerrada y vacía
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._not_empty:
            while True:
                self._flush_due(self._clock())
                if self._queue or self._closed:
                    break
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    break
                self._not_empty.wait(self._wait_time(remaining))

            if not self._queue:
                return None

            item = self._queue.popleft()
            self._stats.dequeued += 1
            self._stats.current_size = len(self._queue)
            return item

    def close(self) -> None:
        """Cierra la cola: no acepta más items y despierta consumidores.

        Un item retenido por muestreo se encola para que el backlog lo incluya.
        """
        with self._lock:
            if self._has_pending:
                self._enqueue(self._take_pending())
            self._closed = True
            self._not_empty.notify_all()

    def clear(self) -> int:
        """Limpia la cola.

        Returns:
            Número de items eliminados
        """
        with self._lock:
            count = len(self._queue)
            self._queue.clear()
            if self._has_pending:
                self._take_pending()
                count += 1
            self._stats.current_size = 0
            return count

    def _enqueue(self, item: T) -> bool:
        # Backpressure: drop si está lleno
        if len(self._queue) >= self._config.max_queue_size:
            self._stats.dropped += 1
            if self._config.drop_oldest:
                self._queue.popleft()
                logger.debug("Backpressure: dropped oldest notification")
            else:
                logger.debug("Backpressure: dropped newest notification")
                return False

        self._queue.append(item)
        self._stats.enqueued += 1
        self._stats.current_size = len(self._queue)

        self._not_empty.notify()
        return True

    def _take_pending(self) -> T:
        item = self._pending
        self._pending = None
        self._has_pending = False
        return item

    def _flush_due(self, now: float) -> None:
        if not self._has_pending or now - self._last_accept_time < self._min_interval:
            return
        self._last_accept_time = now
        self._enqueue(self._take_pending())

    def _wait_time(self, timeout: Optional[float]) -> Optional[float]:
        if not self._has_pending:
            return timeout
        remaining = max(0.0, self._min_interval - (self._clock() - self._last_accept_time))
        return remaining if timeout is None else min(timeout, remaining)

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    @property
    def size(self) -> int:
        """Tamaño actual de la cola (sin el item retenido por muestreo)."""
        with self._lock:
            return len(self._queue)

    def get_stats(self) -> dict:
        """Estadísticas de la cola."""
        with self._lock:
            return {
                "enqueued": self._stats.enqueued,
                "dequeued": self._stats.dequeued,
                "dropped": self._stats.dropped,
                "sampled_out": self._stats.sampled_out,
                "pending_sample": self._has_pending,
                "current_size": len(self._queue),
                "max_size": self._config.max_queue_size,
                "utilization_pct": len(self._queue) / self._config.max_queue_size * 100,
            }
