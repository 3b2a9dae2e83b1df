"""DeviceTransport - Interface base para el transporte hacia la celda.

Define el contrato que consume el pipeline de ingesta: sesión, suscripción a
un punto monitorizado y lectura síncrona de snapshot.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..domain.record import Notification
from .backpressure import NotificationQueue
from .backpressure_config import QueueConfig

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Fallo del transporte (conexión, suscripción o lectura)."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class Subscription:
    """Handle de suscripción a un punto.

    Es un stream acotado y cancelable de `Notification`s: el transporte
    publica con `push()` y el pipeline consume con `get()`.
    """

    def __init__(
        self,
        point_id: str,
        sampling_interval_ms: int,
        queue_depth: int,
        discard_oldest: bool = True,
        on_cancel: Optional[Callable[["Subscription"], None]] = None,
    ):
        self.point_id = point_id
        self.sampling_interval_ms = sampling_interval_ms
        self.queue_depth = queue_depth
        self.discard_oldest = discard_oldest
        self._queue: NotificationQueue[Notification] = NotificationQueue(
            QueueConfig(
                max_queue_size=queue_depth,
                sampling_interval_ms=sampling_interval_ms,
                drop_oldest=discard_oldest,
            )
        )
        self._on_cancel = on_cancel
        self._cancelled = False

    def push(self, notification: Notification) -> bool:
        return self._queue.put(notification)

    def get(self, timeout: Optional[float] = None) -> Optional[Notification]:
        return self._queue.get(timeout=timeout)

    def cancel(self, discard_pending: bool = True) -> None:
        """Cancela la suscripción. Sin `discard_pending` el backlog sigue legible."""
        if self._cancelled:
            return
        self._cancelled = True
        self._queue.close()
        if discard_pending:
            dropped = self._queue.clear()
            if dropped:
                logger.info(
                    "[SUBSCRIPTION] %s cancelled, %d pending notifications discarded",
                    self.point_id, dropped,
                )
        if self._on_cancel is not None:
            self._on_cancel(self)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def pending(self) -> int:
        return self._queue.size

    @property
    def stats(self) -> dict:
        return self._queue.get_stats()


class DeviceTransport(ABC):
    """Interface común para los transportes hacia el dispositivo.

    Cada transporte (MQTT, simulado) implementa esta interface. Todos los
    fallos se reportan como `TransportError`.
    """

    def __init__(self) -> None:
        self._close_listeners: List[Callable[[], None]] = []
        self._subscriptions: List[Subscription] = []
        self._subs_lock = threading.Lock()

    @abstractmethod
    def connect(self) -> None:
        """Establece la sesión con el dispositivo."""

    @abstractmethod
    def disconnect(self) -> None:
        """Cierra la sesión gracefully."""

    @abstractmethod
    def read(self, point_ids: Sequence[str]) -> Dict[str, Any]:
        """Lectura síncrona de snapshot de varios puntos en una sola llamada.

        Returns:
            Dict point_id -> valor actual
        """

    @property
    @abstractmethod
    def transport_name(self) -> str:
        """Nombre del transporte: mqtt, simulated."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        pass

    def subscribe(
        self,
        point_id: str,
        sampling_interval_ms: int,
        queue_depth: int,
        discard_oldest: bool = True,
    ) -> Subscription:
        """Abre una suscripción a un punto monitorizado."""
        if not self.is_connected:
            raise TransportError("subscribe", "transport not connected")
        self._open_subscription(point_id)
        subscription = Subscription(
            point_id,
            sampling_interval_ms=sampling_interval_ms,
            queue_depth=queue_depth,
            discard_oldest=discard_oldest,
            on_cancel=self._forget_subscription,
        )
        with self._subs_lock:
            self._subscriptions.append(subscription)
        logger.info(
            "[%s] Subscribed to %s sampling=%dms queue=%d discard_oldest=%s",
            self.transport_name.upper(), point_id, sampling_interval_ms,
            queue_depth, discard_oldest,
        )
        return subscription

    def _open_subscription(self, point_id: str) -> None:
        """Hook para que el transporte prepare la suscripción nativa."""

    def _forget_subscription(self, subscription: Subscription) -> None:
        with self._subs_lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _dispatch(self, notification: Notification) -> None:
        """Entrega una notificación a las suscripciones del punto."""
        with self._subs_lock:
            targets = [s for s in self._subscriptions if s.point_id == notification.point_id]
        for subscription in targets:
            subscription.push(notification)

    def add_close_listener(self, callback: Callable[[], None]) -> None:
        self._close_listeners.append(callback)

    def _notify_closed(self) -> None:
        for callback in list(self._close_listeners):
            try:
                callback()
            except Exception:
                logger.exception("[%s] close listener failed", self.transport_name.upper())
