"""IngestionPipeline - notificaciones del punto primario → registros persistidos.

Flujo por notificación:
  notificación (Temperature, sourceTimestamp)
  → lectura de snapshot de puntos secundarios (bomba, ciclo, alarma)
  → TelemetryRecord
  → TelemetryStore.append

Un único worker drena la suscripción: las notificaciones se procesan de a
una y en orden de cola, así que el orden persistido es el orden drenado.

Limitación conocida: el snapshot NO es atómico con la notificación. Refleja
los puntos secundarios al completar la lectura, que puede adelantarse o
atrasarse respecto del cambio de temperatura hasta un round trip.

Política de fallos locales: si falla el snapshot o el append se loguea la
etapa y se descarta la notificación. Sin reintentos.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..core.domain import points
from ..core.domain.record import Notification, TelemetryRecord, now_ms
from ..core.transport.base import DeviceTransport, Subscription, TransportError
from ..storage.telemetry_store import StoreError, TelemetryStore
from .config import PipelineConfig
from .stats import PipelineStats

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """Estados de la suscripción."""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    SNAPSHOTTING = "snapshotting"
    PERSISTING = "persisting"


class IngestionStartupError(Exception):
    """Fallo al conectar o suscribir. Fatal para el proceso."""

    def __init__(self, stage: str, cause: Exception):
        self.stage = stage
        self.cause = cause
        super().__init__(f"historian startup failed at {stage}: {cause}")


@dataclass(frozen=True)
class AppendResult:
    """Resultado de procesar una notificación.

    `stage` es "persisted" si se guardó, o la etapa que falló:
    "snapshot", "assemble" o "append".
    """
    stage: str
    record: Optional[TelemetryRecord] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.stage == "persisted"


class IngestionPipeline:
    """Handler de la suscripción al punto primario."""

    def __init__(self, store: TelemetryStore, clock: Callable[[], int] = now_ms):
        self._store = store
        self._clock = clock
        self._config = PipelineConfig()
        self._transport: Optional[DeviceTransport] = None
        self._subscription: Optional[Subscription] = None

        self._state = PipelineState.DISCONNECTED
        self._state_lock = threading.Lock()
        self._process_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._worker: Optional[threading.Thread] = None

        self._stats = PipelineStats()

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    def start(
        self,
        transport: DeviceTransport,
        config: Optional[PipelineConfig] = None,
        background: bool = True,
    ) -> Subscription:
        """Conecta, suscribe al punto primario y arranca el worker.

        Con `background=False` no se lanza el worker; el llamador drena con
        `drain_pending()`.

        Raises:
            IngestionStartupError: si falla la conexión o la suscripción
        """
        self._config = config or PipelineConfig()
        self._transport = transport
        transport.add_close_listener(self._on_transport_closed)

        try:
            transport.connect()
        except TransportError as e:
            logger.error("[HISTORIAN] Connect failed: %s", e)
            raise IngestionStartupError("connect", e) from e
        self._set_state(PipelineState.CONNECTED)
        logger.info("[HISTORIAN] Connected via %s", transport.transport_name)

        try:
            self._subscription = transport.subscribe(
                self._config.primary_point,
                sampling_interval_ms=self._config.sampling_interval_ms,
                queue_depth=self._config.queue_depth,
                discard_oldest=self._config.discard_oldest,
            )
        except TransportError as e:
            logger.error("[HISTORIAN] Subscribe failed: %s", e)
            transport.disconnect()
            self._set_state(PipelineState.DISCONNECTED)
            raise IngestionStartupError("subscribe", e) from e
        self._set_state(PipelineState.SUBSCRIBED)

        if background:
            self._stop_event.clear()
            self._worker = threading.Thread(
                target=self._worker_loop,
                daemon=True,
                name="historian-worker",
            )
            self._worker.start()
        return self._subscription

    def stop(self, drain: bool = True) -> None:
        """Detiene el worker. Con drain=True procesa antes el backlog pendiente."""
        self._stop_event.set()
        if self._subscription is not None:
            self._subscription.cancel(discard_pending=not drain)
        if self._worker is not None:
            self._worker.join(timeout=10.0)
            self._worker = None
        elif drain:
            self.drain_pending()
        if self._transport is not None:
            self._transport.disconnect()
        self._set_state(PipelineState.DISCONNECTED)
        logger.info("[HISTORIAN] Stopped. %s", self._stats)

    def drain_pending(self) -> int:
        """Procesa en el hilo llamador todas las notificaciones en cola."""
        if self._subscription is None:
            return 0
        processed = 0
        while True:
            notification = self._subscription.get(timeout=0)
            if notification is None:
                return processed
            self._process_guarded(notification)
            processed += 1

    def _worker_loop(self) -> None:
        subscription = self._subscription
        while True:
            notification = subscription.get(timeout=self._config.poll_timeout_seconds)
            if notification is None:
                if self._stop_event.is_set() or subscription.cancelled:
                    break
                continue
            self._process_guarded(notification)

    def _process_guarded(self, notification: Notification) -> None:
        """Un error inesperado descarta la notificación, no detiene el worker."""
        try:
            self.process_notification(notification)
        except Exception as e:
            self._stats.worker_errors += 1
            logger.error("[HISTORIAN] Worker error, notification dropped: %s", e)
            self._resume_state()

    def _on_transport_closed(self) -> None:
        # La reconexión es responsabilidad del transporte; el proceso sigue vivo.
        logger.warning("[HISTORIAN] Transport disconnected")
        self._set_state(PipelineState.DISCONNECTED)

    # ------------------------------------------------------------------
    # Procesamiento por notificación
    # ------------------------------------------------------------------

    def process_notification(self, notification: Notification) -> AppendResult:
        """Snapshot → registro → append para una notificación."""
        with self._process_lock:
            self._stats.received += 1
            timestamp = (
                notification.source_timestamp
                if notification.source_timestamp is not None
                else self._clock()
            )

            self._set_state(PipelineState.SNAPSHOTTING)
            try:
                snapshot = self._transport.read(list(self._config.snapshot_points))
            except TransportError as e:
                self._stats.snapshot_failed += 1
                logger.error(
                    "[HISTORIAN] Snapshot read failed, notification dropped ts=%d: %s",
                    timestamp, e,
                )
                self._resume_state()
                return AppendResult("snapshot", error=e)

            try:
                record = self._assemble(timestamp, notification.value, snapshot)
            except (KeyError, TypeError, ValueError) as e:
                self._stats.assemble_failed += 1
                logger.error(
                    "[HISTORIAN] Cannot assemble record ts=%d: %s", timestamp, e,
                )
                self._resume_state()
                return AppendResult("assemble", error=e)

            self._set_state(PipelineState.PERSISTING)
            result = self._persist(record)
            self._resume_state()
            return result

    @staticmethod
    def _assemble(timestamp: int, value, snapshot: dict) -> TelemetryRecord:
        return TelemetryRecord(
            timestamp=int(timestamp),
            temperature=float(value),
            pump_on=bool(snapshot[points.PUMP_STATUS]),
            overheat=bool(snapshot[points.OVERHEAT_ALARM]),
            cycle_id=int(snapshot[points.CLEANING_CYCLE_ID]),
        )

    def _persist(self, record: TelemetryRecord) -> AppendResult:
        try:
            self._store.append(record)
        except StoreError as e:
            self._stats.append_failed += 1
            logger.error("[HISTORIAN] Append failed, record dropped ts=%d: %s", record.timestamp, e)
            return AppendResult("append", record=record, error=e)

        self._stats.persisted += 1
        self._stats.last_persisted_ts = record.timestamp
        logger.info(
            "[HISTORIAN] Logged T=%.1f°C Pump=%s Overheat=%s",
            record.temperature,
            "ON" if record.pump_on else "OFF",
            record.overheat,
        )
        return AppendResult("persisted", record=record)

    # ------------------------------------------------------------------
    # Estado
    # ------------------------------------------------------------------

    def _set_state(self, state: PipelineState) -> None:
        with self._state_lock:
            self._state = state

    def _resume_state(self) -> None:
        connected = self._transport is not None and self._transport.is_connected
        self._set_state(PipelineState.SUBSCRIBED if connected else PipelineState.DISCONNECTED)

    @property
    def state(self) -> PipelineState:
        with self._state_lock:
            return self._state

    @property
    def stats(self) -> PipelineStats:
        if self._subscription is not None:
            self._stats.queue_dropped = self._subscription.stats["dropped"]
        return self._stats

    @property
    def subscription(self) -> Optional[Subscription]:
        return self._subscription
