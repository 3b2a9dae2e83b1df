"""Estadísticas del pipeline de ingesta."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class PipelineStats:
    """Contadores por notificación procesada."""

    received: int = 0
    persisted: int = 0
    snapshot_failed: int = 0
    assemble_failed: int = 0
    append_failed: int = 0
    worker_errors: int = 0
    queue_dropped: int = 0
    last_persisted_ts: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        return (
            f"Stats: received={self.received} persisted={self.persisted} "
            f"snapshot_failed={self.snapshot_failed} assemble_failed={self.assemble_failed} "
            f"append_failed={self.append_failed} worker_errors={self.worker_errors} "
            f"queue_dropped={self.queue_dropped}"
        )

    def to_dict(self) -> dict:
        """Convierte a diccionario."""
        return {
            "received": self.received,
            "persisted": self.persisted,
            "snapshot_failed": self.snapshot_failed,
            "assemble_failed": self.assemble_failed,
            "append_failed": self.append_failed,
            "worker_errors": self.worker_errors,
            "queue_dropped": self.queue_dropped,
            "last_persisted_ts": self.last_persisted_ts,
            "started_at": self.started_at.isoformat(),
            "success_rate": self._success_rate(),
        }

    def _success_rate(self) -> float:
        """Calcula tasa de éxito."""
        if self.received == 0:
            return 1.0
        return self.persisted / self.received
