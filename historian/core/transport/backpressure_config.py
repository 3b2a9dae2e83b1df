"""Configuración y modelos para la cola de notificaciones.

Extraído de backpressure.py para mantener archivos <150 líneas.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class QueueConfig:
    """Configuración de la cola de una suscripción."""
    max_queue_size: int = 20
    sampling_interval_ms: int = 0  # 0 = sin muestreo
    drop_oldest: bool = True  # True = drop oldest, False = drop newest

    def __post_init__(self) -> None:
        if self.max_queue_size < 1:
            raise ValueError("max_queue_size must be >= 1")
        if self.sampling_interval_ms < 0:
            raise ValueError("sampling_interval_ms must be >= 0")


@dataclass
class QueueStats:
    """Estadísticas de backpressure."""
    enqueued: int = 0
    dequeued: int = 0
    dropped: int = 0
    current_size: int = 0
    max_size: int = 0
    sampled_out: int = 0
