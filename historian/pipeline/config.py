"""Configuración del pipeline de ingesta."""

from __future__ import annotations

import os
from dataclasses import dataclass

from ..core.domain import points


@dataclass(frozen=True)
class PipelineConfig:
    """Parámetros de la suscripción al punto primario."""
    primary_point: str = points.PRIMARY_POINT
    snapshot_points: tuple[str, ...] = points.SNAPSHOT_POINTS
    sampling_interval_ms: int = 500
    queue_depth: int = 20
    discard_oldest: bool = True
    poll_timeout_seconds: float = 0.5

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        return cls(
            sampling_interval_ms=int(os.getenv("HISTORIAN_SAMPLING_INTERVAL_MS", "500")),
            queue_depth=int(os.getenv("HISTORIAN_QUEUE_DEPTH", "20")),
            discard_oldest=os.getenv("HISTORIAN_DISCARD_OLDEST", "true").lower() in (
                "true", "1", "yes",
            ),
        )
