"""Report job configuration."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ReportConfig:
    """Configuración del job de reporte de turno."""
    db_path: str
    report_dir: str
    window_hours: float
    sleep_seconds: float
    once: bool
