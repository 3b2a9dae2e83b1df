"""ReportAssembler - consulta de ventana → KPIs → renderer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from historian.core.domain.record import MS_PER_HOUR, Kpi, Window
from historian.storage import TelemetryStore

from .kpis import compute_window_kpis
from .renderer import ReportRenderer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportOutcome:
    """Resultado de una ejecución. `path` es None si no hubo datos."""
    window: Window
    record_count: int
    kpis: Optional[Kpi] = None
    path: Optional[Path] = None

    @property
    def has_data(self) -> bool:
        return self.record_count > 0


class ReportAssembler:
    """Workflow one-shot del reporte de turno.

    Solo lee del store: corre en paralelo con la ingesta y ve lo confirmado
    al momento de la consulta. Lo que llegue después cae en el próximo reporte.
    """

    def __init__(self, store: TelemetryStore, renderer: ReportRenderer):
        self._store = store
        self._renderer = renderer

    def run(self, now: int, window_hours: float) -> ReportOutcome:
        window = Window.ending_at(now, window_hours)
        records = self._store.range_query(window.start)

        if not records:
            logger.info("No data available in the selected window.")
            return ReportOutcome(window=window, record_count=0)

        kpis = compute_window_kpis(records, window.end)
        logger.info(
            "[REPORT] window=%d..%d (%.1fh) records=%d avg=%s downtime_ms=%d",
            window.start, window.end, window.duration_ms / MS_PER_HOUR, len(records),
            "N/A" if kpis.avg_temperature is None else f"{kpis.avg_temperature:.2f}",
            kpis.downtime_ms,
        )
        path = self._renderer.render(records, kpis, window)
        return ReportOutcome(window=window, record_count=len(records), kpis=kpis, path=path)
