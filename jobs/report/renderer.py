"""Renderer del reporte de turno en Excel (.xlsx).

Hoja "Shift Report": una fila por registro, una fila en blanco y el bloque
de resumen (ventana, temperatura media, downtime total en minutos).
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Protocol, Sequence

import pandas as pd

from historian.core.domain.record import Kpi, TelemetryRecord, Window

logger = logging.getLogger(__name__)

SHEET_NAME = "Shift Report"

COLUMNS = ["Timestamp", "Temperature (°C)", "Pump On", "Overheat", "Cycle ID"]
COLUMN_WIDTHS = {"A": 22, "B": 18, "C": 10, "D": 10, "E": 10}

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
WINDOW_FORMAT = "%Y-%m-%d %H:%M"
FILENAME_FORMAT = "%Y%m%d_%H%M%S"


class ReportRenderer(Protocol):
    def render(
        self,
        records: Sequence[TelemetryRecord],
        kpis: Kpi,
        window: Window,
    ) -> Path: ...


def format_ms(ts_ms: int, fmt: str = TIMESTAMP_FORMAT) -> str:
    """Formatea ms epoch en hora local."""
    return datetime.fromtimestamp(ts_ms / 1000).strftime(fmt)


def yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def report_filename(window_end: int) -> str:
    return f"shift_report_{format_ms(window_end, FILENAME_FORMAT)}_{window_end % 1000:03d}.xlsx"


def build_detail_frame(records: Sequence[TelemetryRecord]) -> pd.DataFrame:
    rows = [
        [
            format_ms(r.timestamp),
            r.temperature,
            yes_no(r.pump_on),
            yes_no(r.overheat),
            r.cycle_id,
        ]
        for r in records
    ]
    return pd.DataFrame(rows, columns=COLUMNS)


def build_summary_frame(kpis: Kpi, window: Window) -> pd.DataFrame:
    avg = "N/A" if kpis.avg_temperature is None else f"{kpis.avg_temperature:.2f}"
    rows = [
        ["Summary", None],
        ["Window", f"{format_ms(window.start, WINDOW_FORMAT)} - {format_ms(window.end, WINDOW_FORMAT)}"],
        ["Average Temperature", avg],
        ["Total Downtime (min)", f"{kpis.downtime_minutes:.1f}"],
    ]
    return pd.DataFrame(rows, columns=["label", "value"])


class ExcelReportRenderer:
    """Escribe el reporte con pandas (engine openpyxl)."""

    def __init__(self, report_dir: str | Path):
        self.report_dir = Path(report_dir)
        self.report_dir.mkdir(parents=True, exist_ok=True)

    def render(
        self,
        records: Sequence[TelemetryRecord],
        kpis: Kpi,
        window: Window,
    ) -> Path:
        detail = build_detail_frame(records)
        summary = build_summary_frame(kpis, window)
        path = self.report_dir / report_filename(window.end)

        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            detail.to_excel(writer, sheet_name=SHEET_NAME, index=False)
            # header + filas + 1 fila en blanco
            summary.to_excel(
                writer,
                sheet_name=SHEET_NAME,
                index=False,
                header=False,
                startrow=len(detail) + 2,
            )
            sheet = writer.sheets[SHEET_NAME]
            for column, width in COLUMN_WIDTHS.items():
                sheet.column_dimensions[column].width = width

        logger.info("Report written to %s", path)
        return path
