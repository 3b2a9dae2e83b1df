"""Shift report package.

Modules:
- config: ReportConfig dataclass
- kpis: compute_window_kpis (pure)
- renderer: Excel renderer (pandas + openpyxl)
- assembler: ReportAssembler (query → KPIs → renderer)
- cli: CLI entry point (main)
"""

from .assembler import ReportAssembler, ReportOutcome
from .config import ReportConfig
from .kpis import compute_window_kpis
from .renderer import ExcelReportRenderer

__all__ = [
    "ExcelReportRenderer",
    "ReportAssembler",
    "ReportConfig",
    "ReportOutcome",
    "compute_window_kpis",
]
