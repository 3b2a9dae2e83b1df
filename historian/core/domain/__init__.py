"""Domain layer - Modelos del historiador."""

from .record import Kpi, Notification, TelemetryRecord, Window, now_ms
from . import points

__all__ = ["Kpi", "Notification", "TelemetryRecord", "Window", "now_ms", "points"]
