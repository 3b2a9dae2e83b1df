"""Persistence - TelemetryStore."""

from .telemetry_store import StoreError, StoreInitError, TelemetryStore

__all__ = ["StoreError", "StoreInitError", "TelemetryStore"]
