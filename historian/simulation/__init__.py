"""Simulador de la celda de limpieza."""

from .device_simulator import CleanerState, DeviceSimulator, SimulatorConfig, advance

__all__ = ["CleanerState", "DeviceSimulator", "SimulatorConfig", "advance"]
