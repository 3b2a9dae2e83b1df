"""Historiador de la celda de limpieza.

Estructura modular:
- core/        → Dominio y transportes
- storage/     → TelemetryStore (SQLite vía SQLAlchemy)
- pipeline/    → IngestionPipeline (notificación → snapshot → registro)
- simulation/  → Simulador de la celda y publicador MQTT
- main.py      → Proceso historiador
"""
