"""Core module - Arquitectura del historiador de la celda.

Estructura:
- domain/      → Registros, ventanas, KPIs y puntos monitorizados
- transport/   → Contrato de transporte, cola con backpressure, MQTT, simulado
"""
