"""KPIs de turno a partir de una secuencia ordenada de registros.

Funciones puras, sin acceso a BD.
"""

from __future__ import annotations

from statistics import fmean
from typing import Sequence

from historian.core.domain.record import Kpi, TelemetryRecord


def compute_window_kpis(records: Sequence[TelemetryRecord], window_end: int) -> Kpi:
    """Temperatura media y downtime de bomba de una ventana.

    - Media simple de las muestras (no ponderada por tiempo).
    - Downtime con modelo escalón continuo por izquierda: el estado de la
      bomba observado en una muestra se mantiene hasta la siguiente.
    - Si la última muestra tiene la bomba apagada, se asume apagada hasta
      `window_end`.

    Es un supuesto de modelado (mantener el último valor), no una garantía
    física: la resolución es el intervalo de muestreo. Las muestras con
    timestamp posterior a `window_end` se recortan a `window_end`, así el
    resultado queda en [0, window_end - primer timestamp].
    """
    if not records:
        return Kpi(avg_temperature=None, downtime_ms=0)

    avg_temperature = fmean(r.temperature for r in records)

    downtime_ms = 0
    for prev, curr in zip(records, records[1:]):
        if not prev.pump_on:
            downtime_ms += max(0, min(curr.timestamp, window_end) - min(prev.timestamp, window_end))

    last = records[-1]
    if not last.pump_on:
        downtime_ms += max(0, window_end - last.timestamp)

    return Kpi(avg_temperature=avg_temperature, downtime_ms=int(downtime_ms))
