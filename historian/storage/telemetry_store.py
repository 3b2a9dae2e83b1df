"""TelemetryStore - log append-only de registros de la celda.

Única tabla `telemetry`; el store es dueño exclusivo de la secuencia
persistida. El pipeline solo hace append y el reporte solo consulta.
"""

from __future__ import annotations

import logging
import threading
from contextlib import nullcontext
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from common.db import get_engine, is_memory_path
from ..core.domain.record import TelemetryRecord

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Fallo de una operación del store (append o consulta)."""


class StoreInitError(StoreError):
    """No se pudo crear el almacenamiento o el schema. Fatal para el proceso."""


SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS telemetry (
        timestamp INTEGER NOT NULL,
        temperature REAL NOT NULL,
        pump_status INTEGER NOT NULL,
        overheat INTEGER NOT NULL,
        cycle_id INTEGER NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_telemetry_timestamp ON telemetry (timestamp)",
)

INSERT_SQL = text(
    """
    INSERT INTO telemetry (timestamp, temperature, pump_status, overheat, cycle_id)
    VALUES (:timestamp, :temperature, :pump_status, :overheat, :cycle_id)
    """
)

# rowid desempata timestamps iguales en orden de llegada
RANGE_SQL = text(
    """
    SELECT timestamp, temperature, pump_status, overheat, cycle_id
    FROM telemetry
    WHERE timestamp >= :since
    ORDER BY timestamp ASC, rowid ASC
    """
)


class TelemetryStore:
    """Store de registros sobre SQLite.

    - `append()` serializa escrituras con un lock interno: el orden de
      llegada se conserva.
    - `range_query()` es una sola sentencia SELECT, así que ve un snapshot
      consistente de todo lo confirmado antes de la llamada. Con WAL los
      lectores no bloquean al escritor; en memoria se comparte una única
      conexión y las lecturas también toman el lock.
    """

    def __init__(self, engine: Engine, shared_connection: bool = False):
        self._engine = engine
        self._write_lock = threading.Lock()
        self._shared_connection = shared_connection

    @classmethod
    def open(cls, db_path: str) -> "TelemetryStore":
        """Abre (y crea si hace falta) el store en `db_path`.

        Raises:
            StoreInitError: si no se puede crear el directorio, el engine o el schema
        """
        try:
            engine = get_engine(db_path)
            store = cls(engine, shared_connection=is_memory_path(db_path))
            store.ensure_schema()
        except (OSError, SQLAlchemyError) as e:
            logger.error("[STORE] Init failed path=%s: %s", db_path, e)
            raise StoreInitError(f"cannot initialize telemetry store at {db_path}: {e}") from e
        logger.info("[STORE] Ready path=%s", db_path)
        return store

    def ensure_schema(self) -> None:
        """Crea la tabla e índice si no existen (idempotente)."""
        with self._engine.begin() as conn:
            for statement in SCHEMA_STATEMENTS:
                conn.execute(text(statement))

    def append(self, record: TelemetryRecord) -> None:
        """Agrega un registro de forma durable.

        Raises:
            StoreError: si la escritura falla
        """
        try:
            with self._write_lock:
                with self._engine.begin() as conn:
                    conn.execute(INSERT_SQL, record.to_row())
        except (SQLAlchemyError, OverflowError, ValueError) as e:
            raise StoreError(f"append failed ts={record.timestamp}: {e}") from e

    def range_query(self, since: int) -> List[TelemetryRecord]:
        """Registros con timestamp >= since, ascendentes. Sin límite superior."""
        guard = self._write_lock if self._shared_connection else nullcontext()
        try:
            with guard:
                with self._engine.connect() as conn:
                    rows = conn.execute(RANGE_SQL, {"since": int(since)}).mappings().all()
        except SQLAlchemyError as e:
            raise StoreError(f"range query failed since={since}: {e}") from e
        return [TelemetryRecord.from_row(row) for row in rows]

    def count(self) -> int:
        guard = self._write_lock if self._shared_connection else nullcontext()
        with guard:
            with self._engine.connect() as conn:
                return int(conn.execute(text("SELECT COUNT(*) FROM telemetry")).scalar_one())

    def close(self) -> None:
        self._engine.dispose()

    @property
    def engine(self) -> Optional[Engine]:
        return self._engine
