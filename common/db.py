from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from .config import Settings, get_settings


logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


def build_sqlalchemy_url(db_path: str) -> str:
    if db_path == MEMORY_PATH:
        return "sqlite://"
    return f"sqlite:///{Path(db_path).expanduser().resolve()}"


def is_memory_path(db_path: str) -> bool:
    return db_path == MEMORY_PATH


def _enable_wal(dbapi_conn, _record) -> None:
    # WAL: los lectores no bloquean al escritor (y viceversa).
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
    finally:
        cursor.close()


def get_engine(db_path: Optional[str] = None, settings: Optional[Settings] = None) -> Engine:
    if db_path is None:
        db_path = (settings or get_settings()).db_path

    if is_memory_path(db_path):
        # Una sola conexión compartida; si no, cada conexión vería su propia BD vacía.
        engine = create_engine(
            build_sqlalchemy_url(db_path),
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )
        logger.info("[DB] Engine SQLite en memoria")
        return engine

    Path(db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        build_sqlalchemy_url(db_path),
        connect_args={"check_same_thread": False},
        pool_pre_ping=True,
        future=True,
    )
    event.listen(engine, "connect", _enable_wal)

    logger.info("[DB] Crear engine SQLite path=%s", db_path)

    # Test de conexión: un fallo aquí es fatal para el proceso que abre el store
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    logger.info("[DB] Test de conexión OK")

    return engine
