"""Proceso historiador: suscripción a la celda → TelemetryStore.

Ejecutar:
    python -m historian.main
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from typing import Optional

from common.config import get_settings, parse_endpoint
from .core.transport.mqtt_transport import MQTTDeviceTransport
from .pipeline import IngestionPipeline, IngestionStartupError, PipelineConfig
from .storage import StoreInitError, TelemetryStore

logger = logging.getLogger(__name__)


def main(argv: Optional[list[str]] = None) -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    p = argparse.ArgumentParser(description="Parts-cleaner historian (ingestion)")
    p.add_argument("--db-path", default=settings.db_path)
    p.add_argument("--endpoint", default=settings.device_endpoint)
    p.add_argument("--stats-seconds", type=float, default=60.0,
                   help="interval between stats log lines")
    args = p.parse_args(argv)

    try:
        host, port = parse_endpoint(args.endpoint)
    except ValueError as e:
        logger.critical("Historian startup failed: %s", e)
        sys.exit(1)

    try:
        store = TelemetryStore.open(args.db_path)
    except StoreInitError as e:
        logger.critical("Historian startup failed: %s", e)
        sys.exit(1)

    transport = MQTTDeviceTransport(
        broker_host=host,
        broker_port=port,
        topic_prefix=settings.topic_prefix,
        username=settings.mqtt_username,
        password=settings.mqtt_password,
    )

    pipeline = IngestionPipeline(store)
    try:
        pipeline.start(transport, PipelineConfig.from_env())
    except IngestionStartupError as e:
        logger.critical("Historian startup failed: %s", e)
        store.close()
        sys.exit(1)

    logger.info("Historian connected to %s", args.endpoint)

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    while not stop.wait(args.stats_seconds):
        logger.info(
            "[HISTORIAN] stats=%s state=%s queue=%s",
            pipeline.stats.to_dict(), pipeline.state.value, pipeline.subscription.stats,
        )

    pipeline.stop(drain=True)
    store.close()


if __name__ == "__main__":
    main()
