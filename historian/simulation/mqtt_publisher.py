"""Publicador MQTT del simulador de la celda.

Expone el simulador como dispositivo: cada punto es un topic retained
`<prefix>/<point_id>` y las escrituras llegan por `<prefix>/<point_id>/set`.
Solo se publican los puntos que cambiaron desde el último tick (como un
monitored item que notifica por cambio de valor).

Ejecutar:
    python -m historian.simulation.mqtt_publisher --seed 7
"""

from __future__ import annotations

import argparse
import logging
import random
import sys
import threading
import time
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from common.config import get_settings
from ..core.domain.record import now_ms
from ..core.transport.payloads import build_point_message, parse_point_message
from .device_simulator import DeviceSimulator, SimulatorConfig

logger = logging.getLogger(__name__)


class SimulatorPublisher:
    """Publica el estado del simulador en el broker."""

    def __init__(
        self,
        simulator: DeviceSimulator,
        client: mqtt.Client,
        topic_prefix: str = "cleaner/points",
    ):
        self._simulator = simulator
        self._client = client
        self.topic_prefix = topic_prefix.rstrip("/")
        self._lock = threading.Lock()
        self._published: Dict[str, Any] = {}
        self._stop_event = threading.Event()

        self._client.on_connect = self._on_connect
        self._client.on_message = self._on_message

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code == 0:
            logger.info("[SIM] Connected to broker")
            client.subscribe(f"{self.topic_prefix}/+/set", qos=1)
            with self._lock:
                self._published.clear()
            self.publish_changes()
        else:
            logger.error("[SIM] Connection refused: rc=%s", reason_code)

    def _on_message(self, client, userdata, msg):
        parts = msg.topic[len(self.topic_prefix) + 1:].split("/")
        if len(parts) != 2 or parts[1] != "set":
            return
        try:
            message = parse_point_message(msg.payload)
            with self._lock:
                self._simulator.write(parts[0], message.value)
        except (ValueError, KeyError) as e:
            logger.warning("[SIM] Rejected write on %s: %s", msg.topic, e)
            return
        self.publish_changes()

    def publish_changes(self) -> int:
        """Publica los puntos cuyo valor cambió. Devuelve cuántos se publicaron."""
        ts = now_ms()
        with self._lock:
            current = self._simulator.snapshot()
            changed = {
                point: value for point, value in current.items()
                if self._published.get(point, object()) != value
            }
            self._published.update(changed)
        for point, value in changed.items():
            self._client.publish(
                f"{self.topic_prefix}/{point}",
                build_point_message(value, ts),
                qos=1,
                retain=True,
            )
        return len(changed)

    def tick(self) -> None:
        with self._lock:
            self._simulator.tick()
        self.publish_changes()

    def run(self, tick_seconds: float) -> None:
        while not self._stop_event.wait(tick_seconds):
            self.tick()

    def stop(self) -> None:
        self._stop_event.set()


def main(argv: Optional[list[str]] = None) -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    p = argparse.ArgumentParser(description="Parts-cleaner device simulator (MQTT)")
    p.add_argument("--host", default=settings.device_host)
    p.add_argument("--port", type=int, default=settings.device_port)
    p.add_argument("--prefix", default=settings.topic_prefix)
    p.add_argument("--tick-seconds", type=float, default=1.0)
    p.add_argument("--seed", type=int, default=None)
    args = p.parse_args(argv)

    simulator = DeviceSimulator(
        SimulatorConfig(tick_seconds=args.tick_seconds),
        rng=random.Random(args.seed),
    )
    client = mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=f"cleaner-simulator-{int(time.time())}",
        protocol=mqtt.MQTTv311,
    )
    if settings.mqtt_username and settings.mqtt_password:
        client.username_pw_set(settings.mqtt_username, settings.mqtt_password)
    publisher = SimulatorPublisher(simulator, client, args.prefix)

    try:
        client.connect(args.host, args.port, keepalive=60)
    except OSError as e:
        logger.critical("Failed to start simulator: %s", e)
        sys.exit(1)
    client.loop_start()
    logger.info("Simulator publishing on mqtt://%s:%d/%s", args.host, args.port, args.prefix)

    try:
        publisher.run(args.tick_seconds)
    except KeyboardInterrupt:
        logger.info("Simulator stopped")
    finally:
        publisher.stop()
        client.loop_stop()
        client.disconnect()


if __name__ == "__main__":
    main()
