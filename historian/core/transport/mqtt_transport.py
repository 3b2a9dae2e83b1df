"""Transporte MQTT hacia la celda de limpieza.

Cada punto monitorizado es un topic retained `<prefix>/<point_id>`. El
transporte mantiene el último valor de cada punto: la suscripción recibe los
cambios del punto primario y `read()` devuelve los valores vigentes de los
puntos secundarios en una sola llamada.

La lectura de snapshot NO es atómica con la notificación que la dispara:
refleja lo último recibido del broker al momento de leer.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

import paho.mqtt.client as mqtt

from ..domain.record import Notification
from .base import DeviceTransport, TransportError
from .payloads import parse_point_message

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 5.0


class MQTTDeviceTransport(DeviceTransport):
    """Transporte MQTT (paho-mqtt) con caché de últimos valores.

    Responsabilidades:
    - Conexión/desconexión al broker
    - Suscripción a `<prefix>/+` (valores retained de todos los puntos)
    - Entrega de notificaciones a las suscripciones del pipeline
    - Lectura de snapshot desde la caché
    """

    def __init__(
        self,
        broker_host: str = "localhost",
        broker_port: int = 1883,
        topic_prefix: str = "cleaner/points",
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = "cleaner-historian",
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        client_factory: Optional[Callable[[str], mqtt.Client]] = None,
    ):
        super().__init__()
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.topic_prefix = topic_prefix.rstrip("/")
        self.username = username
        self.password = password
        self.client_id = f"{client_id}-{int(time.time())}"
        self.connect_timeout = connect_timeout
        self._client_factory = client_factory or _default_client_factory

        self._client: Optional[mqtt.Client] = None
        self._connected = threading.Event()
        self._closing = False

        self._cache_lock = threading.Lock()
        self._last_values: Dict[str, Tuple[Any, Optional[int]]] = {}

        self._messages_received = 0
        self._messages_invalid = 0

    @property
    def transport_name(self) -> str:
        return "mqtt"

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    def connect(self) -> None:
        """Conecta al broker y espera el CONNACK."""
        self._closing = False
        self._client = self._client_factory(self.client_id)
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message

        if self.username and self.password:
            self._client.username_pw_set(self.username, self.password)

        logger.info("[MQTT] Connecting to %s:%d", self.broker_host, self.broker_port)
        try:
            self._client.connect(self.broker_host, self.broker_port, keepalive=60)
        except (OSError, ValueError) as e:
            raise TransportError("connect", f"{self.broker_host}:{self.broker_port}: {e}")
        self._client.loop_start()

        if not self._connected.wait(self.connect_timeout):
            self._client.loop_stop()
            raise TransportError(
                "connect",
                f"no CONNACK from {self.broker_host}:{self.broker_port} "
                f"within {self.connect_timeout:.1f}s",
            )

    def disconnect(self) -> None:
        """Desconecta del broker."""
        self._closing = True
        if self._client:
            try:
                self._client.loop_stop()
                self._client.disconnect()
            except Exception as e:
                logger.warning("[MQTT] Disconnect error: %s", e)
        self._connected.clear()

    def read(self, point_ids: Sequence[str]) -> Dict[str, Any]:
        if not self.is_connected:
            raise TransportError("read", "transport not connected")
        with self._cache_lock:
            missing = [p for p in point_ids if p not in self._last_values]
            if missing:
                raise TransportError("read", f"no value received yet for {', '.join(missing)}")
            return {p: self._last_values[p][0] for p in point_ids}

    def topic_for(self, point_id: str) -> str:
        return f"{self.topic_prefix}/{point_id}"

    def _point_from_topic(self, topic: str) -> Optional[str]:
        prefix = self.topic_prefix + "/"
        if not topic.startswith(prefix):
            return None
        point_id = topic[len(prefix):]
        # <prefix>/<point>/set son escrituras, no valores
        if not point_id or "/" in point_id:
            return None
        return point_id

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        """Callback de conexión."""
        if reason_code == 0:
            self._connected.set()
            logger.info("[MQTT] Connected to broker")
            client.subscribe(f"{self.topic_prefix}/+", qos=1)
            logger.info("[MQTT] Subscribed to %s/+", self.topic_prefix)
        else:
            self._connected.clear()
            logger.error("[MQTT] Connection refused: rc=%s", reason_code)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        """Callback de desconexión."""
        was_connected = self._connected.is_set()
        self._connected.clear()
        if self._closing:
            logger.info("[MQTT] Disconnected")
            return
        logger.warning("[MQTT] Connection closed (rc=%s)", reason_code)
        if was_connected:
            self._notify_closed()

    def _on_message(self, client, userdata, msg):
        """Callback de mensaje - actualiza caché y delega a las suscripciones."""
        point_id = self._point_from_topic(msg.topic)
        if point_id is None:
            return
        self._messages_received += 1
        try:
            message = parse_point_message(msg.payload)
        except ValueError as e:
            self._messages_invalid += 1
            logger.warning("[MQTT] Invalid payload on %s: %s", msg.topic, e)
            return

        with self._cache_lock:
            self._last_values[point_id] = (message.value, message.source_timestamp)

        self._dispatch(Notification(point_id, message.value, message.source_timestamp))

    @property
    def stats(self) -> dict:
        with self._cache_lock:
            cached = len(self._last_values)
        return {
            "connected": self.is_connected,
            "messages_received": self._messages_received,
            "messages_invalid": self._messages_invalid,
            "points_cached": cached,
        }


def _default_client_factory(client_id: str) -> mqtt.Client:
    return mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        protocol=mqtt.MQTTv311,
    )
