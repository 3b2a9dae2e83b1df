"""Tests del transporte MQTT con cliente paho simulado.

Ejecutar:
    pytest tests/test_mqtt_transport.py -v
"""

import json
from unittest.mock import MagicMock

import pytest

from historian.core.domain import points
from historian.core.transport import TransportError
from historian.core.transport.mqtt_transport import MQTTDeviceTransport
from historian.core.transport.payloads import parse_point_message


PREFIX = "cleaner/points"


def _message(point_id: str, value, ts=None, suffix=""):
    body = {"value": value}
    if ts is not None:
        body["sourceTimestamp"] = ts
    return MagicMock(topic=f"{PREFIX}/{point_id}{suffix}", payload=json.dumps(body).encode())


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def transport(client):
    t = MQTTDeviceTransport(
        topic_prefix=PREFIX,
        connect_timeout=0.1,
        client_factory=lambda client_id: client,
    )
    client.connect.side_effect = lambda *a, **kw: t._on_connect(client, None, {}, 0)
    return t


@pytest.fixture
def connected(transport, client):
    transport.connect()
    for point, value in ((points.PUMP_STATUS, True), (points.CLEANING_CYCLE_ID, 9),
                         (points.OVERHEAT_ALARM, False)):
        transport._on_message(client, None, _message(point, value, 1_000))
    return transport


# =============================================================================
# CONEXIÓN
# =============================================================================

class TestConnection:

    def test_connect_subscribes_to_point_topics(self, transport, client):
        transport.connect()

        assert transport.is_connected
        client.connect.assert_called_once_with("localhost", 1883, keepalive=60)
        client.subscribe.assert_called_once_with(f"{PREFIX}/+", qos=1)
        client.loop_start.assert_called_once()

    def test_connect_error_raises_transport_error(self, transport, client):
        client.connect.side_effect = ConnectionRefusedError("refused")

        with pytest.raises(TransportError) as exc_info:
            transport.connect()
        assert exc_info.value.operation == "connect"

    def test_connect_timeout_without_connack(self, transport, client):
        client.connect.side_effect = None

        with pytest.raises(TransportError):
            transport.connect()
        client.loop_stop.assert_called_once()

    def test_refused_connack(self, transport, client):
        client.connect.side_effect = lambda *a, **kw: transport._on_connect(client, None, {}, 5)

        with pytest.raises(TransportError):
            transport.connect()

    def test_unexpected_disconnect_notifies_listeners(self, connected, client):
        closed = []
        connected.add_close_listener(lambda: closed.append(True))

        connected._on_disconnect(client, None, {}, 7)

        assert connected.is_connected is False
        assert closed == [True]

    def test_requested_disconnect_is_silent(self, connected, client):
        closed = []
        connected.add_close_listener(lambda: closed.append(True))

        connected.disconnect()
        connected._on_disconnect(client, None, {}, 0)

        assert closed == []
        client.disconnect.assert_called_once()


# =============================================================================
# SUSCRIPCIÓN Y LECTURA
# =============================================================================

class TestSubscriptionAndRead:

    def test_primary_point_notifications(self, connected, client):
        sub = connected.subscribe(points.TEMPERATURE, sampling_interval_ms=0, queue_depth=5)

        connected._on_message(client, None, _message(points.TEMPERATURE, 42.5, 1_234))
        connected._on_message(client, None, _message(points.PUMP_STATUS, False, 1_235))

        notification = sub.get(timeout=0)
        assert (notification.point_id, notification.value, notification.source_timestamp) == (
            points.TEMPERATURE, 42.5, 1_234,
        )
        assert sub.get(timeout=0) is None

    def test_read_returns_latest_values(self, connected, client):
        connected._on_message(client, None, _message(points.CLEANING_CYCLE_ID, 10))

        snapshot = connected.read(list(points.SNAPSHOT_POINTS))

        assert snapshot == {
            points.PUMP_STATUS: True,
            points.CLEANING_CYCLE_ID: 10,
            points.OVERHEAT_ALARM: False,
        }

    def test_read_missing_point_fails(self, transport, client):
        transport.connect()
        transport._on_message(client, None, _message(points.PUMP_STATUS, True))

        with pytest.raises(TransportError) as exc_info:
            transport.read(list(points.SNAPSHOT_POINTS))
        assert exc_info.value.operation == "read"

    def test_read_when_disconnected_fails(self, transport):
        with pytest.raises(TransportError):
            transport.read([points.PUMP_STATUS])

    def test_subscribe_when_disconnected_fails(self, transport):
        with pytest.raises(TransportError):
            transport.subscribe(points.TEMPERATURE, 500, 20)

    def test_invalid_payload_is_ignored(self, connected, client):
        sub = connected.subscribe(points.TEMPERATURE, sampling_interval_ms=0, queue_depth=5)

        connected._on_message(client, None, MagicMock(topic=f"{PREFIX}/Temperature", payload=b"{bad"))
        connected._on_message(client, None, _message(points.TEMPERATURE, float("nan")))

        assert sub.get(timeout=0) is None
        assert connected.stats["messages_invalid"] == 2

    def test_set_topics_are_not_values(self, connected, client):
        connected._on_message(client, None, _message(points.PUMP_STATUS, False, suffix="/set"))

        assert connected.read([points.PUMP_STATUS]) == {points.PUMP_STATUS: True}


# =============================================================================
# PAYLOADS
# =============================================================================

class TestPayloads:

    def test_iso_timestamp(self):
        message = parse_point_message(b'{"value": 1.5, "sourceTimestamp": "2026-01-01T00:00:00.250Z"}')

        assert message.source_timestamp == 1767225600250

    def test_missing_timestamp(self):
        assert parse_point_message(b'{"value": 3}').source_timestamp is None

    def test_value_types_are_kept(self):
        assert parse_point_message(b'{"value": true}').value is True
        assert parse_point_message(b'{"value": 7}').value == 7

    @pytest.mark.parametrize("payload", [b"[]", b'{"sourceTimestamp": 1}', b"\xff"])
    def test_rejected(self, payload):
        with pytest.raises(ValueError):
            parse_point_message(payload)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
