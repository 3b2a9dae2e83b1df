"""Tests del proceso historiador (historian.main).

Tests obligatorios:
1. Fallos de arranque: store, conexión y suscripción terminan con exit 1
2. Caída del transporte: el proceso sigue vivo hasta la señal de parada

Ejecutar:
    pytest tests/test_historian_main.py -v
"""

import signal
import threading
import time
from types import SimpleNamespace

import pytest

import historian.main as historian_main
from historian.core.transport.simulated import SimulatedTransport
from historian.simulation import CleanerState, DeviceSimulator
from historian.storage import TelemetryStore


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    monkeypatch.setenv("HISTORIAN_ENV_FILE", str(tmp_path / "missing.env"))
    for name in ("DEVICE_ENDPOINT", "HISTORIAN_SAMPLING_INTERVAL_MS", "HISTORIAN_QUEUE_DEPTH"):
        monkeypatch.delenv(name, raising=False)


def _use_transport(monkeypatch, transport):
    monkeypatch.setattr(historian_main, "MQTTDeviceTransport", lambda **kwargs: transport)


# =============================================================================
# TEST 1: FALLOS DE ARRANQUE
# =============================================================================

class TestStartupFailures:

    def test_store_init_failure_exits_1(self, tmp_path, caplog):
        with pytest.raises(SystemExit) as exc_info:
            historian_main.main(["--db-path", str(tmp_path)])

        assert exc_info.value.code == 1
        assert "Historian startup failed" in caplog.text

    def test_connect_failure_exits_1(self, monkeypatch, db_path, caplog):
        _use_transport(monkeypatch, SimulatedTransport(fail_connect=True))

        with pytest.raises(SystemExit) as exc_info:
            historian_main.main(["--db-path", db_path])

        assert exc_info.value.code == 1
        assert "Historian startup failed" in caplog.text

    def test_subscribe_failure_exits_1(self, monkeypatch, db_path):
        transport = SimulatedTransport(fail_subscribe=True)
        _use_transport(monkeypatch, transport)

        with pytest.raises(SystemExit) as exc_info:
            historian_main.main(["--db-path", db_path])

        assert exc_info.value.code == 1
        assert transport.is_connected is False

    def test_unsupported_endpoint_exits_1(self, db_path):
        with pytest.raises(SystemExit) as exc_info:
            historian_main.main(["--db-path", db_path, "--endpoint", "opc.tcp://localhost:4840"])

        assert exc_info.value.code == 1


# =============================================================================
# TEST 2: CAÍDA DEL TRANSPORTE
# =============================================================================

class TestTransportDrop:

    def test_process_survives_drop_until_stopped(self, monkeypatch, db_path):
        handlers = {}
        monkeypatch.setattr(historian_main, "signal", SimpleNamespace(
            SIGINT=signal.SIGINT,
            SIGTERM=signal.SIGTERM,
            signal=lambda signum, handler: handlers.__setitem__(signum, handler),
        ))
        simulator = DeviceSimulator(initial=CleanerState(temperature=40.0, pump_on=True, cycle_id=1))
        transport = SimulatedTransport(simulator)
        _use_transport(monkeypatch, transport)

        process = threading.Thread(
            target=historian_main.main,
            args=(["--db-path", db_path, "--stats-seconds", "0.05"],),
            daemon=True,
        )
        process.start()
        for _ in range(200):
            if len(handlers) == 2:
                break
            time.sleep(0.01)
        assert len(handlers) == 2

        transport.emit(41.0, source_timestamp=1_000)
        time.sleep(0.2)
        transport.drop_connection()
        time.sleep(0.2)
        assert process.is_alive()

        handlers[signal.SIGTERM](signal.SIGTERM, None)
        process.join(timeout=5.0)
        assert not process.is_alive()

        store = TelemetryStore.open(db_path)
        try:
            assert [r.timestamp for r in store.range_query(0)] == [1_000]
        finally:
            store.close()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
