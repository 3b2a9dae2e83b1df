"""Tests del simulador de la celda y su publicador MQTT.

Ejecutar:
    pytest tests/test_device_simulator.py -v
"""

import json
import random
from unittest.mock import MagicMock

import pytest

from historian.core.domain import points
from historian.simulation import CleanerState, DeviceSimulator, SimulatorConfig, advance
from historian.simulation.mqtt_publisher import SimulatorPublisher


CFG = SimulatorConfig()


# =============================================================================
# TRANSICIÓN PURA
# =============================================================================

class TestAdvance:

    def test_heats_while_pump_runs(self):
        state = advance(CleanerState(temperature=50.0, pump_on=True), CFG, jitter=0.5)

        assert state.temperature == pytest.approx(50.0 + 1.2 + 0.7)
        assert state.pump_on is True

    def test_cools_to_floor_when_pump_off(self):
        assert advance(CleanerState(temperature=40.0), CFG).temperature == pytest.approx(39.5)
        assert advance(CleanerState(temperature=26.2), CFG).temperature == pytest.approx(26.0)

    def test_overheat_shuts_pump_off(self):
        state = advance(CleanerState(temperature=89.5, pump_on=True), CFG, jitter=0.0)

        assert state.temperature > CFG.overheat_threshold
        assert state.overheat is True
        assert state.pump_on is False

    def test_alarm_latches_until_reset_threshold(self):
        state = CleanerState(temperature=75.0, overheat=True)
        state = advance(state, CFG)
        assert state.overheat is True

        state = advance(CleanerState(temperature=70.2, overheat=True), CFG)
        assert state.temperature < CFG.reset_threshold
        assert state.overheat is False

    def test_advance_is_pure(self):
        original = CleanerState(temperature=60.0, pump_on=True, cycle_id=2)

        advance(original, CFG, jitter=0.3)

        assert original == CleanerState(temperature=60.0, pump_on=True, cycle_id=2)


# =============================================================================
# SIMULADOR
# =============================================================================

class TestDeviceSimulator:

    def test_seeded_runs_are_deterministic(self):
        a = DeviceSimulator(initial=CleanerState(pump_on=True), rng=random.Random(7))
        b = DeviceSimulator(initial=CleanerState(pump_on=True), rng=random.Random(7))

        for _ in range(30):
            assert a.tick() == b.tick()

    def test_pump_start_increments_cycle(self):
        sim = DeviceSimulator()

        sim.write(points.PUMP_STATUS, True)
        sim.write(points.PUMP_STATUS, False)
        sim.write(points.PUMP_STATUS, True)

        assert sim.state.cycle_id == 2
        assert sim.state.pump_on is True

    def test_unknown_point(self):
        with pytest.raises(KeyError):
            DeviceSimulator().write("Pressure", 1)

    def test_snapshot_exposes_all_points(self):
        snapshot = DeviceSimulator().snapshot()

        assert set(snapshot) == set(points.ALL_POINTS)

    def test_long_run_reaches_overheat_and_recovers(self):
        sim = DeviceSimulator(initial=CleanerState(pump_on=True), rng=random.Random(1))

        states = [sim.tick() for _ in range(200)]

        assert any(s.overheat for s in states)
        assert states[-1].pump_on is False
        assert states[-1].overheat is False


# =============================================================================
# PUBLICADOR
# =============================================================================

class TestPublisher:

    def test_publishes_only_changed_points(self):
        client = MagicMock()
        sim = DeviceSimulator(initial=CleanerState(temperature=26.0))
        publisher = SimulatorPublisher(sim, client, "cleaner/points")

        assert publisher.publish_changes() == 4
        client.publish.reset_mock()

        publisher.tick()  # en el piso, bomba apagada: nada cambia
        assert client.publish.call_count == 0

        sim.write(points.PUMP_STATUS, True)
        publisher.publish_changes()
        topics = sorted(c.args[0] for c in client.publish.call_args_list)
        assert topics == ["cleaner/points/CleaningCycleID", "cleaner/points/PumpStatus"]

    def test_messages_are_retained_json(self):
        client = MagicMock()
        publisher = SimulatorPublisher(DeviceSimulator(), client, "cleaner/points")

        publisher.publish_changes()

        call = next(c for c in client.publish.call_args_list
                    if c.args[0] == "cleaner/points/Temperature")
        body = json.loads(call.args[1])
        assert body["value"] == 30.0
        assert isinstance(body["sourceTimestamp"], int)
        assert call.kwargs["retain"] is True

    def test_set_topic_writes_simulator(self):
        client = MagicMock()
        sim = DeviceSimulator()
        publisher = SimulatorPublisher(sim, client, "cleaner/points")
        msg = MagicMock(topic="cleaner/points/PumpStatus/set", payload=b'{"value": true}')

        publisher._on_message(client, None, msg)

        assert sim.state.pump_on is True
        assert sim.state.cycle_id == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
