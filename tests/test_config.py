"""Tests de configuración (Settings / PipelineConfig).

Ejecutar:
    pytest tests/test_config.py -v
"""

import pytest

from common.config import DEFAULT_ENDPOINT, get_settings, parse_endpoint
from historian.pipeline import PipelineConfig


ENV_VARS = [
    "DB_PATH", "REPORT_DIR", "SAMPLE_WINDOW_HOURS", "DEVICE_ENDPOINT",
    "DEVICE_TOPIC_PREFIX", "MQTT_USERNAME", "MQTT_PASSWORD", "LOG_LEVEL",
    "HISTORIAN_SAMPLING_INTERVAL_MS", "HISTORIAN_QUEUE_DEPTH", "HISTORIAN_DISCARD_OLDEST",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HISTORIAN_ENV_FILE", str(tmp_path / "missing.env"))


class TestSettings:

    def test_defaults(self):
        s = get_settings()

        assert s.db_path.endswith("telemetry.db")
        assert s.report_dir == "reports"
        assert s.sample_window_hours == 8.0
        assert s.device_endpoint == DEFAULT_ENDPOINT
        assert (s.device_host, s.device_port) == ("localhost", 1883)
        assert s.topic_prefix == "cleaner/points"
        assert s.mqtt_username is None
        assert s.log_level == "INFO"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DB_PATH", "/var/lib/historian/t.db")
        monkeypatch.setenv("SAMPLE_WINDOW_HOURS", "12")
        monkeypatch.setenv("DEVICE_ENDPOINT", "mqtt://plc.local:8883")
        monkeypatch.setenv("DEVICE_TOPIC_PREFIX", "line2/cell/")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        s = get_settings()

        assert s.db_path == "/var/lib/historian/t.db"
        assert s.sample_window_hours == 12.0
        assert (s.device_host, s.device_port) == ("plc.local", 8883)
        assert s.topic_prefix == "line2/cell"
        assert s.log_level == "DEBUG"

    def test_env_file_does_not_override_environment(self, monkeypatch, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("REPORT_DIR=from-file\nDB_PATH=from-file.db\n")
        monkeypatch.setenv("HISTORIAN_ENV_FILE", str(env_file))
        monkeypatch.setenv("DB_PATH", "from-env.db")
        # registra REPORT_DIR para que el teardown limpie lo que cargue dotenv
        monkeypatch.setenv("REPORT_DIR", "")
        monkeypatch.delenv("REPORT_DIR")

        s = get_settings()

        assert s.db_path == "from-env.db"
        assert s.report_dir == "from-file"


class TestParseEndpoint:

    @pytest.mark.parametrize("endpoint,expected", [
        ("mqtt://broker:1884", ("broker", 1884)),
        ("tcp://10.0.0.5", ("10.0.0.5", 1883)),
    ])
    def test_supported(self, endpoint, expected):
        assert parse_endpoint(endpoint) == expected

    def test_unsupported_scheme(self):
        with pytest.raises(ValueError):
            parse_endpoint("opc.tcp://localhost:4840")


class TestPipelineConfig:

    def test_defaults(self):
        cfg = PipelineConfig.from_env()

        assert cfg.sampling_interval_ms == 500
        assert cfg.queue_depth == 20
        assert cfg.discard_oldest is True

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("HISTORIAN_SAMPLING_INTERVAL_MS", "250")
        monkeypatch.setenv("HISTORIAN_QUEUE_DEPTH", "5")
        monkeypatch.setenv("HISTORIAN_DISCARD_OLDEST", "false")

        cfg = PipelineConfig.from_env()

        assert (cfg.sampling_interval_ms, cfg.queue_depth, cfg.discard_oldest) == (250, 5, False)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
