from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from dotenv import load_dotenv


DEFAULT_ENDPOINT = "mqtt://localhost:1883"


def _default_env_file() -> str:
    # .env en la raíz del repo; las variables reales del entorno siempre ganan.
    repo_root = Path(__file__).resolve().parents[1]
    return str(repo_root / ".env")


@dataclass(frozen=True)
class Settings:
    db_path: str
    report_dir: str
    sample_window_hours: float

    device_endpoint: str
    topic_prefix: str
    mqtt_username: str | None
    mqtt_password: str | None

    log_level: str

    @property
    def device_host(self) -> str:
        return parse_endpoint(self.device_endpoint)[0]

    @property
    def device_port(self) -> int:
        return parse_endpoint(self.device_endpoint)[1]


def parse_endpoint(endpoint: str) -> tuple[str, int]:
    """mqtt://host:port → (host, port). Puerto por defecto 1883."""
    parsed = urlparse(endpoint)
    if parsed.scheme not in ("mqtt", "tcp"):
        raise ValueError(f"Unsupported device endpoint scheme: {endpoint}")
    return parsed.hostname or "localhost", parsed.port or 1883


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("HISTORIAN_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    db_path = os.getenv("DB_PATH", str(Path("data") / "telemetry.db"))
    report_dir = os.getenv("REPORT_DIR", "reports")
    sample_window_hours = float(os.getenv("SAMPLE_WINDOW_HOURS", "8"))

    # Solo mqtt:// está soportado; host/puerto salen de la URL.
    device_endpoint = os.getenv("DEVICE_ENDPOINT", DEFAULT_ENDPOINT)
    topic_prefix = os.getenv("DEVICE_TOPIC_PREFIX", "cleaner/points").rstrip("/")

    return Settings(
        db_path=db_path,
        report_dir=report_dir,
        sample_window_hours=sample_window_hours,
        device_endpoint=device_endpoint,
        topic_prefix=topic_prefix,
        mqtt_username=os.getenv("MQTT_USERNAME") or None,
        mqtt_password=os.getenv("MQTT_PASSWORD") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
