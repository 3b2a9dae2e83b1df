"""Validadores de payloads de puntos publicados por MQTT.

Formato de cada mensaje (retained) en `<prefix>/<point_id>`:
{
    "value": 72.4,
    "sourceTimestamp": 1767254400123
}
`sourceTimestamp` es opcional; acepta milisegundos epoch o ISO-8601.
"""

from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class PointMessage(BaseModel):
    """Schema de validación de un valor de punto."""

    model_config = ConfigDict(populate_by_name=True)

    value: Union[bool, int, float]
    source_timestamp: Optional[int] = Field(default=None, alias="sourceTimestamp")

    @field_validator("value")
    @classmethod
    def validate_value(cls, v):
        if isinstance(v, float):
            if math.isnan(v):
                raise ValueError("Value is NaN")
            if math.isinf(v):
                raise ValueError("Value is infinite")
        return v

    @field_validator("source_timestamp", mode="before")
    @classmethod
    def parse_source_timestamp(cls, v):
        if v is None or v == "":
            return None
        if isinstance(v, bool):
            raise ValueError("Invalid sourceTimestamp")
        if isinstance(v, (int, float)):
            return int(v)
        if isinstance(v, str):
            try:
                dt = datetime.fromisoformat(v.replace("Z", "+00:00"))
            except ValueError as e:
                raise ValueError(f"Invalid sourceTimestamp format: {e}")
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return int(dt.timestamp() * 1000)
        raise ValueError("Invalid sourceTimestamp")


def parse_point_message(payload: bytes) -> PointMessage:
    """Parsea y valida un payload.

    Raises:
        ValueError: JSON inválido o schema no válido
    """
    try:
        data: Any = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Invalid JSON: {e}")
    if not isinstance(data, dict):
        raise ValueError("Payload must be a JSON object")
    try:
        return PointMessage.model_validate(data)
    except ValidationError as e:
        raise ValueError(str(e))


def build_point_message(value: Union[bool, int, float], source_timestamp: Optional[int]) -> bytes:
    body = {"value": value}
    if source_timestamp is not None:
        body["sourceTimestamp"] = int(source_timestamp)
    return json.dumps(body).encode("utf-8")
