"""Transport layer - Contrato y transportes hacia la celda."""

from .backpressure import NotificationQueue
from .backpressure_config import QueueConfig, QueueStats
from .base import DeviceTransport, Subscription, TransportError

__all__ = [
    "DeviceTransport",
    "NotificationQueue",
    "QueueConfig",
    "QueueStats",
    "Subscription",
    "TransportError",
]
