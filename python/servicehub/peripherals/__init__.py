"""Capability-gated access to on-demand hardware peripherals."""

from servicehub.peripherals.gateway import (
    PeripheralGateway,
    current_gesture,
    device_from_info,
    user_gesture,
)

__all__ = [
    "PeripheralGateway",
    "user_gesture",
    "current_gesture",
    "device_from_info",
]
