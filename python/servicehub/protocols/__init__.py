"""Shared types and injection interfaces for servicehub."""

from servicehub.protocols.interfaces import (
    DeviceSelector,
    HostServiceHandle,
    LocalServicesSource,
    LoggerProtocol,
    SocketConnection,
)
from servicehub.protocols.types import (
    CapabilityStatus,
    Device,
    Event,
    Operation,
    Service,
    ServiceState,
    Transport,
    new_service_id,
)

__all__ = [
    # Interfaces
    "LoggerProtocol",
    "LocalServicesSource",
    "HostServiceHandle",
    "DeviceSelector",
    "SocketConnection",
    # Types
    "Transport",
    "ServiceState",
    "Service",
    "Operation",
    "Event",
    "Device",
    "CapabilityStatus",
    "new_service_id",
]
