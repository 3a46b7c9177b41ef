"""Core data types shared by every servicehub component.

Service is the only mutable record and is mutated exclusively by the
ServiceRegistry (state transitions). Operation, Event, Device and
CapabilityStatus are frozen once created.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


class Transport(str, Enum):
    """How a Service is reached."""
    DESCRIPTOR_HTTP = "descriptor-http"
    SOCKET = "socket"
    PERIPHERAL = "peripheral"


class ServiceState(str, Enum):
    DISCOVERED = "discovered"
    ACTIVE = "active"
    CLOSED = "closed"


def new_service_id() -> str:
    """Generate an opaque service identifier."""
    return uuid.uuid4().hex[:12]


@dataclass
class Service:
    """A discovered, addressable backend."""
    id: str
    address: str
    transport: Transport
    state: ServiceState = ServiceState.DISCOVERED
    label: Optional[str] = None

    @property
    def is_live(self) -> bool:
        return self.state is not ServiceState.CLOSED

    @property
    def display_name(self) -> str:
        return self.label or self.address

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "address": self.address,
            "transport": self.transport.value,
            "state": self.state.value,
            "label": self.label,
        }


@dataclass(frozen=True)
class Operation:
    """A single invocable action on a Service.

    Identified for dispatch by (tag, operation_id). ``operation_id`` falls
    back to the path when the description omits it.
    """
    operation_id: str
    path: str
    method: str
    tags: Tuple[str, ...] = ()
    description: Optional[str] = None
    # Set when the owning path exposes more than one method
    shares_path: bool = False

    @property
    def label(self) -> str:
        if self.shares_path:
            return f"{self.operation_id} ({self.method})"
        return self.operation_id

    @property
    def dispatchable(self) -> bool:
        return bool(self.tags)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Event:
    """Normalized record appended to the Dispatcher log.

    Either carries a ``payload`` (success) or an ``error`` message.
    """
    source: str
    command: str
    payload: Any = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow, compare=False)

    @classmethod
    def failure(cls, source: str, command: str, error: Any) -> "Event":
        return cls(source=source, command=command, error=str(error))

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"source": self.source, "command": self.command}
        if self.is_error:
            data["error"] = self.error
        else:
            data["payload"] = self.payload
        return data


@dataclass(frozen=True)
class Device:
    """Descriptor of a peripheral the user granted access to."""
    kind: str
    id: str
    vendor_id: Optional[int] = None
    product_id: Optional[int] = None
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "id": self.id,
            "vendorId": self.vendor_id,
            "productId": self.product_id,
            "name": self.name,
        }


@dataclass(frozen=True)
class CapabilityStatus:
    """Typed result of negotiating a single host capability."""
    name: str
    available: bool
    features: Mapping[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.available


__all__ = [
    "Transport",
    "ServiceState",
    "Service",
    "Operation",
    "Event",
    "Device",
    "CapabilityStatus",
    "new_service_id",
]
