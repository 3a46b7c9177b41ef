"""Error taxonomy for servicehub.

Every error is local to the operation that raised it. Callers (ServiceHub in
particular) log the failure, publish an error Event and keep the remaining
services running. Nothing here is retried automatically.

Hierarchy:
    HubError
    ├── InvalidAddress          - malformed discovery input (synchronous)
    ├── DescribeError           - interface description fetch/parse failure
    ├── UnknownOperation        - invoke() references an absent operation
    ├── InvokeError             - the invoked call failed remotely
    ├── ChannelConnectionError  - command channel failed to open
    ├── ChannelClosed           - send() after close()
    ├── FrameError              - undecodable command channel frame
    └── PeripheralError
        ├── NoDeviceSelected    - user cancelled device selection
        └── PermissionDenied    - capability unavailable / not user initiated
"""

from typing import Optional


class HubError(Exception):
    """Base class for all servicehub errors."""


class InvalidAddress(HubError, ValueError):
    """A discovery notification carried an address that cannot be used."""

    def __init__(self, address: str, reason: str):
        self.address = address
        self.reason = reason
        super().__init__(f"Invalid service address {address!r}: {reason}")


class DescribeError(HubError):
    """The interface description could not be fetched or has the wrong shape."""

    def __init__(self, address: str, message: str):
        self.address = address
        self.message = message
        super().__init__(f"Failed to describe {address}: {message}")


class UnknownOperation(HubError, LookupError):
    """No operation is registered under (tag, operation_id)."""

    def __init__(self, tag: str, operation_id: str):
        self.tag = tag
        self.operation_id = operation_id
        super().__init__(f"Unknown operation {tag}.{operation_id}")


class InvokeError(HubError):
    """The remote call behind an operation failed."""

    def __init__(
        self,
        operation_id: str,
        message: str,
        status_code: Optional[int] = None,
    ):
        self.operation_id = operation_id
        self.message = message
        self.status_code = status_code
        suffix = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"Invoke {operation_id} failed{suffix}: {message}")


class ChannelConnectionError(HubError, ConnectionError):
    """The command channel could not be opened."""

    def __init__(self, url: str, message: str):
        self.url = url
        self.message = message
        super().__init__(f"Failed to connect to {url}: {message}")


class ChannelClosed(HubError):
    """The command channel is closed; no further frames can be sent."""


class FrameError(HubError, ValueError):
    """An inbound command channel frame could not be decoded."""


class PeripheralError(HubError):
    """Base class for peripheral gateway failures."""

    def __init__(self, kind: str, message: str):
        self.kind = kind
        self.message = message
        super().__init__(f"[{kind}] {message}")


class NoDeviceSelected(PeripheralError):
    """The user dismissed the device chooser without picking a device."""


class PermissionDenied(PeripheralError):
    """Peripheral access is not permitted in the current context."""


__all__ = [
    "HubError",
    "InvalidAddress",
    "DescribeError",
    "UnknownOperation",
    "InvokeError",
    "ChannelConnectionError",
    "ChannelClosed",
    "FrameError",
    "PeripheralError",
    "NoDeviceSelected",
    "PermissionDenied",
]
