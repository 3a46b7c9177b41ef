"""Protocol definitions - interfaces for dependency injection.

These are typing.Protocol classes for static type checking. Concrete
implementations are supplied by the host runtime (discovery source, device
chooser) or by servicehub itself (logger).
"""

from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Mapping,
    Optional,
    Protocol,
    runtime_checkable,
)


# =============================================================================
# LOGGING
# =============================================================================

@runtime_checkable
class LoggerProtocol(Protocol):
    """Structured logging interface."""

    def info(self, message: str, **kwargs: Any) -> None: ...
    def debug(self, message: str, **kwargs: Any) -> None: ...
    def warning(self, message: str, **kwargs: Any) -> None: ...
    def error(self, message: str, **kwargs: Any) -> None: ...
    def bind(self, **kwargs: Any) -> "LoggerProtocol": ...


# =============================================================================
# DISCOVERY
# =============================================================================

@runtime_checkable
class LocalServicesSource(Protocol):
    """Host-provided ``localServices`` capability.

    ``on_found``/``on_closed`` register callbacks receiving a service address;
    ``get`` triggers an initial enumeration which reports through on_found.
    """

    def on_found(self, callback: Callable[[str], None]) -> None: ...
    def on_closed(self, callback: Callable[[str], None]) -> None: ...
    def get(self) -> Any: ...


@runtime_checkable
class HostServiceHandle(Protocol):
    """Host lifecycle hooks for one entry of the service address table.

    ``on_activity_detected`` fires whenever the host sees the service come
    up or respond; ``on_closed`` fires when the host-managed process exits.
    """

    def on_activity_detected(self, callback: Callable[[], None]) -> None: ...
    def on_closed(self, callback: Callable[[], None]) -> None: ...


# =============================================================================
# PERIPHERALS
# =============================================================================

@runtime_checkable
class DeviceSelector(Protocol):
    """Host-provided, user-mediated device chooser.

    Returns the raw device info mapping for the chosen device, or None if
    the user dismissed the chooser.
    """

    def __call__(
        self,
        kind: str,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> Awaitable[Optional[Mapping[str, Any]]]: ...


# =============================================================================
# COMMAND CHANNEL
# =============================================================================

@runtime_checkable
class SocketConnection(Protocol):
    """Subset of a WebSocket client connection used by CommandChannel."""

    async def send(self, message: str) -> None: ...
    async def close(self) -> None: ...
    def __aiter__(self) -> AsyncIterator[Any]: ...


__all__ = [
    "LoggerProtocol",
    "LocalServicesSource",
    "HostServiceHandle",
    "DeviceSelector",
    "SocketConnection",
]
