"""ServiceRegistry - the live set of discovered services.

Discovery sources report addresses as they appear and disappear. The
registry deduplicates arrivals (one Service per address until it is
retracted), owns the Service table, and notifies subscribers exactly once
per arrival/departure.

Notification contract:
    - on_arrival() replays every currently-live Service to the new callback,
      then delivers future arrivals. Services retracted before subscription
      are never replayed.
    - on_departure() delivers future departures only.
    - A failing callback is logged; remaining callbacks still run.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from urllib.parse import urlsplit

from servicehub.errors import InvalidAddress
from servicehub.logging import get_component_logger
from servicehub.protocols import (
    LoggerProtocol,
    Service,
    ServiceState,
    Transport,
    new_service_id,
)

ServiceCallback = Callable[[Service], None]

ARRIVAL = "arrival"
DEPARTURE = "departure"

_SCHEME_TRANSPORTS: Dict[str, Transport] = {
    "http": Transport.DESCRIPTOR_HTTP,
    "https": Transport.DESCRIPTOR_HTTP,
    "ws": Transport.SOCKET,
    "wss": Transport.SOCKET,
    "serial": Transport.PERIPHERAL,
    "bluetooth": Transport.PERIPHERAL,
    "usb": Transport.PERIPHERAL,
}

_subscription_ids = itertools.count(1)


@dataclass(frozen=True)
class Subscription:
    """Handle for a registered arrival/departure callback."""
    id: int
    kind: str
    callback: ServiceCallback


def normalize_address(address: str) -> str:
    """Canonical key for an address: surrounding whitespace and trailing '/' removed."""
    return address.strip().rstrip("/")


def infer_transport(address: str) -> Transport:
    """Validate an address and infer its transport from the URL scheme.

    Raises:
        InvalidAddress: If the address is empty, unparseable, lacks a host,
            or uses a scheme with no known transport.
    """
    if not isinstance(address, str) or not address.strip():
        raise InvalidAddress(str(address), "address must be a non-empty string")

    try:
        parts = urlsplit(address.strip())
    except ValueError as e:
        raise InvalidAddress(address, str(e)) from e

    scheme = parts.scheme.lower()
    if not scheme:
        raise InvalidAddress(address, "missing URL scheme")

    transport = _SCHEME_TRANSPORTS.get(scheme)
    if transport is None:
        raise InvalidAddress(address, f"unsupported scheme {scheme!r}")

    if not parts.netloc:
        raise InvalidAddress(address, "missing host")

    if transport is not Transport.PERIPHERAL:
        try:
            hostname = parts.hostname
            parts.port  # noqa: B018 - raises ValueError on a malformed port
        except ValueError as e:
            raise InvalidAddress(address, str(e)) from e
        if not hostname:
            raise InvalidAddress(address, "missing host")

    return transport


class ServiceRegistry:
    """Tracks arrival and departure of services.

    report()/retract() are critical sections with respect to each other and
    to subscription changes; a re-entrant lock lets callbacks report or
    retract from within a notification.

    Usage:
        registry = ServiceRegistry(logger=logger)
        registry.on_arrival(lambda s: print("found", s.address))
        service = registry.report("http://svc1.local")
        registry.retract("http://svc1.local")
    """

    def __init__(self, logger: Optional[LoggerProtocol] = None) -> None:
        self._logger = get_component_logger("ServiceRegistry", logger)
        self._services: Dict[str, Service] = {}
        self._subscriptions: Dict[str, List[Subscription]] = {ARRIVAL: [], DEPARTURE: []}
        self._lock = threading.RLock()

    # =========================================================================
    # Table mutation
    # =========================================================================

    def report(
        self,
        address: str,
        transport: Optional[Transport] = None,
        label: Optional[str] = None,
    ) -> Service:
        """Register a Service for ``address`` unless one is already live.

        Returns:
            The new Service, or the existing one for a repeated report.

        Raises:
            InvalidAddress: If the address is malformed.
        """
        inferred = infer_transport(address)
        key = normalize_address(address)

        with self._lock:
            existing = self._services.get(key)
            if existing is not None:
                self._logger.debug("service_already_reported", service_id=existing.id, address=key)
                return existing

            service = Service(
                id=new_service_id(),
                address=key,
                transport=Transport(transport) if transport else inferred,
                label=label,
            )
            self._services[key] = service
            self._logger.info(
                "service_reported",
                service_id=service.id,
                address=key,
                transport=service.transport.value,
            )
            self._notify(ARRIVAL, service)
            return service

    def retract(self, address: str) -> Optional[Service]:
        """Close and remove the Service for ``address``.

        Idempotent: unknown or already-closed addresses are a no-op and
        return None. Never raises.
        """
        if not isinstance(address, str):
            return None
        key = normalize_address(address)

        with self._lock:
            service = self._services.pop(key, None)
            if service is None:
                self._logger.debug("service_retract_ignored", address=key)
                return None

            service.state = ServiceState.CLOSED
            self._logger.info("service_retracted", service_id=service.id, address=key)
            self._notify(DEPARTURE, service)
            return service

    def mark_active(self, address: str) -> Optional[Service]:
        """Promote a Discovered Service to Active. Returns None if not live."""
        with self._lock:
            service = self._services.get(normalize_address(address))
            if service is None:
                return None
            if service.state is ServiceState.DISCOVERED:
                service.state = ServiceState.ACTIVE
                self._logger.debug("service_active", service_id=service.id)
            return service

    # =========================================================================
    # Queries
    # =========================================================================

    def list(self) -> List[Service]:
        """Snapshot of currently Discovered/Active services."""
        with self._lock:
            return list(self._services.values())

    def get(self, address: str) -> Optional[Service]:
        with self._lock:
            return self._services.get(normalize_address(address))

    def get_by_id(self, service_id: str) -> Optional[Service]:
        with self._lock:
            for service in self._services.values():
                if service.id == service_id:
                    return service
            return None

    def __len__(self) -> int:
        return len(self._services)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and normalize_address(address) in self._services

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def on_arrival(self, callback: ServiceCallback) -> Subscription:
        """Subscribe to arrivals, replaying every currently-live Service."""
        with self._lock:
            subscription = self._subscribe(ARRIVAL, callback)
            for service in list(self._services.values()):
                self._deliver(subscription, service)
            return subscription

    def on_departure(self, callback: ServiceCallback) -> Subscription:
        with self._lock:
            return self._subscribe(DEPARTURE, callback)

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            try:
                self._subscriptions[subscription.kind].remove(subscription)
            except (KeyError, ValueError):
                pass

    def _subscribe(self, kind: str, callback: ServiceCallback) -> Subscription:
        subscription = Subscription(id=next(_subscription_ids), kind=kind, callback=callback)
        self._subscriptions[kind].append(subscription)
        return subscription

    def _notify(self, kind: str, service: Service) -> None:
        for subscription in list(self._subscriptions[kind]):
            self._deliver(subscription, service)

    def _deliver(self, subscription: Subscription, service: Service) -> None:
        try:
            subscription.callback(service)
        except Exception as e:
            self._logger.error(
                "service_callback_error",
                kind=subscription.kind,
                service_id=service.id,
                error=str(e),
            )


__all__ = [
    "ServiceRegistry",
    "Subscription",
    "ServiceCallback",
    "infer_transport",
    "normalize_address",
    "ARRIVAL",
    "DEPARTURE",
]
