"""PeripheralGateway - capability-gated, user-mediated device access.

A request must happen in direct response to a caller-initiated trigger. The
trigger is modelled as a transient "user gesture" scope held in a
ContextVar, so background tasks (which do not inherit an active gesture
unless created inside it) cannot open a device chooser:

    with user_gesture("testSerialConnection"):
        device = await gateway.request("serial")

Requests for the same kind are serialized; the lock is released on every
exit path, so a cancelled or denied request never blocks the next one.
"""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Mapping, Optional

from servicehub.capabilities import PERIPHERAL_KINDS, CapabilityMap
from servicehub.errors import NoDeviceSelected, PermissionDenied
from servicehub.logging import get_component_logger
from servicehub.protocols import Device, DeviceSelector, LoggerProtocol

_active_gesture: ContextVar[Optional[str]] = ContextVar("active_gesture", default=None)


@contextmanager
def user_gesture(trigger: str = "user") -> Iterator[str]:
    """Mark the enclosed code as running in response to a user action."""
    token = _active_gesture.set(trigger)
    try:
        yield trigger
    finally:
        _active_gesture.reset(token)


def current_gesture() -> Optional[str]:
    return _active_gesture.get()


def device_from_info(kind: str, info: Mapping[str, Any]) -> Device:
    """Normalize a host device info mapping into a Device.

    Serial ports report ``usbVendorId``/``usbProductId``; bluetooth devices
    report ``deviceId`` and an optional ``name``.
    """
    vendor_id = info.get("usbVendorId", info.get("vendorId"))
    product_id = info.get("usbProductId", info.get("productId"))
    name = info.get("name")

    device_id = info.get("deviceId") or info.get("id")
    if not device_id:
        if vendor_id is not None and product_id is not None:
            device_id = f"{int(vendor_id):04x}:{int(product_id):04x}"
        else:
            device_id = name or kind

    return Device(
        kind=kind,
        id=str(device_id),
        vendor_id=int(vendor_id) if vendor_id is not None else None,
        product_id=int(product_id) if product_id is not None else None,
        name=name,
    )


class PeripheralGateway:
    """Grants access to serial/bluetooth peripherals through the host chooser.

    Usage:
        gateway = PeripheralGateway(capabilities, selector, logger=logger)
        if gateway.is_available("serial"):
            with user_gesture("connect-button"):
                device = await gateway.request("serial")
    """

    def __init__(
        self,
        capabilities: CapabilityMap,
        selector: Optional[DeviceSelector] = None,
        *,
        logger: Optional[LoggerProtocol] = None,
    ) -> None:
        self._capabilities = capabilities
        self._selector = selector
        self._logger = get_component_logger("PeripheralGateway", logger)
        self._locks: Dict[str, asyncio.Lock] = {}

    def is_available(self, kind: str) -> bool:
        """Whether the host currently exposes peripheral ``kind``."""
        return (
            kind in PERIPHERAL_KINDS
            and self._selector is not None
            and self._capabilities.is_available(kind)
        )

    async def request(
        self,
        kind: str,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> Device:
        """Ask the user to pick a device of ``kind``.

        Raises:
            PermissionDenied: Outside a user gesture, ``kind`` is not a
                peripheral, or the capability is unavailable.
            NoDeviceSelected: The user dismissed the chooser, or the chooser
                itself failed.
        """
        trigger = current_gesture()
        if kind not in PERIPHERAL_KINDS:
            raise PermissionDenied(kind, "not a peripheral capability")
        if trigger is None:
            raise PermissionDenied(kind, "device requests must be user initiated")
        if not self.is_available(kind):
            raise PermissionDenied(kind, "capability is not available")

        lock = self._locks.setdefault(kind, asyncio.Lock())
        async with lock:
            self._logger.info("peripheral_requested", kind=kind, trigger=trigger)
            try:
                info = await self._selector(kind, filters)
            except Exception as e:
                self._logger.warning("peripheral_selector_failed", kind=kind, error=str(e))
                raise NoDeviceSelected(kind, f"device chooser failed: {e}") from e

        if not info:
            self._logger.info("peripheral_selection_cancelled", kind=kind)
            raise NoDeviceSelected(kind, "no device selected")

        device = device_from_info(kind, info)
        self._logger.info(
            "peripheral_connected",
            kind=kind,
            device_id=device.id,
            vendor_id=device.vendor_id,
            product_id=device.product_id,
        )
        return device


__all__ = [
    "PeripheralGateway",
    "user_gesture",
    "current_gesture",
    "device_from_info",
]
