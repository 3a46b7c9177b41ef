"""Capability negotiation with the host runtime.

The host supplies a mapping from capability name to a feature object. A
missing key (or an explicit False/None) means the capability is unavailable
and anything offering it must stay disabled.

Usage:
    capabilities = CapabilityMap({"serial": {}, "localServices": source})
    if capabilities.is_available(SERIAL):
        ...
    status = capabilities.negotiate(BLUETOOTH)
    status.available  # False
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, Mapping, Optional

from servicehub.protocols import CapabilityStatus

# Well-known capability names
SERIAL = "serial"
BLUETOOTH = "bluetooth"
LOCAL_SERVICES = "localServices"

PERIPHERAL_KINDS = (SERIAL, BLUETOOTH)


class CapabilityMap:
    """Read-only view over the host capability mapping."""

    def __init__(self, capabilities: Optional[Mapping[str, Any]] = None) -> None:
        self._capabilities: Dict[str, Any] = dict(capabilities or {})

    def negotiate(self, name: str) -> CapabilityStatus:
        """Return the typed availability of a capability."""
        value = self._capabilities.get(name)
        if value is None or value is False:
            return CapabilityStatus(name=name, available=False)
        features = value if isinstance(value, Mapping) else {}
        return CapabilityStatus(name=name, available=True, features=dict(features))

    def is_available(self, name: str) -> bool:
        return self.negotiate(name).available

    def get(self, name: str) -> Any:
        """Return the raw capability object, or None when unavailable."""
        if not self.is_available(name):
            return None
        return self._capabilities[name]

    def names(self) -> Iterator[str]:
        return (name for name in self._capabilities if self.is_available(name))

    def __repr__(self) -> str:
        return f"CapabilityMap({sorted(self.names())!r})"


__all__ = [
    "CapabilityMap",
    "SERIAL",
    "BLUETOOTH",
    "LOCAL_SERVICES",
    "PERIPHERAL_KINDS",
]
