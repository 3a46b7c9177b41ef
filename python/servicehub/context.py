"""HubContext - explicit dependency container for servicehub.

Everything the host runtime would otherwise expose through a global object
(service address table, capability map, settings) is collected here by one
composition root and passed to ServiceHub.

Usage:
    context = create_hub_context(
        services={"LocalNode": {"url": "http://localhost:4000", "transport": "socket"}},
        capabilities={"serial": {}, "localServices": discovery_source},
    )
    async with ServiceHub(context) as hub:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Mapping, Optional, Union

import httpx

from servicehub.capabilities import CapabilityMap
from servicehub.channel import Connector
from servicehub.logging import create_logger
from servicehub.protocols import DeviceSelector, HostServiceHandle, LoggerProtocol, Transport
from servicehub.settings import Settings

ProbeKind = Literal["version", "count", "none"]


@dataclass(frozen=True)
class ServiceEntry:
    """One entry of the host-supplied service address table."""
    url: str
    transport: Transport = Transport.DESCRIPTOR_HTTP
    # Probe run against descriptor-http entries at hub start
    probe: ProbeKind = "version"
    # Host lifecycle hooks; with one, the probe reruns on every activity
    handle: Optional[HostServiceHandle] = field(default=None, compare=False)

    @classmethod
    def coerce(cls, value: Union[str, Mapping[str, Any], "ServiceEntry"]) -> "ServiceEntry":
        if isinstance(value, ServiceEntry):
            return value
        if isinstance(value, str):
            return cls(url=value)
        if isinstance(value, Mapping):
            if "url" not in value:
                raise ValueError(f"service entry is missing 'url': {dict(value)!r}")
            return cls(
                url=value["url"],
                transport=Transport(value.get("transport", Transport.DESCRIPTOR_HTTP)),
                probe=value.get("probe", "version"),
                handle=value.get("handle"),
            )
        raise TypeError(f"cannot build a ServiceEntry from {type(value).__name__}")


@dataclass
class HubContext:
    """Dependencies for ServiceHub and the components it builds.

    Attributes:
        settings: Runtime settings
        logger: Root logger
        capabilities: Host capability negotiation
        services: Host service address table, keyed by label
        device_selector: Host device chooser for the peripheral gateway
        http_client: Shared httpx client (tests inject a MockTransport here)
        connector: WebSocket connector override for command channels
    """

    settings: Settings
    logger: LoggerProtocol
    capabilities: CapabilityMap = field(default_factory=CapabilityMap)
    services: Dict[str, ServiceEntry] = field(default_factory=dict)
    device_selector: Optional[DeviceSelector] = None
    http_client: Optional[httpx.AsyncClient] = None
    connector: Optional[Connector] = None


def create_hub_context(
    settings: Optional[Settings] = None,
    *,
    capabilities: Optional[Union[CapabilityMap, Mapping[str, Any]]] = None,
    services: Optional[Mapping[str, Any]] = None,
    device_selector: Optional[DeviceSelector] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    connector: Optional[Connector] = None,
    logger: Optional[LoggerProtocol] = None,
) -> HubContext:
    """Composition root: build a HubContext from host-supplied pieces."""
    if not isinstance(capabilities, CapabilityMap):
        capabilities = CapabilityMap(capabilities)

    return HubContext(
        settings=settings or Settings(),
        logger=logger or create_logger("servicehub"),
        capabilities=capabilities,
        services={
            label: ServiceEntry.coerce(entry)
            for label, entry in (services or {}).items()
        },
        device_selector=device_selector,
        http_client=http_client,
        connector=connector,
    )


__all__ = ["HubContext", "ServiceEntry", "ProbeKind", "create_hub_context"]
