"""servicehub - client-side aggregator for locally discovered services.

Discovers services announced by the host, attaches the right client to each
one and funnels every result into a single ordered event log.

Sub-packages:
- registry/     - ServiceRegistry: arrival/departure of service addresses
- describe/     - SpecClient: interface description → callable operations
- channel/      - CommandChannel: persistent JSON command channel (WebSocket)
- peripherals/  - PeripheralGateway: user-mediated serial/bluetooth access
- dispatch/     - Dispatcher: the ordered event log and its observers
- protocols/    - shared types and protocols
- logging/      - structlog configuration and component loggers

Top-level modules:
- hub           - ServiceHub, the composition of the above
- context       - HubContext, composition root
- capabilities  - host capability negotiation
- probes        - one-shot host-table probes
- settings      - pydantic-settings configuration

Usage:
    from servicehub import ServiceHub, create_hub_context

    context = create_hub_context(capabilities={"localServices": source})
    async with ServiceHub(context) as hub:
        hub.dispatcher.observe(print)
        await hub.wait_idle()
"""

from servicehub.context import HubContext, ServiceEntry, create_hub_context
from servicehub.dispatch import Dispatcher, format_event
from servicehub.errors import HubError
from servicehub.hub import SERVICE_ARRIVED, SERVICE_CLOSED, SERVICE_DEPARTED, ServiceHub
from servicehub.peripherals import user_gesture
from servicehub.protocols import Device, Event, Operation, Service, ServiceState, Transport
from servicehub.registry import ServiceRegistry
from servicehub.settings import Settings

__version__ = "0.1.0"

__all__ = [
    "ServiceHub",
    "HubContext",
    "ServiceEntry",
    "create_hub_context",
    "Dispatcher",
    "format_event",
    "ServiceRegistry",
    "Settings",
    "HubError",
    "user_gesture",
    "Service",
    "ServiceState",
    "Transport",
    "Operation",
    "Event",
    "Device",
    "SERVICE_ARRIVED",
    "SERVICE_CLOSED",
    "SERVICE_DEPARTED",
]
