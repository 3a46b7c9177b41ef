"""ServiceHub - composition of discovery, invocation and dispatch.

Architecture:
    localServices.on_found / on_closed
           |
    ServiceRegistry ── arrival ──> attach: SpecClient.describe()   (descriptor-http)
           |                              CommandChannel.open()    (socket)
           |                              ─> Dispatcher "service.arrived"
           └──── departure ──> close owned channel, drop client
                                          ─> Dispatcher "service.departed"

Departure always closes the channel owned by the departing service. Attach
work still in flight when a service departs finishes quietly: its result is
discarded and nothing is published for it.
A service that departs before its attach task runs never gets a client.

Host-table entries carrying a HostServiceHandle rerun their probe on every
activity notification and publish "service.closed" when the host reports
the process gone.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from servicehub.capabilities import LOCAL_SERVICES
from servicehub.channel import CommandChannel
from servicehub.context import HubContext, ServiceEntry
from servicehub.describe import SpecClient
from servicehub.dispatch import Dispatcher
from servicehub.errors import (
    ChannelClosed,
    ChannelConnectionError,
    DescribeError,
    InvalidAddress,
    InvokeError,
    NoDeviceSelected,
    PermissionDenied,
    UnknownOperation,
)
from servicehub.logging import get_component_logger, service_scope
from servicehub.peripherals import PeripheralGateway
from servicehub.probes import HttpProbe, ResourceCountProbe, VersionProbe
from servicehub.protocols import (
    Device,
    Event,
    LocalServicesSource,
    Operation,
    Service,
    Transport,
)
from servicehub.registry import ServiceRegistry, Subscription

SERVICE_ARRIVED = "service.arrived"
SERVICE_DEPARTED = "service.departed"
SERVICE_CLOSED = "service.closed"


@dataclass
class _Attachment:
    """Client state owned by one registry entry."""
    service: Service
    spec_client: Optional[SpecClient] = None
    channel: Optional[CommandChannel] = None

    @property
    def source(self) -> str:
        if self.spec_client is not None and self.spec_client.described:
            return self.spec_client.title
        if self.channel is not None:
            return self.channel.label
        return self.service.display_name


class ServiceHub:
    """Discovers services, attaches clients and funnels results into one log.

    Usage:
        context = create_hub_context(capabilities={"localServices": source})
        async with ServiceHub(context) as hub:
            hub.dispatcher.observe(print)
            await hub.wait_idle()
            event = await hub.invoke(service_id, "core", "ping")
    """

    def __init__(
        self,
        context: HubContext,
        *,
        registry: Optional[ServiceRegistry] = None,
        dispatcher: Optional[Dispatcher] = None,
    ) -> None:
        self._context = context
        self._settings = context.settings
        self._logger = get_component_logger("ServiceHub", context.logger)
        self.registry = registry or ServiceRegistry(logger=context.logger)
        self.dispatcher = dispatcher or Dispatcher(logger=context.logger)
        self.peripherals = PeripheralGateway(
            context.capabilities,
            context.device_selector,
            logger=context.logger,
        )
        self._attachments: Dict[str, _Attachment] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._subscriptions: List[Subscription] = []
        # Host-table labels whose lifecycle hooks are registered
        self._hooked: Set[str] = set()
        self._started = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Subscribe to the registry, bind discovery and run host-table probes."""
        if self._started:
            return
        self._started = True

        self._subscriptions = [
            self.registry.on_arrival(self._on_arrival),
            self.registry.on_departure(self._on_departure),
        ]

        source = self._context.capabilities.get(LOCAL_SERVICES)
        if source is not None:
            self.bind_discovery(source)
        else:
            self._logger.info("local_services_unavailable")

        for label, entry in self._context.services.items():
            self._start_host_entry(label, entry)

        self._logger.info(
            "hub_started",
            host_services=len(self._context.services),
            capabilities=sorted(self._context.capabilities.names()),
        )

    async def stop(self) -> None:
        """Retract every live service, close owned clients and unsubscribe."""
        if not self._started:
            return

        for service in self.registry.list():
            self.registry.retract(service.address)
        await self.wait_idle()

        for subscription in self._subscriptions:
            self.registry.unsubscribe(subscription)
        self._subscriptions = []
        self._started = False
        self._logger.info("hub_stopped")

    async def __aenter__(self) -> "ServiceHub":
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def wait_idle(self) -> None:
        """Wait until all scheduled attach/teardown/probe work has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # =========================================================================
    # Host service table
    # =========================================================================

    def _start_host_entry(self, label: str, entry: ServiceEntry) -> None:
        probe: Optional[HttpProbe] = None
        if entry.transport is Transport.SOCKET:
            self._report(entry.url, transport=Transport.SOCKET, label=label)
        elif entry.transport is Transport.DESCRIPTOR_HTTP:
            probe = self._build_probe(label, entry.url, entry.probe)

        if entry.handle is None:
            if probe is not None:
                self._spawn(probe.run())
            return

        # Hooks survive stop(); register them once per label
        if label not in self._hooked:
            self._hooked.add(label)
            if probe is not None:
                entry.handle.on_activity_detected(lambda: self._rerun_probe(probe))
            entry.handle.on_closed(lambda: self._on_host_service_closed(label, entry))

    def _rerun_probe(self, probe: HttpProbe) -> None:
        if self._started:
            self._spawn(probe.run())

    def _on_host_service_closed(self, label: str, entry: ServiceEntry) -> None:
        if not self._started:
            return
        self._logger.error("host_service_closed", label=label, url=entry.url)
        self.dispatcher.publish(Event(
            source=label,
            command=SERVICE_CLOSED,
            payload={"url": entry.url},
        ))

    # =========================================================================
    # Discovery
    # =========================================================================

    def bind_discovery(self, source: LocalServicesSource) -> None:
        """Feed a host discovery source into the registry and enumerate it."""
        source.on_found(self._on_found)
        source.on_closed(self._on_closed)
        result = source.get()
        if inspect.isawaitable(result):
            self._spawn(result)
        self._logger.info("discovery_bound")

    def _on_found(self, address: str) -> None:
        self._report(address)

    def _on_closed(self, address: str) -> None:
        self.registry.retract(address)

    def _report(self, address: str, **kwargs: Any) -> Optional[Service]:
        try:
            return self.registry.report(address, **kwargs)
        except InvalidAddress as e:
            self._logger.warning("discovery_address_rejected", address=str(address), reason=e.reason)
            return None

    # =========================================================================
    # Arrival / departure
    # =========================================================================

    def _on_arrival(self, service: Service) -> None:
        self._attachments[service.id] = _Attachment(service=service)
        if self._spawn(self._attach(service)) is None:
            self._attachments.pop(service.id, None)

    def _on_departure(self, service: Service) -> None:
        attachment = self._attachments.pop(service.id, None)
        source = attachment.source if attachment else service.display_name

        self.dispatcher.publish(Event(
            source=source,
            command=SERVICE_DEPARTED,
            payload={"id": service.id, "address": service.address},
        ))

        if attachment is not None and attachment.channel is not None:
            self._spawn(attachment.channel.close())

    async def _attach(self, service: Service) -> None:
        attachment = self._attachments.get(service.id)
        if attachment is None or not service.is_live:
            self._logger.debug("attach_skipped", service_id=service.id)
            return

        with service_scope(service):
            if service.transport is Transport.DESCRIPTOR_HTTP:
                await self._attach_descriptor(attachment)
            elif service.transport is Transport.SOCKET:
                await self._attach_channel(attachment)
            else:
                self._announce(attachment, {})

    async def _attach_descriptor(self, attachment: _Attachment) -> None:
        service = attachment.service
        client = SpecClient(
            self._settings,
            http_client=self._context.http_client,
            logger=self._context.logger,
        )
        attachment.spec_client = client

        try:
            operations = await client.describe(service)
        except DescribeError as e:
            self._logger.warning("describe_failed", error=e.message)
            if service.is_live:
                self.dispatcher.publish(Event.failure(service.display_name, "describe", e))
            else:
                self._discard(attachment)
            return

        if not service.is_live:
            self._logger.debug("describe_discarded")
            self._discard(attachment)
            return

        self.registry.mark_active(service.address)
        self._announce(attachment, {
            "title": client.title,
            "description": client.description,
            "operations": [op.label for op in operations],
        })

    async def _attach_channel(self, attachment: _Attachment) -> None:
        service = attachment.service
        channel = CommandChannel(
            self._settings,
            label=service.label,
            connector=self._context.connector,
        )
        attachment.channel = channel
        channel.on_message(self.dispatcher.publish)
        channel.on_close(lambda: self.registry.retract(service.address))

        try:
            await channel.open(service)
        except (ChannelConnectionError, ChannelClosed) as e:
            self._logger.warning("channel_open_failed", error=str(e))
            if service.is_live:
                self.dispatcher.publish(Event.failure(service.display_name, "open", e))
            else:
                self._discard(attachment)
            return

        if not service.is_live:
            await channel.close()
            self._discard(attachment)
            return

        self.registry.mark_active(service.address)
        self._announce(attachment, {})

    def _discard(self, attachment: _Attachment) -> None:
        service_id = attachment.service.id
        if self._attachments.get(service_id) is attachment:
            del self._attachments[service_id]

    def _announce(self, attachment: _Attachment, details: Mapping[str, Any]) -> None:
        service = attachment.service
        self.dispatcher.publish(Event(
            source=attachment.source,
            command=SERVICE_ARRIVED,
            payload={
                "id": service.id,
                "address": service.address,
                "transport": service.transport.value,
                **details,
            },
        ))

    # =========================================================================
    # Operations
    # =========================================================================

    def operations(self, service_id: str) -> Tuple[Operation, ...]:
        """Operation table of a described service.

        Raises:
            DescribeError: If the service has no described interface.
        """
        attachment = self._attachments.get(service_id)
        if attachment is None or attachment.spec_client is None:
            raise DescribeError(service_id, "service has no interface description")
        return attachment.spec_client.operations()

    async def invoke(
        self,
        service_id: str,
        tag: str,
        operation_id: str,
        args: Optional[Mapping[str, Any]] = None,
    ) -> Event:
        """Invoke an operation and publish its result.

        Raises:
            UnknownOperation: Unknown service or operation.
            InvokeError: The remote call failed.
        """
        attachment = self._attachments.get(service_id)
        if attachment is None or attachment.spec_client is None:
            raise UnknownOperation(tag, operation_id)

        try:
            payload = await attachment.spec_client.invoke(tag, operation_id, args)
        except (UnknownOperation, InvokeError) as e:
            self.dispatcher.publish(Event.failure(attachment.source, operation_id, e))
            raise

        event = Event(source=attachment.source, command=operation_id, payload=payload)
        self.dispatcher.publish(event)
        return event

    def send(self, service_id: str, command: str, **args: Any) -> None:
        """Queue a command on a socket service's channel.

        Raises:
            ChannelClosed: Unknown service, or its channel is closed.
        """
        attachment = self._attachments.get(service_id)
        if attachment is None or attachment.channel is None:
            raise ChannelClosed(f"no open channel for service {service_id}")
        attachment.channel.send(command, **args)

    async def request_peripheral(
        self,
        kind: str,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Device]:
        """Request a device and publish the outcome.

        Must be awaited inside ``user_gesture()``. Returns None when the user
        cancels or access is denied; the request can simply be retried.
        """
        try:
            device = await self.peripherals.request(kind, filters)
        except (NoDeviceSelected, PermissionDenied) as e:
            self._logger.warning("peripheral_request_failed", kind=kind, error=e.message)
            self.dispatcher.publish(Event.failure(kind, "request", e))
            return None

        self.dispatcher.publish(Event(source=kind, command="connected", payload=device.to_dict()))
        return device

    # =========================================================================
    # Internals
    # =========================================================================

    def _build_probe(self, label: str, url: str, kind: str) -> Optional[HttpProbe]:
        probe_cls = {"version": VersionProbe, "count": ResourceCountProbe}.get(kind)
        if probe_cls is None:
            return None
        return probe_cls(
            label,
            url,
            self.dispatcher,
            self._settings,
            http_client=self._context.http_client,
            logger=self._context.logger,
        )

    def _spawn(self, coro: Any) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._logger.warning("no_running_loop")
            if inspect.iscoroutine(coro):
                coro.close()
            return None

        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error("hub_task_failed", error=str(exc), error_type=type(exc).__name__)


__all__ = ["ServiceHub", "SERVICE_ARRIVED", "SERVICE_CLOSED", "SERVICE_DEPARTED"]
