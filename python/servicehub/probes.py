"""One-shot HTTP probes against entries of the host service table.

    VersionProbe        GET <url>/version  → Event(label, "version", <json>)
    ResourceCountProbe  GET <url>/users    → Event(label, "users", len(<json>))

Probe failures are logged and published as error events; they never raise.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from servicehub.dispatch import Dispatcher
from servicehub.logging import get_component_logger
from servicehub.protocols import Event, LoggerProtocol
from servicehub.settings import Settings
from servicehub.utils.http import client_scope, decode_body


class HttpProbe:
    """Base class: fetch one URL, turn the body into an Event, publish it."""

    command: str = ""

    def __init__(
        self,
        label: str,
        url: str,
        dispatcher: Dispatcher,
        settings: Optional[Settings] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        logger: Optional[LoggerProtocol] = None,
    ) -> None:
        self._label = label
        self._url = url
        self._dispatcher = dispatcher
        self._settings = settings or Settings()
        self._http_client = http_client
        self._logger = get_component_logger(type(self).__name__, logger).bind(source=label)

    @property
    def target(self) -> str:
        return str(httpx.URL(self._url.rstrip("/") + "/").join(self._path()))

    def _path(self) -> str:
        raise NotImplementedError

    def _payload(self, body: Any) -> Any:
        return body

    async def run(self) -> Event:
        """Fetch the target and publish the resulting Event."""
        try:
            async with client_scope(self._http_client, self._settings.http_timeout) as client:
                response = await client.get(self.target)
                response.raise_for_status()
            event = Event(
                source=self._label,
                command=self.command,
                payload=self._payload(decode_body(response)),
            )
        except (httpx.HTTPError, TypeError, ValueError) as e:
            self._logger.warning("probe_failed", url=self.target, error=str(e))
            event = Event.failure(self._label, self.command, e)

        self._dispatcher.publish(event)
        return event


class VersionProbe(HttpProbe):
    command = "version"

    def _path(self) -> str:
        return self._settings.version_path


class ResourceCountProbe(HttpProbe):
    """Publishes the number of items in a JSON collection resource."""

    def __init__(self, *args: Any, resource: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._resource = resource or self._settings.probe_resource
        self.command = self._resource

    def _path(self) -> str:
        return self._resource

    def _payload(self, body: Any) -> Any:
        return len(body)


__all__ = ["HttpProbe", "VersionProbe", "ResourceCountProbe"]
