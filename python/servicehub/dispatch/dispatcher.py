"""Dispatcher - the single ordered log every component publishes into.

Architecture:
    SpecClient invocations ─┐
    CommandChannel frames ──┼─> Dispatcher.publish() ─> log + observers
    Peripheral requests ────┘                             (presentation)

The Dispatcher performs no filtering or transformation: events are appended
in the order publish() is called and forwarded to every observer.
"""

from __future__ import annotations

import json
from typing import Any, Callable, List, Optional, Tuple

from servicehub.logging import get_component_logger
from servicehub.protocols import Event, LoggerProtocol
from servicehub.utils.strings import truncate_string

Observer = Callable[[Event], None]


class Dispatcher:
    """Append-only event log with synchronous fan-out.

    Usage:
        dispatcher = Dispatcher()
        unsubscribe = dispatcher.observe(print)
        dispatcher.publish(Event(source="Svc1", command="ping", payload={"ok": True}))
        unsubscribe()
    """

    def __init__(self, logger: Optional[LoggerProtocol] = None) -> None:
        self._logger = get_component_logger("Dispatcher", logger)
        self._log: List[Event] = []
        self._observers: List[Observer] = []

    def publish(self, event: Event) -> None:
        """Append an event and forward it to every registered observer."""
        self._log.append(event)

        if event.is_error:
            self._logger.error(
                "event_error",
                source=event.source,
                command=event.command,
                error=truncate_string(event.error, 500),
            )
        else:
            self._logger.debug("event_published", source=event.source, command=event.command)

        # Snapshot so observers may (un)subscribe while being notified
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                self._logger.error(
                    "event_observer_error",
                    error=str(e),
                    command=event.command,
                )

    def observe(self, callback: Observer) -> Callable[[], None]:
        """Register an observer for subsequently published events.

        Returns:
            A function removing the observer again.
        """
        self._observers.append(callback)

        def unsubscribe() -> None:
            try:
                self._observers.remove(callback)
            except ValueError:
                pass

        return unsubscribe

    @property
    def log(self) -> Tuple[Event, ...]:
        """Snapshot of every event published so far, in publish order."""
        return tuple(self._log)

    def __len__(self) -> int:
        return len(self._log)


def _render_payload(payload: Any) -> str:
    try:
        return json.dumps(payload, default=str)
    except (TypeError, ValueError):
        return repr(payload)


def format_event(event: Event) -> str:
    """Render an event as a single display line.

    >>> format_event(Event(source="Svc1", command="ping", payload={"ok": True}))
    'Svc1 (ping) - {"ok": true}'
    """
    head = f"{event.source} ({event.command})" if event.source else event.command
    if event.is_error:
        return f"{head} ! {event.error}"
    return f"{head} - {_render_payload(event.payload)}"


__all__ = ["Dispatcher", "Observer", "format_event"]
