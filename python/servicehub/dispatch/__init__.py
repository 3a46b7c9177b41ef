"""Event dispatch: one ordered log for every component's output."""

from servicehub.dispatch.dispatcher import Dispatcher, Observer, format_event

__all__ = ["Dispatcher", "Observer", "format_event"]
