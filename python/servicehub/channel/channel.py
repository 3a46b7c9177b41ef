"""Persistent command channel over a WebSocket.

State machine:
    CONNECTING ──open() ok──> OPEN ──close() / remote closure──> CLOSED
        └──────open() fails──────────────────────────────────────┘

Commands sent before open() completes are queued and flushed once the
connection is up; that is how the initial probe sequence is delivered.
Inbound frames reach on_message() handlers in wire order. Responses are not
correlated with requests.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Sequence
from urllib.parse import urlsplit, urlunsplit

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from servicehub.channel.protocol import decode_frame, encode_command, frame_to_event
from servicehub.errors import ChannelClosed, ChannelConnectionError, FrameError
from servicehub.protocols import Event, Service, SocketConnection
from servicehub.settings import Settings
from servicehub.utils.strings import redact_url, truncate_string

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[SocketConnection]]
MessageHandler = Callable[[Event], None]
CloseCallback = Callable[[], None]

_WS_SCHEMES = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}


class ChannelState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


def websocket_url(address: str) -> str:
    """Derive the WebSocket URL for a service address.

    http(s) addresses map to ws(s) on the same host and port; ws(s)
    addresses are used unchanged.
    """
    parts = urlsplit(address)
    scheme = _WS_SCHEMES.get(parts.scheme.lower())
    if scheme is None:
        raise ValueError(f"cannot derive a WebSocket URL from {address!r}")
    if parts.scheme.lower() in ("ws", "wss"):
        return address
    return urlunsplit((scheme, parts.netloc, "", "", ""))


async def _default_connector(url: str) -> SocketConnection:
    return await websockets.connect(url)


class CommandChannel:
    """Bidirectional command/response channel to one socket service.

    Usage:
        channel = CommandChannel(settings, label="LocalNode")
        channel.on_message(dispatcher.publish)
        await channel.open(service)      # sends the initial commands
        channel.send("version")
        await channel.close()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        label: Optional[str] = None,
        initial_commands: Optional[Sequence[str]] = None,
        connector: Optional[Connector] = None,
    ) -> None:
        self._settings = settings or Settings()
        self._label = label
        self._connector = connector or _default_connector
        self._state = ChannelState.CONNECTING
        self._connection: Optional[SocketConnection] = None
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._handlers: List[MessageHandler] = []
        self._close_callbacks: List[CloseCallback] = []
        self._reader_task: Optional[asyncio.Task] = None
        self._writer_task: Optional[asyncio.Task] = None
        self._url: Optional[str] = None

        commands = (
            self._settings.channel_initial_commands
            if initial_commands is None
            else initial_commands
        )
        for command in commands:
            self.send(command)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is ChannelState.OPEN

    @property
    def label(self) -> str:
        return self._label or self._url or ""

    async def open(self, service: Service) -> None:
        """Connect to the service and start exchanging frames.

        Raises:
            ChannelConnectionError: If the connection cannot be established.
            ChannelClosed: If the channel was already closed.
        """
        if self._state is ChannelState.CLOSED:
            raise ChannelClosed("channel is closed")
        if self._state is ChannelState.OPEN:
            return

        try:
            self._url = websocket_url(service.address)
        except ValueError as e:
            self._state = ChannelState.CLOSED
            raise ChannelConnectionError(service.address, str(e)) from e

        if self._label is None:
            self._label = service.label or service.address

        try:
            self._connection = await asyncio.wait_for(
                self._connector(self._url),
                timeout=self._settings.channel_open_timeout,
            )
        except asyncio.TimeoutError as e:
            self._state = ChannelState.CLOSED
            raise ChannelConnectionError(
                self._url, f"timed out after {self._settings.channel_open_timeout}s"
            ) from e
        except (OSError, WebSocketException) as e:
            self._state = ChannelState.CLOSED
            raise ChannelConnectionError(self._url, str(e) or type(e).__name__) from e

        if self._state is ChannelState.CLOSED:
            # close() raced with the connect
            await self._connection.close()
            raise ChannelClosed("channel closed while connecting")

        self._state = ChannelState.OPEN
        self._reader_task = asyncio.create_task(self._read_loop())
        self._writer_task = asyncio.create_task(self._write_loop())
        logger.info(
            "channel_opened",
            extra={"url": redact_url(self._url), "queued": self._outbox.qsize()},
        )

    async def close(self) -> None:
        """Release the connection. Idempotent."""
        if self._state is ChannelState.CLOSED and self._connection is None:
            return
        self._state = ChannelState.CLOSED
        await self._shutdown()
        logger.info("channel_closed", extra={"url": self._url})

    # =========================================================================
    # Frames
    # =========================================================================

    def send(self, command: str, **args: Any) -> None:
        """Queue an outbound command frame. Never suspends.

        Raises:
            ChannelClosed: If the channel is closed.
        """
        if self._state is ChannelState.CLOSED:
            raise ChannelClosed(f"cannot send {command!r}: channel is closed")
        self._outbox.put_nowait(encode_command(command, **args))

    def on_message(self, handler: MessageHandler) -> None:
        """Register a handler receiving every inbound frame as an Event."""
        self._handlers.append(handler)

    def on_close(self, callback: CloseCallback) -> None:
        """Register a callback for an unexpected remote closure."""
        self._close_callbacks.append(callback)

    # =========================================================================
    # Background tasks
    # =========================================================================

    async def _write_loop(self) -> None:
        try:
            while self._state is ChannelState.OPEN and self._connection is not None:
                message = await self._outbox.get()
                await self._connection.send(message)
        except asyncio.CancelledError:
            return
        except (ConnectionClosed, OSError) as e:
            logger.warning("channel_write_failed", extra={"url": self._url, "error": str(e)})

    async def _read_loop(self) -> None:
        try:
            async for message in self._connection:
                self._handle_message(message)
        except asyncio.CancelledError:
            return
        except ConnectionClosed as e:
            logger.warning("channel_connection_lost", extra={"url": self._url, "error": str(e)})
        except Exception as e:
            logger.error("channel_read_error", extra={"url": self._url, "error": str(e)})

        # Reaching here means the remote side ended the conversation
        if self._state is ChannelState.OPEN:
            self._state = ChannelState.CLOSED
            logger.info("channel_remote_closed", extra={"url": self._url})
            await self._shutdown(reader_done=True)
            for callback in list(self._close_callbacks):
                try:
                    callback()
                except Exception as e:
                    logger.error("channel_close_callback_error", extra={"error": str(e)})

    def _handle_message(self, message: Any) -> None:
        try:
            frame = decode_frame(message)
        except FrameError as e:
            logger.warning(
                "channel_frame_dropped",
                extra={"url": self._url, "error": str(e), "frame": truncate_string(str(message))},
            )
            return

        event = frame_to_event(frame, self.label)
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "channel_handler_error",
                    extra={"command": event.command, "error": str(e)},
                )

    async def _shutdown(self, reader_done: bool = False) -> None:
        tasks = [self._writer_task]
        if not reader_done:
            tasks.append(self._reader_task)
        for task in tasks:
            if task and not task.done() and task is not asyncio.current_task():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        connection, self._connection = self._connection, None
        if connection is not None:
            try:
                await connection.close()
            except (ConnectionClosed, OSError) as e:
                logger.debug("channel_close_error", extra={"error": str(e)})

        # Drop frames that were never written
        while not self._outbox.empty():
            self._outbox.get_nowait()


__all__ = [
    "CommandChannel",
    "ChannelState",
    "Connector",
    "MessageHandler",
    "websocket_url",
]
