"""Tests for the command channel and its frame codec.

Uses FakeConnection (an in-memory async iterator) in place of a real
WebSocket so ordering and closure can be driven from the test.
"""

import asyncio
import json

import pytest

from fixtures.fakes import FakeConnector, HangingConnector, settle, wait_until
from servicehub.channel import (
    MAX_FRAME_SIZE,
    ChannelState,
    CommandChannel,
    decode_frame,
    encode_command,
    frame_to_event,
    websocket_url,
)
from servicehub.errors import ChannelClosed, ChannelConnectionError, FrameError
from servicehub.protocols import Service, Transport

NODE = "http://localhost:4000"


def _service(address: str = NODE, label: str = "LocalNode") -> Service:
    return Service(id="node-1", address=address, transport=Transport.SOCKET, label=label)


# ---------------------------------------------------------------------------
# Frame codec
# ---------------------------------------------------------------------------


class TestFrames:
    def test_encode_command_with_args(self):
        assert json.loads(encode_command("version")) == {"command": "version"}
        assert json.loads(encode_command("echo", text="hi")) == {"command": "echo", "text": "hi"}

    def test_encode_rejects_empty_command(self):
        with pytest.raises(ValueError):
            encode_command("")

    def test_decode_rejects_invalid_json(self):
        with pytest.raises(FrameError):
            decode_frame("{not json")

    def test_decode_rejects_non_object(self):
        with pytest.raises(FrameError):
            decode_frame("[1, 2]")

    def test_decode_rejects_oversized_frame(self):
        with pytest.raises(FrameError):
            decode_frame("x" * (MAX_FRAME_SIZE + 1))

    def test_frame_source_overrides_channel_label(self):
        event = frame_to_event({"source": "Sensor", "command": "read", "payload": 3}, "LocalNode")
        assert (event.source, event.command, event.payload) == ("Sensor", "read", 3)

    def test_frame_without_source_uses_label(self):
        event = frame_to_event({"command": "version", "payload": "1.0"}, "LocalNode")
        assert event.source == "LocalNode"

    def test_error_frame_becomes_error_event(self):
        event = frame_to_event({"command": "platform", "error": "unsupported"}, "LocalNode")
        assert event.is_error
        assert event.error == "unsupported"


class TestWebsocketUrl:
    def test_http_maps_to_ws(self):
        assert websocket_url("http://localhost:4000") == "ws://localhost:4000"

    def test_https_maps_to_wss_and_drops_path(self):
        assert websocket_url("https://node.local/api") == "wss://node.local"

    def test_ws_used_unchanged(self):
        assert websocket_url("ws://node.local:9000/socket") == "ws://node.local:9000/socket"

    def test_unsupported_scheme(self):
        with pytest.raises(ValueError):
            websocket_url("serial://ttyUSB0")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestOpen:
    async def test_open_sends_initial_commands_in_order(self, settings, connector):
        channel = CommandChannel(settings, connector=connector)

        await channel.open(_service())
        connection = connector.connections[0]
        await wait_until(lambda: len(connection.sent) == 2)

        assert connector.urls == ["ws://localhost:4000"]
        assert channel.state is ChannelState.OPEN
        assert connection.sent == [{"command": "platform"}, {"command": "version"}]
        await channel.close()

    async def test_commands_queued_before_open_follow_initial_ones(self, settings, connector):
        channel = CommandChannel(settings, initial_commands=["version"], connector=connector)
        channel.send("platform")

        await channel.open(_service())
        connection = connector.connections[0]
        await wait_until(lambda: len(connection.sent) == 2)

        assert [frame["command"] for frame in connection.sent] == ["version", "platform"]
        await channel.close()

    async def test_label_defaults_to_service_label(self, settings, connector):
        channel = CommandChannel(settings, connector=connector)
        await channel.open(_service(label="LocalNode"))
        assert channel.label == "LocalNode"
        await channel.close()

    async def test_connection_refused(self, settings):
        channel = CommandChannel(settings, connector=FakeConnector(error=OSError("refused")))

        with pytest.raises(ChannelConnectionError, match="refused"):
            await channel.open(_service())
        assert channel.state is ChannelState.CLOSED

    async def test_open_timeout(self, settings):
        channel = CommandChannel(settings, connector=HangingConnector())

        with pytest.raises(ChannelConnectionError, match="timed out"):
            await channel.open(_service())
        assert channel.state is ChannelState.CLOSED

    async def test_open_after_close_raises(self, settings, connector):
        channel = CommandChannel(settings, connector=connector)
        await channel.close()

        with pytest.raises(ChannelClosed):
            await channel.open(_service())
        assert connector.urls == []

    async def test_unusable_address(self, settings, connector):
        channel = CommandChannel(settings, connector=connector)
        service = Service(id="p", address="serial://ttyUSB0", transport=Transport.PERIPHERAL)

        with pytest.raises(ChannelConnectionError):
            await channel.open(service)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class TestMessages:
    async def test_responses_delivered_in_wire_order(self, settings, connector):
        channel = CommandChannel(settings, connector=connector)
        received = []
        channel.on_message(received.append)
        await channel.open(_service())
        connection = connector.connections[0]

        # Responses are not correlated with requests; wire order wins
        connection.feed({"command": "version", "payload": "1.2.0"})
        connection.feed({"command": "platform", "payload": "linux"})
        await wait_until(lambda: len(received) == 2)

        assert [(e.source, e.command, e.payload) for e in received] == [
            ("LocalNode", "version", "1.2.0"),
            ("LocalNode", "platform", "linux"),
        ]
        await channel.close()

    async def test_undecodable_frame_is_dropped(self, settings, connector):
        channel = CommandChannel(settings, connector=connector)
        received = []
        channel.on_message(received.append)
        await channel.open(_service())
        connection = connector.connections[0]

        connection.feed("not json")
        connection.feed({"command": "version", "payload": "1.0"})
        await wait_until(lambda: len(received) == 1)

        assert received[0].command == "version"
        assert channel.is_open
        await channel.close()

    async def test_handler_error_does_not_stop_delivery(self, settings, connector):
        channel = CommandChannel(settings, connector=connector)
        received = []

        def broken(event):
            raise RuntimeError("boom")

        channel.on_message(broken)
        channel.on_message(received.append)
        await channel.open(_service())

        connector.connections[0].feed({"command": "version", "payload": "1.0"})
        await wait_until(lambda: len(received) == 1)
        await channel.close()

    async def test_send_after_open(self, settings, connector):
        channel = CommandChannel(settings, initial_commands=[], connector=connector)
        await channel.open(_service())
        connection = connector.connections[0]

        channel.send("echo", text="hello")
        await wait_until(lambda: len(connection.sent) == 1)

        assert connection.sent == [{"command": "echo", "text": "hello"}]
        await channel.close()


# ---------------------------------------------------------------------------
# Closure
# ---------------------------------------------------------------------------


class TestClose:
    async def test_send_after_close_raises(self, settings, connector):
        channel = CommandChannel(settings, connector=connector)
        await channel.open(_service())
        await channel.close()

        with pytest.raises(ChannelClosed):
            channel.send("version")

    async def test_close_is_idempotent(self, settings, connector):
        channel = CommandChannel(settings, connector=connector)
        await channel.open(_service())

        await channel.close()
        await channel.close()

        assert channel.state is ChannelState.CLOSED
        assert connector.connections[0].closed

    async def test_local_close_does_not_fire_on_close(self, settings, connector):
        channel = CommandChannel(settings, connector=connector)
        closed = []
        channel.on_close(lambda: closed.append(True))
        await channel.open(_service())

        await channel.close()
        await settle()

        assert closed == []

    async def test_remote_close_fires_on_close(self, settings, connector):
        channel = CommandChannel(settings, connector=connector)
        closed = asyncio.Event()
        channel.on_close(closed.set)
        await channel.open(_service())

        connector.connections[0].remote_close()
        await asyncio.wait_for(closed.wait(), 1.0)

        assert channel.state is ChannelState.CLOSED
        with pytest.raises(ChannelClosed):
            channel.send("version")
