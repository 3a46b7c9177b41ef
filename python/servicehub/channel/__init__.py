"""Persistent JSON command channel over WebSocket."""

from servicehub.channel.channel import (
    ChannelState,
    CommandChannel,
    Connector,
    MessageHandler,
    websocket_url,
)
from servicehub.channel.protocol import (
    MAX_FRAME_SIZE,
    decode_frame,
    encode_command,
    frame_to_event,
)

__all__ = [
    "CommandChannel",
    "ChannelState",
    "Connector",
    "MessageHandler",
    "websocket_url",
    "MAX_FRAME_SIZE",
    "encode_command",
    "decode_frame",
    "frame_to_event",
]
