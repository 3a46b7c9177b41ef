"""Wire protocol for the command channel.

One JSON object per WebSocket text message.

    Client → Server:  {"command": <string>, ...optional fields}
    Server → Client:  {"source"?: <string>, "command": <string>, "payload": <any>}
                   or {"error": <string>, "command"?: <string>}

Frames carry no request identifier: responses can only be matched to
requests by command name.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Union

from servicehub.errors import FrameError
from servicehub.protocols import Event

# Maximum inbound message size accepted by decode_frame (1MB)
MAX_FRAME_SIZE: int = 1024 * 1024


def encode_command(command: str, **fields: Any) -> str:
    """Serialize an outbound command frame.

    Raises:
        ValueError: If ``command`` is empty or ``fields`` overrides it.
    """
    if not isinstance(command, str) or not command:
        raise ValueError("command must be a non-empty string")
    if "command" in fields:
        raise ValueError("'command' cannot be passed as an extra field")
    return json.dumps({"command": command, **fields})


def decode_frame(message: Union[str, bytes]) -> Dict[str, Any]:
    """Decode an inbound message into a frame dict.

    Raises:
        FrameError: On oversized messages, invalid JSON, or non-object JSON.
    """
    if len(message) > MAX_FRAME_SIZE:
        raise FrameError(f"frame exceeds {MAX_FRAME_SIZE} bytes")
    try:
        frame = json.loads(message)
    except (TypeError, ValueError) as e:
        raise FrameError(f"invalid JSON frame: {e}") from e
    if not isinstance(frame, dict):
        raise FrameError(f"frame must be a JSON object, got {type(frame).__name__}")
    return frame


def frame_to_event(frame: Dict[str, Any], default_source: str) -> Event:
    """Normalize a decoded frame into an Event.

    A ``source`` carried by the frame takes precedence over the channel's
    own label.
    """
    source = frame.get("source") or default_source
    command = frame.get("command") or ""
    if "error" in frame:
        return Event.failure(str(source), str(command), frame["error"])
    return Event(source=str(source), command=str(command), payload=frame.get("payload"))


__all__ = [
    "MAX_FRAME_SIZE",
    "encode_command",
    "decode_frame",
    "frame_to_event",
]
