"""Framing of the messages exchanged with the simulator.

The simulator speaks socket.io over a websocket: event frames are the text
``42`` followed by a JSON array ``[event_name, payload]``.
"""

import json
from typing import Any, Optional, Tuple

from ..core.data_structures import Trajectory


EVENT_PREFIX = "42"


class ProtocolError(ValueError):
    """Raised when an event frame cannot be decoded."""
    pass


def decode_message(raw: str) -> Optional[Tuple[str, Any]]:
    """Extract the event name and payload of a frame.

    Args:
        raw: Text frame received from the simulator

    Returns:
        (event, payload), with payload None when the simulator sent ``null``;
        None when the frame is not an event frame
    """
    if not raw or len(raw) <= len(EVENT_PREFIX) or not raw.startswith(EVENT_PREFIX):
        return None

    body = raw[len(EVENT_PREFIX):]
    start, end = body.find("["), body.rfind("]")
    if start == -1 or end < start:
        raise ProtocolError(f"Event frame has no JSON array: {raw[:80]!r}")
    body = body[start:end + 1]

    try:
        message = json.loads(body)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Invalid JSON in event frame: {e}") from e

    if not isinstance(message, list) or not message or not isinstance(message[0], str):
        raise ProtocolError(f"Event frame must be a [event, payload] array, got {body[:80]!r}")

    payload = message[1] if len(message) > 1 else None
    return message[0], payload


def encode_event(event: str, payload: Any) -> str:
    """Frame an event for the simulator."""
    return EVENT_PREFIX + json.dumps([event, payload], separators=(",", ":"))


def encode_control(trajectory: Trajectory) -> str:
    """Frame a trajectory as a control event."""
    n = len(trajectory)
    return encode_event("control", {"next_x": trajectory.x[:n], "next_y": trajectory.y[:n]})


def encode_manual() -> str:
    """Frame the reply used when no telemetry is available."""
    return encode_event("manual", {})
