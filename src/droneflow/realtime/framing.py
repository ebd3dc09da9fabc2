"""text/event-stream framing.

Learn: Every frame is pure text built from (type, payload, timestamp):

    event: request-created
    data: {"type": "request-created", "data": {...}, "timestamp": "..."}

The `connected` acknowledgement is sent as a bare `data:` frame so the
browser's EventSource.onmessage sees it without a named listener.
Serialization goes through jsonable_encoder so payloads can be Pydantic
models, ORM-derived schemas or plain dicts with datetimes/UUIDs.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder

from droneflow.events.types import CONNECTED, HEARTBEAT


def isoformat(moment: Optional[datetime] = None) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def _dumps(body: dict[str, Any]) -> str:
    return json.dumps(jsonable_encoder(body), separators=(",", ":"))


def encode_event(
    event_type: str,
    payload: Any,
    emitted_at: Optional[datetime] = None,
) -> str:
    """Frame a named event: `event:` line, then the JSON envelope."""
    body = {
        "type": event_type,
        "data": payload,
        "timestamp": isoformat(emitted_at),
    }
    return f"event: {event_type}\ndata: {_dumps(body)}\n\n"


def connected_frame(connection_id: str, emitted_at: Optional[datetime] = None) -> str:
    body = {
        "type": CONNECTED,
        "connection_id": connection_id,
        "message": "Real-time connection established",
        "timestamp": isoformat(emitted_at),
    }
    return f"data: {_dumps(body)}\n\n"


def heartbeat_frame(emitted_at: Optional[datetime] = None) -> str:
    body = {"type": HEARTBEAT, "timestamp": isoformat(emitted_at)}
    return f"event: {HEARTBEAT}\ndata: {_dumps(body)}\n\n"
