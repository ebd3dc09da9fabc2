"""Event catalogue and the event-sink interface.

Learn: Centralizing event types as constants prevents typos and makes it
easy to discover everything that can appear on the SSE channel. Each
mutation event has a typed payload model; the wire envelope
({type, data, timestamp}) is added by realtime.framing.

Services never import the dispatcher. They depend on EventSink (one
method, emit(type, payload)), which the BroadcastDispatcher satisfies
and tests replace with a recording fake.
"""

from typing import Any, Protocol

from pydantic import BaseModel

from droneflow.schemas.service_request import ServiceRequestRead

# ─── Channel control frames ──────────────────────────────

CONNECTED = "connected"
HEARTBEAT = "heartbeat"

# ─── Service request lifecycle ───────────────────────────

REQUEST_CREATED = "request-created"
REQUEST_UPDATED = "request-updated"
REQUEST_DELETED = "request-deleted"


class RequestChangedPayload(BaseModel):
    """Payload for request-created / request-updated."""
    request: ServiceRequestRead
    message: str


class RequestDeletedPayload(BaseModel):
    """Payload for request-deleted — the record is gone, only its code remains."""
    request_id: str
    message: str


class EventSink(Protocol):
    """Where services publish mutation events. Must never raise."""

    def emit(self, event_type: str, payload: Any) -> None: ...
