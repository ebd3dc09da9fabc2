"""SSE endpoint — long-lived event stream for dashboards.

Learn: GET /api/v1/events admits a QueueSink into the registry and
returns a StreamingResponse that drains it. The generator's finally
block is the canonical cancellation path: when the client goes away
Starlette cancels the stream and the connection is removed right there,
without waiting for the heartbeat or the reaper.

No parameters, no filtering. Every subscriber receives every event.
"""

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from droneflow.config import settings
from droneflow.realtime.dependencies import get_registry
from droneflow.realtime.registry import ConnectionRegistry
from droneflow.realtime.sink import QueueSink

logger = structlog.get_logger()
router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Cache-Control",
    "X-Accel-Buffering": "no",  # nginx: don't buffer the stream
}


@router.get("/events")
async def subscribe(registry: ConnectionRegistry = Depends(get_registry)):
    """Open a server-sent-event stream of request changes."""
    sink = QueueSink(maxsize=settings.subscriber_queue_size)
    connection = registry.admit(sink)

    async def stream():
        try:
            async for frame in sink.frames():
                yield frame
        finally:
            registry.remove(connection.id, reason="client_disconnected")

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/events/stats")
async def connection_stats(registry: ConnectionRegistry = Depends(get_registry)):
    """Subscriber counts computed from the registry right now."""
    return registry.stats(stale_after=settings.stats_stale_after_seconds).as_dict()
