"""Broadcast dispatcher — push one event to every subscriber.

Learn: Delivery is at-most-once and best-effort. The frame is serialized
once, the registry is snapshotted, and each sink gets a non-blocking
write. A sink that raises is removed on the spot; the loop carries on
with the next one, so one dead browser tab can't starve the rest.

Nothing is queued or replayed. With no subscribers the event is simply
dropped; dashboards re-fetch from the REST API when they reconnect.
"""

from datetime import datetime, timezone
from typing import Any

import structlog

from droneflow.realtime.framing import encode_event
from droneflow.realtime.registry import Connection, ConnectionRegistry, ConnectionState

logger = structlog.get_logger()


class BroadcastDispatcher:
    """Fan-out over a ConnectionRegistry. Satisfies events.types.EventSink."""

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    def broadcast(self, event_type: str, payload: Any) -> int:
        """Write the event to every registered connection.

        Returns the number of successful deliveries. Never raises for a
        failed write.
        """
        frame = encode_event(event_type, payload, datetime.now(timezone.utc))
        connections = self.registry.snapshot()

        delivered = 0
        for conn in connections:
            if self._deliver(conn, frame, event_type):
                delivered += 1

        logger.info(
            "sse.broadcast",
            event_type=event_type,
            delivered=delivered,
            failed=len(connections) - delivered,
        )
        return delivered

    def send_to(self, connection_id: str, event_type: str, payload: Any) -> bool:
        """Write the event to a single connection, if it is still registered."""
        conn = self.registry.get(connection_id)
        if conn is None:
            return False
        frame = encode_event(event_type, payload, datetime.now(timezone.utc))
        return self._deliver(conn, frame, event_type)

    def emit(self, event_type: str, payload: Any) -> None:
        """EventSink entry point for services — fire and forget."""
        try:
            self.broadcast(event_type, payload)
        except Exception:
            # The mutation already committed; a bad payload must not fail it
            logger.exception("sse.emit_failed", event_type=event_type)

    def _deliver(self, conn: Connection, frame: str, event_type: str) -> bool:
        if conn.state is not ConnectionState.OPEN:
            # Removed by another task since the snapshot
            return False
        try:
            conn.sink.write(frame)
        except Exception as e:
            logger.warning(
                "sse.write_failed",
                connection_id=conn.id,
                event_type=event_type,
                error=str(e),
            )
            self.registry.remove(conn.id, reason="write_failed")
            return False
        return True
