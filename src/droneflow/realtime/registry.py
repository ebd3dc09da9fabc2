"""Connection registry — the set of live SSE subscribers.

Learn: This is the one piece of shared mutable state in the realtime
layer. The HTTP handler admits, the heartbeat touches and removes, the
reaper removes, the dispatcher snapshots and removes, and the stream's
finally-block removes on disconnect. All of that goes through a single
lock around a dict; nothing ever writes to a sink while holding it.

State per connection: open → closing → removed. Removal is idempotent and
terminal: a removed id is never written to again.
"""

import threading
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

import structlog

from droneflow.realtime.framing import connected_frame
from droneflow.realtime.sink import Sink

logger = structlog.get_logger()


class ConnectionState(str, Enum):
    OPEN = "open"
    CLOSING = "closing"
    REMOVED = "removed"


@dataclass(eq=False)
class Connection:
    """One admitted subscriber."""
    id: str
    sink: Sink
    last_liveness: float  # registry clock reading, monotonic
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: ConnectionState = ConnectionState.OPEN


@dataclass(frozen=True)
class RegistryStats:
    total_connections: int
    active_connections: int
    stale_connections: int

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class ConnectionRegistry:
    """Process-local registry of subscriber connections.

    Learn: Created once in create_app() and handed to everything that
    needs it (no module-level singleton). The clock is injectable so
    tests can move time forward without sleeping.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._connections: dict[str, Connection] = {}

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        with self._lock:
            return connection_id in self._connections

    # ─── Admission ────────────────────────────────────────

    def admit(self, sink: Sink) -> Connection:
        """Register a sink and send it (only it) the `connected` frame.

        Always succeeds; there is no cap on subscriber count.
        """
        with self._lock:
            connection_id = uuid.uuid4().hex
            while connection_id in self._connections:
                connection_id = uuid.uuid4().hex
            conn = Connection(
                id=connection_id,
                sink=sink,
                last_liveness=self._clock(),
            )
            self._connections[connection_id] = conn
            total = len(self._connections)

        logger.info("sse.connected", connection_id=connection_id, total=total)

        try:
            sink.write(connected_frame(connection_id))
        except Exception as e:
            logger.warning("sse.ack_failed", connection_id=connection_id, error=str(e))
            self.remove(connection_id, reason="ack_failed")
        return conn

    # ─── Removal ──────────────────────────────────────────

    def remove(self, connection_id: str, reason: str = "closed") -> bool:
        """Evict a connection and close its sink. Idempotent.

        Returns True only for the call that actually removed it.
        """
        with self._lock:
            conn = self._connections.pop(connection_id, None)
            if conn is None:
                return False
            conn.state = ConnectionState.CLOSING
            total = len(self._connections)

        try:
            conn.sink.close()
        except Exception as e:
            # Best-effort: the entry is gone either way
            logger.warning("sse.close_failed", connection_id=connection_id, error=str(e))
        conn.state = ConnectionState.REMOVED

        logger.info(
            "sse.disconnected",
            connection_id=connection_id,
            reason=reason,
            total=total,
        )
        return True

    def close_all(self, reason: str = "shutdown") -> int:
        """Remove every connection. Used at process shutdown."""
        removed = 0
        for conn in self.snapshot():
            if self.remove(conn.id, reason=reason):
                removed += 1
        return removed

    # ─── Liveness ─────────────────────────────────────────

    def touch(self, connection_id: str) -> None:
        """Record a successful heartbeat. No-op for unknown ids."""
        with self._lock:
            conn = self._connections.get(connection_id)
            if conn is not None:
                conn.last_liveness = max(conn.last_liveness, self._clock())

    # ─── Reads ────────────────────────────────────────────

    def get(self, connection_id: str) -> Optional[Connection]:
        with self._lock:
            return self._connections.get(connection_id)

    def snapshot(self) -> list[Connection]:
        """Point-in-time copy, safe to iterate while others admit/remove."""
        with self._lock:
            return list(self._connections.values())

    def stats(self, stale_after: float = 60.0) -> RegistryStats:
        now = self._clock()
        connections = self.snapshot()
        return RegistryStats(
            total_connections=len(connections),
            active_connections=sum(1 for c in connections if not c.sink.closed),
            stale_connections=sum(
                1 for c in connections if now - c.last_liveness > stale_after
            ),
        )
