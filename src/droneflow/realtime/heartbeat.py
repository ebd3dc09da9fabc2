"""Heartbeat scheduler — keepalive frames for every subscriber.

Learn: Proxies and load balancers close idle HTTP responses, so every
`interval` seconds each connection gets a small `heartbeat` frame. A
successful write refreshes the connection's liveness; a failed write
removes it immediately (half-open sockets, killed browsers). The reaper
is only the backstop for connections this never manages to touch.

Runs as a long-lived task in the FastAPI lifespan, like any other
background worker:

    scheduler = HeartbeatScheduler(registry, interval=30.0)
    asyncio.create_task(scheduler.run_loop())
"""

import asyncio

import structlog

from droneflow.realtime.framing import heartbeat_frame
from droneflow.realtime.registry import Connection, ConnectionRegistry, ConnectionState

logger = structlog.get_logger()


class HeartbeatScheduler:
    """Periodic keepalive writer."""

    def __init__(self, registry: ConnectionRegistry, interval: float = 30.0):
        self.registry = registry
        self.interval = interval
        self._running = False

    async def run_loop(self) -> None:
        """Main loop — one pass, then sleep. Survives any pass failure."""
        self._running = True
        logger.info("heartbeat.started", interval=self.interval)

        while self._running:
            try:
                self.beat()
            except Exception:
                logger.exception("heartbeat.error")
            await asyncio.sleep(self.interval)

    def beat(self) -> int:
        """Send one heartbeat to every open connection. Returns the failure count."""
        frame = heartbeat_frame()
        failed = 0

        for conn in self.registry.snapshot():
            if conn.state is not ConnectionState.OPEN:
                continue
            try:
                if not self._beat_one(conn, frame):
                    failed += 1
            except Exception:
                logger.exception("heartbeat.connection_error", connection_id=conn.id)

        if failed:
            logger.info("heartbeat.pass_complete", failed=failed, remaining=len(self.registry))
        return failed

    def _beat_one(self, conn: Connection, frame: str) -> bool:
        try:
            conn.sink.write(frame)
        except Exception as e:
            logger.warning("heartbeat.write_failed", connection_id=conn.id, error=str(e))
            self.registry.remove(conn.id, reason="heartbeat_failed")
            return False
        self.registry.touch(conn.id)
        return True

    def stop(self) -> None:
        """Signal the loop to stop."""
        self._running = False
        logger.info("heartbeat.stopping")
