"""Stale-connection reaper — evict subscribers nobody has heard from.

Learn: Some connections die without either a close signal reaching us or
a heartbeat write failing (the kernel keeps accepting bytes into a dead
socket's buffer). Every `interval` seconds the reaper closes and removes
any connection whose last successful heartbeat is older than
`stale_after`. Keep stale_after >= the heartbeat interval or healthy
subscribers get reaped between heartbeats (Settings enforces this).
"""

import asyncio

import structlog

from droneflow.realtime.registry import ConnectionRegistry

logger = structlog.get_logger()


class StaleConnectionReaper:
    """Periodic garbage collector for the connection registry."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        interval: float = 300.0,
        stale_after: float = 300.0,
    ):
        self.registry = registry
        self.interval = interval
        self.stale_after = stale_after
        self._running = False

    async def run_loop(self) -> None:
        """Main loop — one pass, then sleep. Survives any pass failure."""
        self._running = True
        logger.info(
            "reaper.started", interval=self.interval, stale_after=self.stale_after
        )

        while self._running:
            try:
                self.reap()
            except Exception:
                logger.exception("reaper.error")
            await asyncio.sleep(self.interval)

    def reap(self) -> list[str]:
        """Remove every connection idle longer than stale_after. Returns their ids."""
        now = self.registry.clock()
        reaped: list[str] = []

        for conn in self.registry.snapshot():
            try:
                idle = now - conn.last_liveness
                if idle <= self.stale_after:
                    continue
                if self.registry.remove(conn.id, reason="stale"):
                    reaped.append(conn.id)
                    logger.info(
                        "reaper.evicted", connection_id=conn.id, idle_seconds=round(idle, 1)
                    )
            except Exception:
                logger.exception("reaper.connection_error", connection_id=conn.id)

        if reaped:
            logger.info("reaper.pass_complete", reaped=len(reaped), remaining=len(self.registry))
        return reaped

    def stop(self) -> None:
        """Signal the loop to stop."""
        self._running = False
        logger.info("reaper.stopping")
