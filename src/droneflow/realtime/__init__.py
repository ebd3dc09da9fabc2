"""Real-time infrastructure — in-process SSE fan-out.

Learn: Events flow through one process-local path:
1. Services → BroadcastDispatcher.emit() (after the database commit)
2. Dispatcher → every sink in the ConnectionRegistry → StreamingResponse

Two background tasks keep the registry honest: the HeartbeatScheduler
writes keepalive frames (and drops sinks that fail), the
StaleConnectionReaper evicts anything the heartbeat never touched.
"""
