"""SSE endpoint tests.

Learn: httpx's ASGITransport buffers the whole response, so the stream
test opens the request in a background task, waits for the subscriber
to show up in the registry, pushes a frame, then removes the connection
to end the stream and inspects everything that was sent.
"""

import asyncio
import json

import pytest
from conftest import RecordingSink, subscribe, wait_until

from droneflow.realtime.sse import subscribe as subscribe_endpoint


def _frames(text: str) -> list[str]:
    return [f for f in text.split("\n\n") if f.strip()]


def _data(frame: str) -> dict:
    line = next(l for l in frame.splitlines() if l.startswith("data: "))
    return json.loads(line[len("data: "):])


@pytest.mark.asyncio
async def test_event_stream_end_to_end(app, client):
    registry = app.state.registry
    pending = asyncio.create_task(client.get("/api/v1/events"))

    await wait_until(lambda: len(registry) == 1)
    conn = registry.snapshot()[0]
    app.state.dispatcher.broadcast(
        "request-created",
        {"request": {"request_id": "DR-2024-000001"}, "message": "New service request: DR-2024-000001"},
    )
    registry.remove(conn.id)

    resp = await asyncio.wait_for(pending, timeout=5)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert resp.headers["cache-control"] == "no-cache"
    assert resp.headers["access-control-allow-origin"] == "*"

    frames = _frames(resp.text)
    assert len(frames) == 2

    assert frames[0].startswith("data: ")
    hello = _data(frames[0])
    assert hello["type"] == "connected"
    assert hello["connection_id"] == conn.id

    assert frames[1].startswith("event: request-created\n")
    assert _data(frames[1])["data"]["request"]["request_id"] == "DR-2024-000001"


@pytest.mark.asyncio
async def test_stream_close_removes_connection(registry):
    """Client disconnect → generator closed → registry entry gone."""
    response = await subscribe_endpoint(registry=registry)
    body = response.body_iterator

    first = await body.__anext__()
    assert '"type":"connected"' in first
    assert len(registry) == 1

    await body.aclose()
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_stats(app, client, clock):
    subscribe(app)
    subscribe(app)

    r = await client.get("/api/v1/events/stats")
    assert r.status_code == 200
    assert r.json() == {
        "total_connections": 2,
        "active_connections": 2,
        "stale_connections": 0,
    }


@pytest.mark.asyncio
async def test_stats_empty(client):
    r = await client.get("/api/v1/events/stats")
    assert r.json()["total_connections"] == 0


@pytest.mark.asyncio
async def test_lifespan_runs_and_stops_background_tasks(app):
    sink = subscribe(app, RecordingSink())

    async with app.router.lifespan_context(app):
        # First heartbeat pass runs as soon as the loop starts
        await wait_until(lambda: sink.frames_of("heartbeat"))
        assert len(app.state.registry) == 1

    assert sink.closed
    assert len(app.state.registry) == 0
