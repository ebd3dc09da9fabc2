"""Heartbeat scheduler tests.

Learn: beat() is one synchronous pass, so most tests call it directly
with a fake clock. The run_loop tests use a tiny interval to prove the
loop keeps going after a pass blows up.
"""

import asyncio
import json

import pytest
from conftest import RecordingSink, wait_until

from droneflow.realtime.heartbeat import HeartbeatScheduler


@pytest.fixture()
def scheduler(registry):
    return HeartbeatScheduler(registry, interval=30.0)


def test_beat_writes_one_frame_and_touches(registry, clock, scheduler):
    sink = RecordingSink()
    conn = registry.admit(sink)
    before = conn.last_liveness

    clock.advance(30)
    assert scheduler.beat() == 0

    assert conn.last_liveness > before
    assert conn.last_liveness == clock.now
    frames = sink.frames_of("heartbeat")
    assert len(frames) == 1
    body = json.loads(frames[0].split("data: ", 1)[1])
    assert body["type"] == "heartbeat"
    assert set(body) == {"type", "timestamp"}


def test_beat_removes_failing_connection_immediately(registry, scheduler):
    dead_sink = RecordingSink()
    live_sink = RecordingSink()
    dead = registry.admit(dead_sink)
    live = registry.admit(live_sink)
    dead_sink.fail_writes = True

    assert scheduler.beat() == 1

    # Gone before the next cycle, without waiting for the reaper
    assert dead.id not in registry
    assert dead_sink.closed
    assert live.id in registry
    assert len(live_sink.frames_of("heartbeat")) == 1


def test_beat_with_no_connections(scheduler):
    assert scheduler.beat() == 0


def test_failed_connection_is_not_touched(registry, clock, scheduler):
    sink = RecordingSink()
    conn = registry.admit(sink)
    sink.fail_writes = True
    clock.advance(30)
    scheduler.beat()
    assert conn.last_liveness == 1000.0


def test_failure_on_one_connection_does_not_stop_pass(registry, clock, scheduler, monkeypatch):
    bad_sink = RecordingSink()
    bad = registry.admit(bad_sink)
    bad_sink.fail_writes = True
    good_sink = RecordingSink()
    good = registry.admit(good_sink)

    real_remove = registry.remove

    def remove(connection_id, reason="closed"):
        if connection_id == bad.id:
            raise RuntimeError("registry hiccup")
        return real_remove(connection_id, reason=reason)

    monkeypatch.setattr(registry, "remove", remove)

    clock.advance(30)
    scheduler.beat()

    assert len(good_sink.frames_of("heartbeat")) == 1
    assert good.last_liveness == clock.now


def test_touch_failure_does_not_stop_pass(registry, clock, scheduler, monkeypatch):
    first_sink, second_sink = RecordingSink(), RecordingSink()
    first = registry.admit(first_sink)
    second = registry.admit(second_sink)

    real_touch = registry.touch

    def touch(connection_id):
        if connection_id == first.id:
            raise RuntimeError("clock went away")
        real_touch(connection_id)

    monkeypatch.setattr(registry, "touch", touch)

    clock.advance(30)
    assert scheduler.beat() == 0
    assert len(second_sink.frames_of("heartbeat")) == 1
    assert second.last_liveness == clock.now


def test_beat_skips_connection_removed_after_snapshot(registry, scheduler, monkeypatch):
    sink = RecordingSink()
    conn = registry.admit(sink)
    stale_view = registry.snapshot()
    registry.remove(conn.id)
    monkeypatch.setattr(registry, "snapshot", lambda: stale_view)

    attempts = sink.write_attempts
    assert scheduler.beat() == 0
    assert sink.write_attempts == attempts


@pytest.mark.asyncio
async def test_run_loop_sends_periodically(registry):
    scheduler = HeartbeatScheduler(registry, interval=0.01)
    sink = RecordingSink()
    registry.admit(sink)

    task = asyncio.create_task(scheduler.run_loop())
    try:
        await wait_until(lambda: len(sink.frames_of("heartbeat")) >= 3)
    finally:
        scheduler.stop()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


@pytest.mark.asyncio
async def test_run_loop_survives_failing_pass(registry, monkeypatch):
    scheduler = HeartbeatScheduler(registry, interval=0.01)
    sink = RecordingSink()
    registry.admit(sink)

    real_beat = scheduler.beat
    calls = {"n": 0}

    def flaky_beat():
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("boom")
        return real_beat()

    monkeypatch.setattr(scheduler, "beat", flaky_beat)

    task = asyncio.create_task(scheduler.run_loop())
    try:
        await wait_until(lambda: len(sink.frames_of("heartbeat")) >= 2)
    finally:
        scheduler.stop()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    assert calls["n"] >= 3


@pytest.mark.asyncio
async def test_stop_ends_loop(registry):
    scheduler = HeartbeatScheduler(registry, interval=0.01)
    task = asyncio.create_task(scheduler.run_loop())
    await asyncio.sleep(0.02)
    scheduler.stop()
    await asyncio.wait_for(task, timeout=1.0)
    assert task.done()
