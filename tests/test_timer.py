import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import make_questions
from screener.session import SessionController
from screener.store import SessionStore
from screener.timer import CountdownTimer


@pytest.fixture
def running(controller, contact):
    controller.create_session(contact)
    controller.start_interview(make_questions())
    return controller


@pytest.mark.asyncio
async def test_ticks_down_to_zero_then_holds(running):
    on_expire = AsyncMock()
    timer = CountdownTimer(running, on_expire)

    seen = [await timer.tick() for _ in range(20)]
    assert seen == list(range(19, -1, -1))
    on_expire.assert_awaited_once_with(0)

    assert await timer.tick() is None
    assert await timer.tick() is None
    assert running.session.time_left == 0
    on_expire.assert_awaited_once()


@pytest.mark.asyncio
async def test_paused_session_does_not_tick(running):
    timer = CountdownTimer(running, AsyncMock())
    await timer.tick()
    running.pause()

    for _ in range(5):
        assert await timer.tick() is None
    assert running.session.time_left == 19

    running.resume()
    assert await timer.tick() == 18


@pytest.mark.asyncio
async def test_advance_restarts_from_new_limit(running):
    on_expire = AsyncMock()
    timer = CountdownTimer(running, on_expire)
    for _ in range(20):
        await timer.tick()
    running.advance_question()
    running.advance_question()

    assert await timer.tick() == 59
    assert on_expire.await_count == 1


@pytest.mark.asyncio
async def test_no_ticks_before_interview_starts(controller, contact):
    controller.create_session(contact)
    timer = CountdownTimer(controller, AsyncMock())
    assert timer.should_tick() is False
    assert await timer.tick() is None


@pytest.mark.asyncio
async def test_resynchronises_to_restored_session(running, store, clock):
    for _ in range(7):
        running.tick()

    restored = SessionController(SessionStore(store.path), clock=clock)
    timer = CountdownTimer(restored, AsyncMock())
    assert await timer.tick() == 12


@pytest.mark.asyncio
async def test_background_task_ticks_and_stops(running):
    timer = CountdownTimer(running, AsyncMock(), interval=0.01)
    timer.start()
    timer.start()
    await asyncio.sleep(0.1)
    timer.stop()
    frozen = running.session.time_left
    await asyncio.sleep(0.05)

    assert frozen < 20
    assert running.session.time_left == frozen
    assert timer.running is False


@pytest.mark.asyncio
async def test_start_with_expired_clock_signals_expiry(running):
    for _ in range(20):
        running.tick()
    on_expire = AsyncMock()
    timer = CountdownTimer(running, on_expire, interval=3600)
    timer.start()
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    timer.stop()

    on_expire.assert_awaited_once_with(0)


@pytest.mark.asyncio
async def test_subscribers_receive_events(running):
    timer = CountdownTimer(running, AsyncMock())
    queue = timer.subscribe()
    for _ in range(20):
        await timer.tick()
    timer.unsubscribe(queue)
    await timer.tick()

    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    assert events[0] == {"type": "tick", "time_left": 19}
    assert events[-2] == {"type": "tick", "time_left": 0}
    assert events[-1] == {"type": "expired", "question_index": 0}
    assert len(events) == 21
