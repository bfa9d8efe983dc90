"""
Tests for the leading-edge debounce gate.
"""
import asyncio

import pytest

from chat_session.debounce import DebounceState, Debouncer, decide


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


class TestDecide:

    def test_first_call_fires(self):
        fire, state = decide(DebounceState(), now=5.0, wait=0.3)
        assert fire
        assert state == DebounceState(pending=True, last_call_time=5.0)

    def test_call_within_window_suppressed(self):
        fire, _ = decide(DebounceState(pending=True, last_call_time=5.0), now=5.05, wait=0.3)
        assert not fire

    def test_call_after_window_fires(self):
        fire, _ = decide(DebounceState(pending=True, last_call_time=5.0), now=5.31, wait=0.3)
        assert fire

    def test_suppressed_call_restarts_window(self):
        state = DebounceState()
        results = []
        # 200ms apart each: every one is within 300ms of the previous
        for t in (0.0, 0.2, 0.4, 0.6):
            fire, state = decide(state, now=t, wait=0.3)
            results.append(fire)
        assert results == [True, False, False, False]
        assert state.last_call_time == 0.6


@pytest.mark.asyncio
async def test_rapid_clicks_issue_one_call():
    """Two clicks 50ms apart with D=300ms: exactly one invocation, the first."""
    clock = FakeClock()
    calls: list[str] = []

    async def op(text: str) -> None:
        calls.append(text)

    send = Debouncer(op, wait_ms=300, now=clock)

    first = send("What are the current BMW models available?")
    clock.advance_ms(50)
    second = send("What are the current BMW models available? (again)")

    assert first is not None
    assert second is None
    await first
    assert calls == ["What are the current BMW models available?"]


@pytest.mark.asyncio
async def test_burst_of_n_calls_issues_one():
    clock = FakeClock()
    calls: list[int] = []

    async def op(i: int) -> None:
        calls.append(i)

    send = Debouncer(op, wait_ms=300, now=clock)
    tasks = []
    for i in range(10):
        tasks.append(send(i))
        clock.advance_ms(20)

    await asyncio.gather(*[t for t in tasks if t is not None])
    assert calls == [0]


@pytest.mark.asyncio
async def test_call_after_quiet_period_fires_again():
    clock = FakeClock()
    calls: list[str] = []

    async def op(text: str) -> None:
        calls.append(text)

    send = Debouncer(op, wait_ms=300, now=clock)
    await send("first")
    clock.advance_ms(301)
    await send("second")

    assert calls == ["first", "second"]
