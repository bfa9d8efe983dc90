"""
Leading-edge debounce for send intents.

Clicks, key submits and double clicks can emit the same intent within tens of
milliseconds. The first call in a burst runs immediately; every call within
the delay of the previous call is dropped and restarts the window.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Set, Tuple

from logging_setup import get_logger, Component

logger = get_logger(Component.DEBOUNCE)


@dataclass(frozen=True)
class DebounceState:
    pending: bool = False
    last_call_time: float = 0.0


def decide(state: DebounceState, now: float, wait: float) -> Tuple[bool, DebounceState]:
    """
    Pure debounce decision.

    Returns (fire, next_state). Every call, fired or not, restarts the window.
    """
    fire = not state.pending or (now - state.last_call_time) >= wait
    return fire, DebounceState(pending=True, last_call_time=now)


class Debouncer:
    """Wraps an async operation; fired calls run as tasks, suppressed calls return None."""

    def __init__(
        self,
        op: Callable[..., Awaitable[Any]],
        wait_ms: int = 300,
        *,
        now: Callable[[], float] = time.monotonic,
    ):
        self._op = op
        self._wait = wait_ms / 1000.0
        self._now = now
        self.state = DebounceState()
        self._tasks: Set[asyncio.Task] = set()

    def __call__(self, *args: Any, **kwargs: Any) -> Optional[asyncio.Task]:
        fire, self.state = decide(self.state, self._now(), self._wait)
        if not fire:
            logger.debug("Debounced duplicate call", wait_ms=int(self._wait * 1000))
            return None

        task = asyncio.create_task(self._op(*args, **kwargs))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
