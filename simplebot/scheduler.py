"""
Schedule-and-cancel primitive for deferred controller transitions.

schedule() returns a token; token.cancel() guarantees the callback will not
run if it has not run yet. AsyncioScheduler wraps loop.call_later so all
callbacks fire on the event-loop thread.
"""

import asyncio
from typing import Callable, List, Optional, Protocol


class CancelToken(Protocol):
    def cancel(self) -> None: ...

    def cancelled(self) -> bool: ...


class Scheduler(Protocol):
    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> CancelToken: ...


class AsyncioScheduler:
    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(delay_ms / 1000.0, callback)


class ManualToken:
    def __init__(self, delay_ms: int, callback: Callable[[], None]):
        self.delay_ms = delay_ms
        self.callback = callback
        self._cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler:
    """Deterministic scheduler: callbacks run only when fire_next()/fire_all() is called."""

    def __init__(self):
        self.pending: List[ManualToken] = []

    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> ManualToken:
        token = ManualToken(delay_ms, callback)
        self.pending.append(token)
        return token

    def fire_next(self) -> bool:
        while self.pending:
            token = self.pending.pop(0)
            if token.cancelled():
                continue
            token.fired = True
            token.callback()
            return True
        return False

    def fire_all(self) -> int:
        count = 0
        while self.fire_next():
            count += 1
        return count
