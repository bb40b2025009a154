from __future__ import annotations

import asyncio
import heapq
from dataclasses import dataclass, field
from typing import Callable, Protocol

TimerCallback = Callable[[], None]


@dataclass(slots=True, eq=False)
class TimerToken:
    """Revocable handle for one armed timer.

    A callback only runs while its token is active; `cancel()` may be called at any time,
    including from inside the callback itself.
    """

    label: str = ""
    repeating: bool = False
    _cancelled: bool = False
    _finished: bool = False
    _on_cancel: Callable[[], None] | None = None

    @property
    def cancelled(self) -> bool:
        return bool(self._cancelled)

    @property
    def active(self) -> bool:
        return not self._cancelled and not self._finished

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        hook = self._on_cancel
        self._on_cancel = None
        if hook is not None:
            hook()

    def _finish(self) -> None:
        self._finished = True
        self._on_cancel = None


class TimerHost(Protocol):
    @property
    def now_ms(self) -> int: ...

    def call_later(self, delay_ms: int, callback: TimerCallback, *, label: str = "") -> TimerToken: ...

    def call_every(self, interval_ms: int, callback: TimerCallback, *, label: str = "") -> TimerToken: ...


def _clamp_interval(interval_ms: int) -> int:
    # A zero or negative cadence would never let the loop advance.
    return max(1, int(interval_ms))


@dataclass(slots=True)
class _ManualEntry:
    token: TimerToken
    callback: TimerCallback
    interval_ms: int | None


@dataclass(slots=True)
class ManualTimers:
    """Deterministic timer host advanced explicitly by the caller's frame loop."""

    _now_ms: int = 0
    _seq: int = 0
    _heap: list[tuple[int, int, _ManualEntry]] = field(default_factory=list)

    @property
    def now_ms(self) -> int:
        return int(self._now_ms)

    @property
    def pending(self) -> int:
        return sum(1 for _due, _seq, entry in self._heap if entry.token.active)

    def _push(self, due_ms: int, entry: _ManualEntry) -> None:
        self._seq += 1
        heapq.heappush(self._heap, (int(due_ms), int(self._seq), entry))

    def call_later(self, delay_ms: int, callback: TimerCallback, *, label: str = "") -> TimerToken:
        token = TimerToken(label=str(label))
        self._push(self._now_ms + max(0, int(delay_ms)), _ManualEntry(token=token, callback=callback, interval_ms=None))
        return token

    def call_every(self, interval_ms: int, callback: TimerCallback, *, label: str = "") -> TimerToken:
        interval = _clamp_interval(interval_ms)
        token = TimerToken(label=str(label), repeating=True)
        self._push(self._now_ms + interval, _ManualEntry(token=token, callback=callback, interval_ms=interval))
        return token

    def advance(self, dt_ms: int) -> int:
        """Move time forward by `dt_ms`, firing due callbacks in order; return how many fired."""
        dt_ms = int(dt_ms)
        if dt_ms < 0:
            raise ValueError(f"dt_ms must be non-negative, got {dt_ms}")
        target = self._now_ms + dt_ms
        fired = 0
        while self._heap and self._heap[0][0] <= target:
            due, _seq, entry = heapq.heappop(self._heap)
            if not entry.token.active:
                continue
            self._now_ms = max(self._now_ms, int(due))
            if entry.interval_ms is None:
                entry.token._finish()
            else:
                self._push(int(due) + int(entry.interval_ms), entry)
            entry.callback()
            fired += 1
        self._now_ms = target
        return fired

    def run_until(self, predicate: Callable[[], bool], *, max_ms: int, step_ms: int = 1) -> bool:
        step = _clamp_interval(step_ms)
        elapsed = 0
        while not predicate():
            if elapsed >= int(max_ms):
                return False
            self.advance(step)
            elapsed += step
        return True


@dataclass(slots=True)
class AsyncioTimers:
    """Timer host backed by an asyncio event loop."""

    loop: asyncio.AbstractEventLoop | None = None

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self.loop is None:
            self.loop = asyncio.get_running_loop()
        return self.loop

    @property
    def now_ms(self) -> int:
        return int(self._get_loop().time() * 1000.0)

    def call_later(self, delay_ms: int, callback: TimerCallback, *, label: str = "") -> TimerToken:
        loop = self._get_loop()
        token = TimerToken(label=str(label))

        def _fire() -> None:
            if not token.active:
                return
            token._finish()
            callback()

        handle = loop.call_later(max(0, int(delay_ms)) / 1000.0, _fire)
        token._on_cancel = handle.cancel
        return token

    def call_every(self, interval_ms: int, callback: TimerCallback, *, label: str = "") -> TimerToken:
        loop = self._get_loop()
        step = _clamp_interval(interval_ms) / 1000.0
        token = TimerToken(label=str(label), repeating=True)

        # Absolute deadlines keep the cadence from drifting with callback latency.
        def _fire(due: float) -> None:
            if not token.active:
                return
            next_due = due + step
            token._on_cancel = loop.call_at(next_due, _fire, next_due).cancel
            callback()

        first_due = loop.time() + step
        token._on_cancel = loop.call_at(first_due, _fire, first_due).cancel
        return token


__all__ = [
    "AsyncioTimers",
    "ManualTimers",
    "TimerCallback",
    "TimerHost",
    "TimerToken",
]
