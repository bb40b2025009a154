"""Endless wave scheduler.

Waves cycle spawn -> cleanup -> intermission -> spawn until `stop()`. Two timers drive it:
a repeating spawn cadence and a one-shot intermission delay, both issued by a `TimerHost`
and revoked through their `TimerToken`. Every timer callback re-checks that its token is
still the live one and that the scheduler is still running before touching state.

Host hooks are called synchronously. A hook that raises never escapes into the timer
loop: spawn failures become a failed `SpawnOutcome`, notification failures go to the
trace log.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from .config import WaveSchedulerConfig
from .debug import debug_enabled
from .debug_log import wave_debug_log
from .events import WaveHooks
from .scaling import enemies_for_wave, spawn_interval_for_wave
from .spawn import SpawnContext, call_spawn_hook
from .timers import TimerHost, TimerToken


class WavePhase(str, Enum):
    IDLE = "idle"
    SPAWNING = "spawning"
    CLEANUP = "cleanup"
    INTERMISSION = "intermission"


@dataclass(frozen=True, slots=True)
class SchedulerSnapshot:
    wave: int
    phase: WavePhase
    running: bool
    paused: bool
    spawned_count: int
    target_spawn_count: int
    active_count: int
    spawn_interval_ms: int
    spawn_failures: int


@dataclass(slots=True)
class WaveScheduler:
    config: WaveSchedulerConfig = field(default_factory=WaveSchedulerConfig)
    timers: TimerHost = field(kw_only=True)
    hooks: WaveHooks = field(default_factory=WaveHooks, kw_only=True)
    _wave: int = field(init=False, default=0)
    _running: bool = field(init=False, default=False)
    _paused: bool = field(init=False, default=False)
    _spawned: int = field(init=False, default=0)
    _to_spawn: int = field(init=False, default=0)
    _active: int = field(init=False, default=0)
    _interval_ms: int = field(init=False, default=0)
    _spawn_failures: int = field(init=False, default=0)
    _spawn_token: TimerToken | None = field(init=False, default=None)
    _intermission_token: TimerToken | None = field(init=False, default=None)

    @property
    def wave(self) -> int:
        return int(self._wave)

    @property
    def running(self) -> bool:
        return bool(self._running)

    @property
    def paused(self) -> bool:
        return bool(self._paused)

    @property
    def spawned_count(self) -> int:
        return int(self._spawned)

    @property
    def target_spawn_count(self) -> int:
        return int(self._to_spawn)

    @property
    def active_count(self) -> int:
        return int(self._active)

    @property
    def spawn_interval_ms(self) -> int:
        return int(self._interval_ms)

    @property
    def spawn_failures(self) -> int:
        return int(self._spawn_failures)

    @property
    def phase(self) -> WavePhase:
        if not self._running:
            return WavePhase.IDLE
        if self._intermission_token is not None:
            return WavePhase.INTERMISSION
        if self._spawned < self._to_spawn:
            return WavePhase.SPAWNING
        return WavePhase.CLEANUP

    def snapshot(self) -> SchedulerSnapshot:
        return SchedulerSnapshot(
            wave=self.wave,
            phase=self.phase,
            running=self.running,
            paused=self.paused,
            spawned_count=self.spawned_count,
            target_spawn_count=self.target_spawn_count,
            active_count=self.active_count,
            spawn_interval_ms=self.spawn_interval_ms,
            spawn_failures=self.spawn_failures,
        )

    def start(self) -> None:
        if self._running:
            self._ignored("start")
            return
        self._running = True
        self._paused = False
        self._wave = 1
        self._begin_wave()

    def stop(self) -> None:
        was_running = self._running
        self._running = False
        self._paused = False
        self._cancel_spawn_loop()
        self._cancel_intermission()
        if was_running:
            self._trace("stop")

    def pause(self) -> None:
        if not self._running or self._paused:
            self._ignored("pause")
            return
        self._paused = True
        # The intermission timer keeps running; only spawning is suspended.
        self._cancel_spawn_loop()

    def resume(self) -> None:
        if not self._running or not self._paused:
            self._ignored("resume")
            return
        self._paused = False
        if self._spawned < self._to_spawn:
            self._start_spawn_loop()

    def notify_unit_killed(self) -> None:
        """Report that one spawned unit stopped counting as active (died, despawned, escaped)."""
        if not self._running:
            self._ignored("notify_unit_killed")
            return
        if self._active <= 0:
            self._ignored("notify_unit_killed", reason="no_active_units")
        self._active = max(0, self._active - 1)
        self._maybe_complete_wave()

    def _begin_wave(self) -> None:
        self._spawned = 0
        self._to_spawn = enemies_for_wave(self.config, self._wave)
        self._active = 0
        self._spawn_failures = 0
        self._interval_ms = spawn_interval_for_wave(self.config, self._wave)
        self._trace("wave_start", count=int(self._to_spawn), interval_ms=int(self._interval_ms), paused=bool(self._paused))
        self._notify("on_wave_start", self.hooks.on_wave_start, self._wave, self._to_spawn, self._interval_ms)
        # A hook may have stopped or paused us; a paused wave arms its cadence on resume().
        if self._running and not self._paused:
            self._start_spawn_loop()

    def _start_spawn_loop(self) -> None:
        self._cancel_spawn_loop()
        token: TimerToken | None = None

        def _tick() -> None:
            if token is not self._spawn_token or not self._running or self._paused:
                return
            self._spawn_tick()

        token = self.timers.call_every(self._interval_ms, _tick, label=f"spawn:wave{self._wave}")
        self._spawn_token = token

    def _cancel_spawn_loop(self) -> None:
        token = self._spawn_token
        self._spawn_token = None
        if token is not None:
            token.cancel()

    def _cancel_intermission(self) -> None:
        token = self._intermission_token
        self._intermission_token = None
        if token is not None:
            token.cancel()

    def _spawn_tick(self) -> None:
        if self._spawned >= self._to_spawn:
            self._cancel_spawn_loop()
            self._maybe_complete_wave()
            return

        self._spawned += 1
        self._active += 1
        ctx = SpawnContext(
            wave=int(self._wave),
            index=int(self._spawned),
            remaining_to_spawn=int(self._to_spawn - self._spawned),
        )
        outcome = call_spawn_hook(self.hooks.spawn_unit, ctx)
        if not outcome.ok:
            self._spawn_failures += 1
            self._trace("spawn_failed", index=int(ctx.index), reason=outcome.reason)
        self._notify("on_unit_spawned", self.hooks.on_unit_spawned, ctx, outcome)

        if self._spawned >= self._to_spawn:
            self._cancel_spawn_loop()

    def _maybe_complete_wave(self) -> None:
        if not self._running or self._intermission_token is not None:
            return
        if self._spawned < self._to_spawn or self._active != 0:
            return
        wave = int(self._wave)
        ms = int(self.config.intermission_ms)
        # Arm first so re-entrant kill reports from the hooks below see the pending marker.
        self._schedule_intermission(ms)
        self._trace("wave_complete", failures=int(self._spawn_failures))
        self._notify("on_wave_complete", self.hooks.on_wave_complete, wave)
        self._trace("intermission", ms=ms)
        self._notify("on_intermission_begin", self.hooks.on_intermission_begin, wave, ms)

    def _schedule_intermission(self, ms: int) -> None:
        token: TimerToken | None = None

        def _fire() -> None:
            if token is not self._intermission_token:
                return
            self._intermission_token = None
            if not self._running:
                return
            self._wave += 1
            self._begin_wave()

        token = self.timers.call_later(ms, _fire, label=f"intermission:wave{self._wave}")
        self._intermission_token = token

    def _notify(self, name: str, hook: Callable[..., Any], *args: Any) -> None:
        try:
            hook(*args)
        except Exception as exc:
            self._trace("hook_failed", hook=name, error=f"{type(exc).__name__}: {exc}")

    def _ignored(self, call: str, **fields: object) -> None:
        if not debug_enabled():
            return
        self._trace("ignored_call", call=call, running=bool(self._running), paused=bool(self._paused), **fields)

    def _trace(self, event: str, **fields: object) -> None:
        context = {
            "wave": int(self._wave),
            "phase": self.phase,
            "spawned": int(self._spawned),
            "active": int(self._active),
        }
        wave_debug_log(event, context=context, **fields)


__all__ = [
    "SchedulerSnapshot",
    "WavePhase",
    "WaveScheduler",
]
