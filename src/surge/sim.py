"""Headless host that drives a `WaveScheduler` without a game attached.

Units have no behavior: each one simply dies after a random lifetime, which is reported
back through `notify_unit_killed()`. On a manual clock the runner calls `reap()` once per
frame; on asyncio each unit gets its own death timer. Used by `surge simulate` and the tests.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field

from .clock import FrameClock
from .config import WaveSchedulerConfig
from .events import WaveEvent, WaveEventRecorder, WaveHooks
from .scaling import wave_plan
from .scheduler import WavePhase, WaveScheduler
from .spawn import SpawnContext, SpawnOutcome
from .timers import AsyncioTimers, ManualTimers, TimerHost, TimerToken

DEFAULT_LIFETIME_MS = (500, 1700)
REALTIME_POLL_SECONDS = 0.005
_BUDGET_SLACK_MS = 1000


@dataclass(frozen=True, slots=True)
class SimUnit:
    unit_id: int
    wave: int
    index: int
    spawned_at_ms: int
    dies_at_ms: int


@dataclass(frozen=True, slots=True)
class SimulationReport:
    events: tuple[WaveEvent, ...]
    elapsed_ms: int
    waves_completed: int
    units_spawned: int
    spawn_failures: int
    timed_out: bool


@dataclass(slots=True)
class SimulationHost:
    timers: TimerHost
    rng: random.Random
    lifetime_ms: tuple[int, int] = DEFAULT_LIFETIME_MS
    spawn_failure_rate: float = 0.0
    death_timers: bool = False
    scheduler: WaveScheduler | None = None
    alive: dict[int, SimUnit] = field(default_factory=dict)
    units_spawned: int = 0
    spawn_failures: int = 0
    _next_id: int = 0
    _tokens: list[TimerToken] = field(default_factory=list)

    def hooks(self) -> WaveHooks:
        return WaveHooks(spawn_unit=self.spawn_unit, on_unit_spawned=self.on_unit_spawned)

    def spawn_unit(self, ctx: SpawnContext) -> SpawnOutcome:
        if self.spawn_failure_rate > 0.0 and self.rng.random() < float(self.spawn_failure_rate):
            return SpawnOutcome.failed("simulated spawn failure")
        lo, hi = self.lifetime_ms
        now_ms = int(self.timers.now_ms)
        lifetime = int(self.rng.uniform(float(lo), float(hi)))
        self._next_id += 1
        unit = SimUnit(
            unit_id=int(self._next_id),
            wave=int(ctx.wave),
            index=int(ctx.index),
            spawned_at_ms=now_ms,
            dies_at_ms=now_ms + lifetime,
        )
        self.alive[unit.unit_id] = unit
        self.units_spawned += 1
        if self.death_timers:
            self._track(self.timers.call_later(lifetime, lambda: self._kill(unit.unit_id), label=f"unit:{unit.unit_id}"))
        return SpawnOutcome.spawned(unit)

    def on_unit_spawned(self, ctx: SpawnContext, outcome: SpawnOutcome) -> None:
        if outcome.ok:
            return
        # The scheduler counts failed spawns as active until told otherwise.
        self.spawn_failures += 1
        self._report_killed()

    def reap(self, now_ms: int) -> list[SimUnit]:
        """Report every unit whose lifetime has ended by `now_ms`, earliest death first."""
        dead = sorted(
            (unit for unit in self.alive.values() if unit.dies_at_ms <= int(now_ms)),
            key=lambda unit: (unit.dies_at_ms, unit.unit_id),
        )
        for unit in dead:
            self._kill(unit.unit_id)
        return dead

    def cancel_all(self) -> None:
        for token in self._tokens:
            token.cancel()
        self._tokens.clear()

    def _track(self, token: TimerToken) -> None:
        self._tokens = [t for t in self._tokens if t.active]
        self._tokens.append(token)

    def _kill(self, unit_id: int) -> None:
        if self.alive.pop(int(unit_id), None) is None:
            return
        self._report_killed()

    def _report_killed(self) -> None:
        if self.scheduler is not None:
            self.scheduler.notify_unit_killed()


def waves_completed(scheduler: WaveScheduler) -> int:
    if scheduler.phase is WavePhase.INTERMISSION:
        return scheduler.wave
    return max(0, scheduler.wave - 1)


def simulation_budget_ms(config: WaveSchedulerConfig, *, waves: int, lifetime_ms: tuple[int, int]) -> int:
    """Generous upper bound on simulated time needed to clear `waves` waves."""
    total = 0
    for row in wave_plan(config, first=1, count=waves):
        total += row.spawn_phase_ms + int(lifetime_ms[1]) + int(config.intermission_ms)
    return total + _BUDGET_SLACK_MS


def _build(
    timers: TimerHost,
    config: WaveSchedulerConfig,
    *,
    seed: int,
    lifetime_ms: tuple[int, int],
    spawn_failure_rate: float,
    death_timers: bool = False,
    clock_origin_ms: int = 0,
) -> tuple[WaveScheduler, SimulationHost, WaveEventRecorder]:
    lo, hi = int(lifetime_ms[0]), int(lifetime_ms[1])
    if lo < 0 or hi < lo:
        raise ValueError(f"invalid lifetime range {lifetime_ms!r}")
    if not 0.0 <= float(spawn_failure_rate) <= 1.0:
        raise ValueError(f"spawn_failure_rate must be within [0, 1], got {spawn_failure_rate}")
    host = SimulationHost(
        timers=timers,
        rng=random.Random(int(seed)),
        lifetime_ms=(lo, hi),
        spawn_failure_rate=float(spawn_failure_rate),
        death_timers=bool(death_timers),
    )
    recorder = WaveEventRecorder(clock=lambda: int(timers.now_ms) - int(clock_origin_ms))
    scheduler = WaveScheduler(config, timers=timers, hooks=recorder.hooks(forward=host.hooks()))
    host.scheduler = scheduler
    return scheduler, host, recorder


def _report(
    recorder: WaveEventRecorder,
    scheduler: WaveScheduler,
    host: SimulationHost,
    *,
    elapsed_ms: int,
    waves: int,
    timed_out: bool,
) -> SimulationReport:
    return SimulationReport(
        events=tuple(recorder.events),
        elapsed_ms=int(elapsed_ms),
        waves_completed=min(int(waves), waves_completed(scheduler)),
        units_spawned=int(host.units_spawned),
        spawn_failures=int(host.spawn_failures),
        timed_out=bool(timed_out),
    )


def run_simulation(
    config: WaveSchedulerConfig | None = None,
    *,
    waves: int = 3,
    seed: int = 0,
    tick_rate: int = 60,
    lifetime_ms: tuple[int, int] = DEFAULT_LIFETIME_MS,
    spawn_failure_rate: float = 0.0,
    max_ms: int | None = None,
) -> SimulationReport:
    """Step a scheduler frame by frame on a manual clock until `waves` waves are cleared."""
    if int(waves) < 1:
        raise ValueError(f"waves must be >= 1, got {waves}")
    config = config or WaveSchedulerConfig()
    timers = ManualTimers()
    clock = FrameClock(tick_rate=tick_rate)
    scheduler, host, recorder = _build(
        timers,
        config,
        seed=seed,
        lifetime_ms=lifetime_ms,
        spawn_failure_rate=spawn_failure_rate,
    )
    limit_ms = int(max_ms) if max_ms is not None else simulation_budget_ms(config, waves=waves, lifetime_ms=lifetime_ms)

    timed_out = False
    scheduler.start()
    while waves_completed(scheduler) < int(waves):
        if timers.now_ms >= limit_ms:
            timed_out = True
            break
        timers.advance(clock.step())
        host.reap(timers.now_ms)
    # Freeze the phase before stopping so the report counts an in-progress intermission.
    report = _report(recorder, scheduler, host, elapsed_ms=timers.now_ms, waves=waves, timed_out=timed_out)
    scheduler.stop()
    host.cancel_all()
    return report


async def run_realtime_simulation(
    config: WaveSchedulerConfig | None = None,
    *,
    waves: int = 1,
    seed: int = 0,
    lifetime_ms: tuple[int, int] = DEFAULT_LIFETIME_MS,
    spawn_failure_rate: float = 0.0,
    max_ms: int | None = None,
) -> SimulationReport:
    """Same as `run_simulation`, with real asyncio timers driving spawns and deaths."""
    if int(waves) < 1:
        raise ValueError(f"waves must be >= 1, got {waves}")
    config = config or WaveSchedulerConfig()
    timers = AsyncioTimers(loop=asyncio.get_running_loop())
    origin_ms = timers.now_ms
    scheduler, host, recorder = _build(
        timers,
        config,
        seed=seed,
        lifetime_ms=lifetime_ms,
        spawn_failure_rate=spawn_failure_rate,
        death_timers=True,
        clock_origin_ms=origin_ms,
    )
    limit_ms = int(max_ms) if max_ms is not None else simulation_budget_ms(config, waves=waves, lifetime_ms=lifetime_ms)

    timed_out = False
    scheduler.start()
    try:
        while waves_completed(scheduler) < int(waves):
            if timers.now_ms - origin_ms >= limit_ms:
                timed_out = True
                break
            await asyncio.sleep(REALTIME_POLL_SECONDS)
        return _report(
            recorder,
            scheduler,
            host,
            elapsed_ms=timers.now_ms - origin_ms,
            waves=waves,
            timed_out=timed_out,
        )
    finally:
        scheduler.stop()
        host.cancel_all()


__all__ = [
    "DEFAULT_LIFETIME_MS",
    "SimUnit",
    "SimulationHost",
    "SimulationReport",
    "run_realtime_simulation",
    "run_simulation",
    "simulation_budget_ms",
    "waves_completed",
]
