from __future__ import annotations

import random

import pytest

from surge.config import WaveSchedulerConfig
from surge.events import IntermissionBegun, UnitSpawned, WaveCompleted, WaveEventRecorder, WaveHooks, WaveStarted
from surge.scheduler import WavePhase, WaveScheduler
from surge.timers import ManualTimers

SCENARIO = WaveSchedulerConfig(
    intermission_ms=100,
    base_enemies_per_wave=3,
    per_wave_increment=2,
    base_spawn_interval_ms=50,
    min_spawn_interval_ms=10,
    spawn_accel_per_wave_ms=5,
)


def _make(
    config: WaveSchedulerConfig = SCENARIO,
    forward: WaveHooks | None = None,
) -> tuple[WaveScheduler, ManualTimers, WaveEventRecorder]:
    timers = ManualTimers()
    recorder = WaveEventRecorder(clock=lambda: timers.now_ms)
    scheduler = WaveScheduler(config, timers=timers, hooks=recorder.hooks(forward=forward))
    return scheduler, timers, recorder


def _kill(scheduler: WaveScheduler, count: int) -> None:
    for _ in range(count):
        scheduler.notify_unit_killed()


def test_config_is_the_positional_argument() -> None:
    timers = ManualTimers()
    started: list[tuple[int, int, int]] = []

    scheduler = WaveScheduler(SCENARIO, timers=timers, hooks=WaveHooks(on_wave_start=lambda *args: started.append(args)))
    scheduler.start()
    timers.advance(50)

    assert scheduler.config is SCENARIO
    assert started == [(1, 3, 50)]
    assert scheduler.spawned_count == 1


def test_default_config_and_hooks() -> None:
    timers = ManualTimers()
    scheduler = WaveScheduler(timers=timers)

    scheduler.start()
    timers.advance(800)

    assert scheduler.config == WaveSchedulerConfig()
    assert (scheduler.target_spawn_count, scheduler.spawn_interval_ms) == (5, 800)
    assert scheduler.spawned_count == 1


def test_timers_must_be_passed_by_keyword() -> None:
    with pytest.raises(TypeError):
        WaveScheduler(SCENARIO, ManualTimers())  # type: ignore[misc]
    with pytest.raises(TypeError):
        WaveScheduler(SCENARIO)  # type: ignore[call-arg]


def test_idle_before_start() -> None:
    scheduler, timers, recorder = _make()

    assert scheduler.wave == 0
    assert scheduler.running is False
    assert scheduler.phase is WavePhase.IDLE
    timers.advance(1000)
    assert recorder.events == []


def test_first_wave_spawns_at_wave_cadence() -> None:
    scheduler, timers, recorder = _make()

    scheduler.start()
    assert recorder.of_kind(WaveStarted) == [WaveStarted(wave=1, count=3, spawn_interval_ms=50, at_ms=0)]
    assert scheduler.phase is WavePhase.SPAWNING

    timers.advance(49)
    assert recorder.of_kind(UnitSpawned) == []

    timers.advance(101)
    spawns = recorder.of_kind(UnitSpawned)
    assert [(s.index, s.remaining_to_spawn, s.at_ms) for s in spawns] == [(1, 2, 50), (2, 1, 100), (3, 0, 150)]
    assert scheduler.spawned_count == 3
    assert scheduler.target_spawn_count == 3
    assert scheduler.active_count == 3
    assert scheduler.phase is WavePhase.CLEANUP
    # The cadence is released as soon as the last unit is out.
    assert timers.pending == 0


def test_clearing_wave_one_starts_harder_wave_two_after_intermission() -> None:
    scheduler, timers, recorder = _make()
    scheduler.start()
    timers.advance(150)

    _kill(scheduler, 3)

    assert recorder.of_kind(WaveCompleted) == [WaveCompleted(wave=1, at_ms=150)]
    assert recorder.of_kind(IntermissionBegun) == [IntermissionBegun(wave_just_completed=1, ms=100, at_ms=150)]
    assert scheduler.phase is WavePhase.INTERMISSION
    assert scheduler.wave == 1

    timers.advance(99)
    assert len(recorder.of_kind(WaveStarted)) == 1

    timers.advance(1)
    assert recorder.of_kind(WaveStarted)[-1] == WaveStarted(wave=2, count=5, spawn_interval_ms=45, at_ms=250)
    assert scheduler.wave == 2
    assert scheduler.spawned_count == 0
    assert scheduler.active_count == 0
    assert scheduler.phase is WavePhase.SPAWNING

    timers.advance(45 * 5)
    wave_two = [s for s in recorder.of_kind(UnitSpawned) if s.wave == 2]
    assert [s.at_ms for s in wave_two] == [295, 340, 385, 430, 475]


def test_completion_is_announced_before_intermission_and_only_once() -> None:
    scheduler, timers, recorder = _make()
    scheduler.start()
    timers.advance(150)

    _kill(scheduler, 8)

    kinds = [type(event).__name__ for event in recorder.events]
    assert kinds[-2:] == ["WaveCompleted", "IntermissionBegun"]
    assert len(recorder.of_kind(WaveCompleted)) == 1
    assert len(recorder.of_kind(IntermissionBegun)) == 1
    assert scheduler.active_count == 0


def test_kills_during_spawn_phase_do_not_complete_the_wave() -> None:
    scheduler, timers, recorder = _make()
    scheduler.start()
    timers.advance(100)

    _kill(scheduler, 2)
    assert scheduler.active_count == 0
    assert scheduler.phase is WavePhase.SPAWNING
    assert recorder.of_kind(WaveCompleted) == []

    timers.advance(50)
    assert scheduler.active_count == 1
    _kill(scheduler, 1)
    assert len(recorder.of_kind(WaveCompleted)) == 1


def test_extra_kills_never_drive_active_count_negative() -> None:
    scheduler, timers, _recorder = _make()
    scheduler.start()

    _kill(scheduler, 4)
    assert scheduler.active_count == 0

    timers.advance(50)
    assert scheduler.active_count == 1


def test_kill_reports_are_ignored_when_idle() -> None:
    scheduler, _timers, recorder = _make()

    scheduler.notify_unit_killed()

    assert scheduler.active_count == 0
    assert recorder.events == []


def test_start_twice_is_a_noop() -> None:
    scheduler, timers, recorder = _make()
    scheduler.start()
    timers.advance(50)

    scheduler.start()

    assert scheduler.wave == 1
    assert scheduler.spawned_count == 1
    assert len(recorder.of_kind(WaveStarted)) == 1


def test_stop_cancels_cadence_and_silences_everything() -> None:
    scheduler, timers, recorder = _make()
    scheduler.start()
    timers.advance(50)

    scheduler.stop()
    scheduler.stop()
    timers.advance(10_000)

    assert scheduler.running is False
    assert scheduler.paused is False
    assert scheduler.phase is WavePhase.IDLE
    assert len(recorder.of_kind(UnitSpawned)) == 1
    assert len(recorder.of_kind(WaveStarted)) == 1
    assert timers.pending == 0


def test_stop_during_intermission_skips_the_next_wave() -> None:
    scheduler, timers, recorder = _make()
    scheduler.start()
    timers.advance(150)
    _kill(scheduler, 3)

    timers.advance(50)
    scheduler.stop()
    timers.advance(10_000)

    assert scheduler.wave == 1
    assert len(recorder.of_kind(WaveStarted)) == 1
    assert timers.pending == 0


def test_stop_keeps_wave_counter_and_start_begins_from_wave_one() -> None:
    scheduler, timers, recorder = _make()
    scheduler.start()
    timers.advance(150)
    _kill(scheduler, 3)
    timers.advance(100)
    assert scheduler.wave == 2

    scheduler.stop()
    assert scheduler.wave == 2

    scheduler.start()
    assert scheduler.wave == 1
    assert recorder.of_kind(WaveStarted)[-1].count == 3


def test_pause_halts_spawning_and_resume_rearms_from_current_progress() -> None:
    scheduler, timers, recorder = _make()
    scheduler.start()
    timers.advance(50)

    scheduler.pause()
    assert scheduler.paused is True
    timers.advance(500)
    assert len(recorder.of_kind(UnitSpawned)) == 1
    assert scheduler.phase is WavePhase.SPAWNING

    scheduler.resume()
    assert scheduler.paused is False
    timers.advance(50)

    spawns = recorder.of_kind(UnitSpawned)
    assert [(s.index, s.at_ms) for s in spawns] == [(1, 50), (2, 600)]
    assert scheduler.target_spawn_count == 3


def test_pause_and_resume_are_noops_in_other_states() -> None:
    scheduler, timers, _recorder = _make()

    scheduler.pause()
    assert scheduler.paused is False
    scheduler.resume()
    assert scheduler.paused is False

    scheduler.start()
    scheduler.resume()
    assert scheduler.paused is False
    scheduler.pause()
    scheduler.pause()
    assert scheduler.paused is True

    scheduler.stop()
    assert scheduler.paused is False
    scheduler.resume()
    assert scheduler.running is False
    assert timers.pending == 0


def test_resume_after_last_spawn_does_not_rearm_cadence() -> None:
    scheduler, timers, _recorder = _make()
    scheduler.start()
    timers.advance(150)

    scheduler.pause()
    scheduler.resume()

    assert timers.pending == 0
    assert scheduler.phase is WavePhase.CLEANUP


def test_paused_scheduler_still_completes_waves_on_kills() -> None:
    scheduler, timers, recorder = _make()
    scheduler.start()
    timers.advance(150)

    scheduler.pause()
    _kill(scheduler, 3)

    assert len(recorder.of_kind(WaveCompleted)) == 1
    assert scheduler.phase is WavePhase.INTERMISSION


def test_pause_does_not_freeze_the_intermission_countdown() -> None:
    # Surprising but deliberate: pausing only suspends spawning, the between-wave timer keeps going.
    scheduler, timers, recorder = _make()
    scheduler.start()
    timers.advance(150)
    _kill(scheduler, 3)

    scheduler.pause()
    timers.advance(100)

    assert scheduler.wave == 2
    assert recorder.of_kind(WaveStarted)[-1].wave == 2
    assert scheduler.paused is True

    timers.advance(1000)
    assert [s for s in recorder.of_kind(UnitSpawned) if s.wave == 2] == []

    scheduler.resume()
    timers.advance(45)
    wave_two = [s for s in recorder.of_kind(UnitSpawned) if s.wave == 2]
    assert [(s.index, s.at_ms) for s in wave_two] == [(1, 1295)]


def test_every_wave_completes_exactly_once_followed_by_its_intermission() -> None:
    scheduler, timers, recorder = _make()
    scheduler.start()

    for wave in range(1, 6):
        assert timers.run_until(lambda: scheduler.phase is WavePhase.CLEANUP, max_ms=5000)
        assert scheduler.wave == wave
        _kill(scheduler, scheduler.target_spawn_count)
        assert timers.run_until(lambda: scheduler.phase is WavePhase.SPAWNING, max_ms=5000)

    completed = recorder.of_kind(WaveCompleted)
    intermissions = recorder.of_kind(IntermissionBegun)
    assert [event.wave for event in completed] == [1, 2, 3, 4, 5]
    assert [event.wave_just_completed for event in intermissions] == [1, 2, 3, 4, 5]
    assert [event.count for event in recorder.of_kind(WaveStarted)] == [3, 5, 7, 9, 11, 13]
    assert scheduler.running is True

    for done, begun in zip(completed, intermissions):
        assert recorder.events.index(begun) == recorder.events.index(done) + 1


def test_counters_stay_within_bounds_under_random_kills() -> None:
    scheduler, timers, _recorder = _make()
    rng = random.Random(7)
    scheduler.start()

    for _ in range(4000):
        timers.advance(1)
        if rng.random() < 0.04:
            _kill(scheduler, rng.randint(1, 3))
        assert 0 <= scheduler.spawned_count <= scheduler.target_spawn_count
        assert scheduler.active_count >= 0

    assert scheduler.wave > 3


def test_units_killed_inside_the_spawn_hook_still_complete_once() -> None:
    timers = ManualTimers()
    recorder = WaveEventRecorder(clock=lambda: timers.now_ms)
    holder: list[WaveScheduler] = []

    def spawn_and_die(_ctx: object) -> str:
        holder[0].notify_unit_killed()
        return "ghost"

    scheduler = WaveScheduler(timers=timers, config=SCENARIO, hooks=recorder.hooks(spawn_and_die))
    holder.append(scheduler)
    scheduler.start()
    timers.advance(150)

    assert len(recorder.of_kind(WaveCompleted)) == 1
    assert len(recorder.of_kind(UnitSpawned)) == 3
    timers.advance(100)
    assert scheduler.wave == 2


def test_hook_that_stops_the_scheduler_on_wave_start_leaves_nothing_armed() -> None:
    timers = ManualTimers()
    holder: list[WaveScheduler] = []
    scheduler = WaveScheduler(
        timers=timers,
        config=SCENARIO,
        hooks=WaveHooks(on_wave_start=lambda *_args: holder[0].stop()),
    )
    holder.append(scheduler)

    scheduler.start()
    timers.advance(500)

    assert scheduler.running is False
    assert scheduler.spawned_count == 0
    assert timers.pending == 0


def test_snapshot_reflects_live_state() -> None:
    scheduler, timers, _recorder = _make()
    scheduler.start()
    timers.advance(100)
    scheduler.notify_unit_killed()

    snap = scheduler.snapshot()

    assert snap.wave == 1
    assert snap.phase is WavePhase.SPAWNING
    assert snap.running is True
    assert snap.paused is False
    assert snap.spawned_count == 2
    assert snap.target_spawn_count == 3
    assert snap.active_count == 1
    assert snap.spawn_interval_ms == 50
    assert snap.spawn_failures == 0
