from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, TypeAlias, TypeVar

import msgspec

from .spawn import SpawnContext, SpawnOutcome, SpawnUnitHook

WaveStartHook = Callable[[int, int, int], None]
UnitSpawnedHook = Callable[[SpawnContext, SpawnOutcome], None]
WaveCompleteHook = Callable[[int], None]
IntermissionHook = Callable[[int, int], None]


def _spawn_nothing(_ctx: SpawnContext) -> None:
    return None


def _ignore(*_args: object) -> None:
    return None


@dataclass(slots=True)
class WaveHooks:
    spawn_unit: SpawnUnitHook = _spawn_nothing
    on_wave_start: WaveStartHook = _ignore
    on_unit_spawned: UnitSpawnedHook = _ignore
    on_wave_complete: WaveCompleteHook = _ignore
    on_intermission_begin: IntermissionHook = _ignore


class WaveStarted(msgspec.Struct, tag_field="kind", tag="wave_started", forbid_unknown_fields=True):
    wave: int = 0
    count: int = 0
    spawn_interval_ms: int = 0
    at_ms: int = 0


class UnitSpawned(msgspec.Struct, tag_field="kind", tag="unit_spawned", forbid_unknown_fields=True):
    wave: int = 0
    index: int = 0
    remaining_to_spawn: int = 0
    ok: bool = True
    error: str = ""
    at_ms: int = 0


class WaveCompleted(msgspec.Struct, tag_field="kind", tag="wave_completed", forbid_unknown_fields=True):
    wave: int = 0
    at_ms: int = 0


class IntermissionBegun(msgspec.Struct, tag_field="kind", tag="intermission_begun", forbid_unknown_fields=True):
    wave_just_completed: int = 0
    ms: int = 0
    at_ms: int = 0


WaveEvent: TypeAlias = WaveStarted | UnitSpawned | WaveCompleted | IntermissionBegun

_EventT = TypeVar("_EventT", WaveStarted, UnitSpawned, WaveCompleted, IntermissionBegun)
_EVENT_DECODER = msgspec.json.Decoder(type=WaveEvent)


def format_event(event: WaveEvent) -> str:
    stamp = f"[{int(event.at_ms):>8d} ms]"
    if isinstance(event, WaveStarted):
        return f"{stamp} wave {event.wave} start: {event.count} units every {event.spawn_interval_ms} ms"
    if isinstance(event, UnitSpawned):
        status = "ok" if event.ok else f"FAILED ({event.error})"
        return (
            f"{stamp} wave {event.wave} spawn {event.index} "
            f"({event.remaining_to_spawn} left) {status}"
        )
    if isinstance(event, WaveCompleted):
        return f"{stamp} wave {event.wave} complete"
    return f"{stamp} intermission {event.ms / 1000:.1f}s after wave {event.wave_just_completed}"


def decode_jsonl(blob: bytes) -> list[WaveEvent]:
    return [_EVENT_DECODER.decode(line) for line in blob.splitlines() if line.strip()]


@dataclass(slots=True)
class WaveEventRecorder:
    """Collects scheduler notifications as typed events."""

    clock: Callable[[], int] | None = None
    events: list[WaveEvent] = field(default_factory=list)

    def _now(self) -> int:
        if self.clock is None:
            return 0
        return int(self.clock())

    def hooks(self, spawn_unit: SpawnUnitHook | None = None, *, forward: WaveHooks | None = None) -> WaveHooks:
        """Build hooks that record every notification, then pass it on to `forward`."""
        downstream = forward if forward is not None else WaveHooks()
        if spawn_unit is None:
            spawn_unit = downstream.spawn_unit

        def on_wave_start(wave: int, count: int, spawn_interval_ms: int) -> None:
            self.events.append(
                WaveStarted(wave=int(wave), count=int(count), spawn_interval_ms=int(spawn_interval_ms), at_ms=self._now())
            )
            downstream.on_wave_start(wave, count, spawn_interval_ms)

        def on_unit_spawned(ctx: SpawnContext, outcome: SpawnOutcome) -> None:
            self.events.append(
                UnitSpawned(
                    wave=int(ctx.wave),
                    index=int(ctx.index),
                    remaining_to_spawn=int(ctx.remaining_to_spawn),
                    ok=bool(outcome.ok),
                    error=str(outcome.reason),
                    at_ms=self._now(),
                )
            )
            downstream.on_unit_spawned(ctx, outcome)

        def on_wave_complete(wave: int) -> None:
            self.events.append(WaveCompleted(wave=int(wave), at_ms=self._now()))
            downstream.on_wave_complete(wave)

        def on_intermission_begin(wave_just_completed: int, ms: int) -> None:
            self.events.append(
                IntermissionBegun(wave_just_completed=int(wave_just_completed), ms=int(ms), at_ms=self._now())
            )
            downstream.on_intermission_begin(wave_just_completed, ms)

        return WaveHooks(
            spawn_unit=spawn_unit,
            on_wave_start=on_wave_start,
            on_unit_spawned=on_unit_spawned,
            on_wave_complete=on_wave_complete,
            on_intermission_begin=on_intermission_begin,
        )

    def of_kind(self, kind: type[_EventT]) -> list[_EventT]:
        return [event for event in self.events if isinstance(event, kind)]

    def clear(self) -> None:
        self.events.clear()

    def encode_jsonl(self) -> bytes:
        return b"".join(msgspec.json.encode(event) + b"\n" for event in self.events)


__all__ = [
    "IntermissionBegun",
    "UnitSpawned",
    "WaveCompleted",
    "WaveEvent",
    "WaveEventRecorder",
    "WaveHooks",
    "WaveStarted",
    "decode_jsonl",
    "format_event",
]
