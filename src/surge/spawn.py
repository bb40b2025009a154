from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True, slots=True)
class SpawnContext:
    wave: int
    index: int
    remaining_to_spawn: int


@dataclass(frozen=True, slots=True)
class SpawnOutcome:
    """Result of one spawn hook call: a handle on success, a reason on failure."""

    ok: bool
    handle: Any = None
    reason: str = ""
    error: Exception | None = None

    @classmethod
    def spawned(cls, handle: Any = None) -> SpawnOutcome:
        return cls(ok=True, handle=handle)

    @classmethod
    def failed(cls, reason: str, *, error: Exception | None = None) -> SpawnOutcome:
        return cls(ok=False, reason=str(reason), error=error)

    @classmethod
    def from_exception(cls, exc: Exception) -> SpawnOutcome:
        return cls.failed(f"{type(exc).__name__}: {exc}", error=exc)


SpawnUnitHook = Callable[[SpawnContext], Any]


def coerce_spawn_result(value: Any) -> SpawnOutcome:
    # Hooks may return a plain handle; only an explicit outcome can report failure.
    if isinstance(value, SpawnOutcome):
        return value
    return SpawnOutcome.spawned(value)


def call_spawn_hook(hook: SpawnUnitHook, ctx: SpawnContext) -> SpawnOutcome:
    try:
        result = hook(ctx)
    except Exception as exc:
        return SpawnOutcome.from_exception(exc)
    return coerce_spawn_result(result)
