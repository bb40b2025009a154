from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class FrameClock:
    """Turns frame time into whole milliseconds for `ManualTimers.advance`."""

    tick_rate: int = 60
    accum_ms: float = 0.0

    def __post_init__(self) -> None:
        tick_rate = int(self.tick_rate)
        if tick_rate <= 0:
            raise ValueError(f"tick_rate must be positive, got {tick_rate}")
        self.tick_rate = tick_rate
        self.accum_ms = float(self.accum_ms)

    def advance(self, dt: float, *, max_dt: float = 0.1) -> int:
        dt = float(dt)
        if dt <= 0.0:
            return 0
        if dt > float(max_dt):
            dt = float(max_dt)

        self.accum_ms += dt * 1000.0
        whole = int(self.accum_ms + 1e-9)
        if whole <= 0:
            return 0
        self.accum_ms -= float(whole)
        if self.accum_ms < 0.0:
            self.accum_ms = 0.0
        return int(whole)

    def step(self) -> int:
        return self.advance(1.0 / float(self.tick_rate))
