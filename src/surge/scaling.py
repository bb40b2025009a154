from __future__ import annotations

import math
from dataclasses import dataclass

from .config import WaveSchedulerConfig


def enemies_for_wave(config: WaveSchedulerConfig, wave: int) -> int:
    """Units spawned in 1-indexed `wave`; never below one."""
    raw = config.base_enemies_per_wave + config.per_wave_increment * (int(wave) - 1)
    return max(1, int(math.floor(raw)))


def spawn_interval_for_wave(config: WaveSchedulerConfig, wave: int) -> int:
    interval = int(config.base_spawn_interval_ms) - int(config.spawn_accel_per_wave_ms) * (int(wave) - 1)
    return max(int(config.min_spawn_interval_ms), interval)


@dataclass(frozen=True, slots=True)
class WavePlanRow:
    wave: int
    count: int
    spawn_interval_ms: int

    @property
    def spawn_phase_ms(self) -> int:
        # The first tick fires one interval after the wave starts.
        return int(self.count) * int(self.spawn_interval_ms)


def wave_plan(config: WaveSchedulerConfig, *, first: int = 1, count: int = 10) -> tuple[WavePlanRow, ...]:
    if int(first) < 1:
        raise ValueError(f"first wave must be >= 1, got {first}")
    rows: list[WavePlanRow] = []
    for wave in range(int(first), int(first) + max(0, int(count))):
        rows.append(
            WavePlanRow(
                wave=int(wave),
                count=enemies_for_wave(config, wave),
                spawn_interval_ms=spawn_interval_for_wave(config, wave),
            )
        )
    return tuple(rows)
