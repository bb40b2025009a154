"""Wave scheduler configuration: defaults, validation and TOML/JSON persistence."""

from __future__ import annotations

from pathlib import Path

import msgspec

from .paths import CONFIG_NAME

DEFAULT_INTERMISSION_MS = 10000
DEFAULT_BASE_ENEMIES_PER_WAVE = 5
DEFAULT_PER_WAVE_INCREMENT = 2
DEFAULT_BASE_SPAWN_INTERVAL_MS = 800
DEFAULT_MIN_SPAWN_INTERVAL_MS = 200
DEFAULT_SPAWN_ACCEL_PER_WAVE_MS = 50

_SUPPORTED_SUFFIXES = (".toml", ".json")


class WaveSchedulerConfig(msgspec.Struct, frozen=True, forbid_unknown_fields=True):
    intermission_ms: int = DEFAULT_INTERMISSION_MS
    # Fractional values are allowed; counts are floored per wave.
    base_enemies_per_wave: int | float = DEFAULT_BASE_ENEMIES_PER_WAVE
    per_wave_increment: int | float = DEFAULT_PER_WAVE_INCREMENT
    base_spawn_interval_ms: int = DEFAULT_BASE_SPAWN_INTERVAL_MS
    min_spawn_interval_ms: int = DEFAULT_MIN_SPAWN_INTERVAL_MS
    spawn_accel_per_wave_ms: int = DEFAULT_SPAWN_ACCEL_PER_WAVE_MS


def validate_wave_config(config: WaveSchedulerConfig) -> WaveSchedulerConfig:
    """Reject configurations the cadence formulas are not meant for.

    The scheduler itself never calls this; file loaders and the CLI do.
    """
    for name in config.__struct_fields__:
        value = getattr(config, name)
        if value < 0:
            raise ValueError(f"{name} must be non-negative, got {value}")
    if int(config.min_spawn_interval_ms) > int(config.base_spawn_interval_ms):
        raise ValueError(
            "min_spawn_interval_ms must not exceed base_spawn_interval_ms "
            f"({config.min_spawn_interval_ms} > {config.base_spawn_interval_ms})"
        )
    return config


def _check_suffix(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix not in _SUPPORTED_SUFFIXES:
        raise ValueError(f"unsupported config format {suffix or '<none>'!r}; expected .toml or .json")
    return suffix


def load_wave_config(path: Path) -> WaveSchedulerConfig:
    suffix = _check_suffix(path)
    if not path.is_file():
        raise ValueError(f"missing config file: {path}")
    blob = path.read_bytes()
    try:
        if suffix == ".toml":
            config = msgspec.toml.decode(blob, type=WaveSchedulerConfig)
        else:
            config = msgspec.json.decode(blob, type=WaveSchedulerConfig)
    except msgspec.DecodeError as exc:
        raise ValueError(f"{path}: {exc}") from exc
    try:
        return validate_wave_config(config)
    except ValueError as exc:
        raise ValueError(f"{path}: {exc}") from exc


def encode_wave_config(config: WaveSchedulerConfig, *, suffix: str = ".toml") -> bytes:
    if suffix == ".toml":
        return msgspec.toml.encode(config)
    return msgspec.json.format(msgspec.json.encode(config), indent=2) + b"\n"


def save_wave_config(path: Path, config: WaveSchedulerConfig) -> Path:
    suffix = _check_suffix(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode_wave_config(config, suffix=suffix))
    return path


def ensure_wave_config(base_dir: Path) -> Path:
    path = base_dir / CONFIG_NAME
    if path.exists():
        return path
    return save_wave_config(path, WaveSchedulerConfig())


__all__ = [
    "WaveSchedulerConfig",
    "encode_wave_config",
    "ensure_wave_config",
    "load_wave_config",
    "save_wave_config",
    "validate_wave_config",
]
