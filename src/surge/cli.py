from __future__ import annotations

import asyncio
from pathlib import Path

import msgspec
import typer

from .config import (
    WaveSchedulerConfig,
    encode_wave_config,
    load_wave_config,
    save_wave_config,
)
from .debug import set_debug_enabled
from .debug_log import close_wave_debug_log, init_wave_debug_log
from .events import format_event
from .paths import default_config_path, default_runtime_dir
from .scaling import wave_plan
from .sim import DEFAULT_LIFETIME_MS, SimulationReport, run_realtime_simulation, run_simulation


app = typer.Typer(add_completion=False)
config_app = typer.Typer(add_completion=False)
app.add_typer(config_app, name="config")


def _load_config(path: Path | None) -> WaveSchedulerConfig:
    if path is None:
        return WaveSchedulerConfig()
    try:
        return load_wave_config(path)
    except ValueError as exc:
        typer.echo(f"config error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command("plan")
def cmd_plan(
    config_path: Path | None = typer.Option(None, "--config", help="wave config (.toml or .json); default: built-in defaults"),
    first: int = typer.Option(1, "--first", min=1, help="first wave to list"),
    count: int = typer.Option(10, "--count", min=1, help="number of waves to list"),
) -> None:
    """Print unit count and spawn cadence per wave."""
    config = _load_config(config_path)
    typer.echo(f"{'wave':>6}  {'units':>6}  {'every_ms':>8}  {'spawn_phase_ms':>14}")
    for row in wave_plan(config, first=first, count=count):
        typer.echo(f"{row.wave:>6d}  {row.count:>6d}  {row.spawn_interval_ms:>8d}  {row.spawn_phase_ms:>14d}")


def _print_report(report: SimulationReport, *, as_json: bool) -> None:
    for event in report.events:
        if as_json:
            typer.echo(msgspec.json.encode(event).decode("utf-8"))
        else:
            typer.echo(format_event(event))
    if as_json:
        return
    typer.echo(
        f"waves_completed={report.waves_completed} units_spawned={report.units_spawned} "
        f"spawn_failures={report.spawn_failures} elapsed_ms={report.elapsed_ms} timed_out={report.timed_out}"
    )


@app.command("simulate")
def cmd_simulate(
    config_path: Path | None = typer.Option(None, "--config", help="wave config (.toml or .json); default: built-in defaults"),
    waves: int = typer.Option(3, "--waves", min=1, help="stop after this many waves are cleared"),
    seed: int = typer.Option(0, "--seed", help="seed for unit lifetimes and injected failures"),
    tick_rate: int = typer.Option(60, "--tick-rate", min=1, help="simulated frames per second"),
    failure_rate: float = typer.Option(0.0, "--failure-rate", min=0.0, max=1.0, help="fraction of spawns that fail"),
    lifetime_min_ms: int = typer.Option(DEFAULT_LIFETIME_MS[0], "--lifetime-min-ms", min=0, help="shortest unit lifetime"),
    lifetime_max_ms: int = typer.Option(DEFAULT_LIFETIME_MS[1], "--lifetime-max-ms", min=0, help="longest unit lifetime"),
    max_seconds: float | None = typer.Option(None, "--max-seconds", min=0.0, help="give up after this much (simulated) time"),
    as_json: bool = typer.Option(False, "--json", help="print events as JSON lines"),
    realtime: bool = typer.Option(False, "--realtime", help="run on wall-clock time with asyncio timers"),
    debug: bool = typer.Option(False, "--debug", help="write a wave trace log under base-dir"),
    base_dir: Path = typer.Option(
        default_runtime_dir(),
        "--base-dir",
        help="base path for runtime files (default: per-user OS data dir; override with SURGE_RUNTIME_DIR)",
    ),
) -> None:
    """Run the scheduler against a headless host whose units die after a random lifetime."""
    config = _load_config(config_path)
    if lifetime_max_ms < lifetime_min_ms:
        raise typer.BadParameter("must be >= --lifetime-min-ms", param_hint="--lifetime-max-ms")
    lifetime = (int(lifetime_min_ms), int(lifetime_max_ms))
    max_ms = None if max_seconds is None else int(float(max_seconds) * 1000.0)

    if debug:
        set_debug_enabled(True)
        log_path = init_wave_debug_log(
            base_dir=base_dir,
            source="realtime" if realtime else "simulate",
            config=config,
            seed=seed,
            waves=int(waves),
        )
        typer.echo(f"trace log: {log_path}", err=True)
    try:
        if realtime:
            report = asyncio.run(
                run_realtime_simulation(
                    config,
                    waves=waves,
                    seed=seed,
                    lifetime_ms=lifetime,
                    spawn_failure_rate=failure_rate,
                    max_ms=max_ms,
                )
            )
        else:
            report = run_simulation(
                config,
                waves=waves,
                seed=seed,
                tick_rate=tick_rate,
                lifetime_ms=lifetime,
                spawn_failure_rate=failure_rate,
                max_ms=max_ms,
            )
    finally:
        if debug:
            close_wave_debug_log()
            set_debug_enabled(None)

    _print_report(report, as_json=as_json)
    if report.timed_out:
        typer.echo(f"timed out after {report.elapsed_ms} ms with {report.waves_completed} waves cleared", err=True)
        raise typer.Exit(code=1)


@config_app.command("init")
def cmd_config_init(
    path: Path = typer.Option(default_config_path(), "--path", help="where to write the config (.toml or .json)"),
    force: bool = typer.Option(False, "--force", help="overwrite an existing file"),
) -> None:
    """Write a config file with the default wave settings."""
    if path.exists() and not force:
        typer.echo(f"config already exists: {path} (use --force to overwrite)", err=True)
        raise typer.Exit(code=1)
    try:
        save_wave_config(path, WaveSchedulerConfig())
    except ValueError as exc:
        typer.echo(f"config error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"wrote {path}")


@config_app.command("show")
def cmd_config_show(
    path: Path = typer.Option(default_config_path(), "--path", help="config file to show"),
) -> None:
    """Validate a config file and print the effective settings."""
    config = _load_config(path)
    typer.echo(encode_wave_config(config, suffix=".toml").decode("utf-8").rstrip())


def main(argv: list[str] | None = None) -> None:
    app(prog_name="surge", args=argv)


if __name__ == "__main__":
    main()
