"""Wave trace log.

One line per scheduler transition, for example::

    2026-10-19T12:00:01.250+00:00 seq=7 event=wave_start active=0 count=9 interval_ms=700 phase=spawning spawned=0 wave=3

Keys after `event` are sorted. Values containing whitespace, quotes or `=` are written as
JSON strings so every line splits back into fields with `parse_wave_debug_line`.
"""

from __future__ import annotations

import datetime as dt
import os
import re
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from threading import Lock

import msgspec

from .config import WaveSchedulerConfig
from .debug import debug_enabled

_TRACE_LOCK = Lock()
_TRACE_PATH: Path | None = None
_TRACE_SEQ = 0

_NEEDS_QUOTES = re.compile(r'[\s"=]')
_FIELD_RE = re.compile(r'(\w+)=("(?:[^"\\]|\\.)*"|\S*)')


def _format_value(value: object) -> str:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if not text or _NEEDS_QUOTES.search(text):
        return msgspec.json.encode(text).decode("utf-8")
    return text


def parse_wave_debug_line(line: str) -> dict[str, str]:
    """Split a trace line into its fields; the leading timestamp is returned as `ts`."""
    ts, _, rest = line.rstrip("\n").partition(" ")
    fields = {"ts": ts}
    for key, raw in _FIELD_RE.findall(rest):
        if raw.startswith('"'):
            raw = msgspec.json.decode(raw.encode("utf-8"), type=str)
        fields[key] = raw
    return fields


def init_wave_debug_log(
    *,
    base_dir: Path,
    source: str,
    config: WaveSchedulerConfig,
    seed: int | None = None,
    **fields: object,
) -> Path:
    """Start a new trace file under `base_dir/logs/waves`, headed by the wave settings in use."""
    global _TRACE_PATH, _TRACE_SEQ
    source_name = str(source).strip().lower() or "unknown"
    timestamp = dt.datetime.now(dt.timezone.utc).strftime("%Y%m%dT%H%M%S.%fZ")
    path = base_dir / "logs" / "waves" / f"waves-{source_name}-pid{os.getpid()}-{timestamp}.log"
    path.parent.mkdir(parents=True, exist_ok=True)

    with _TRACE_LOCK:
        _TRACE_PATH = path
        _TRACE_SEQ = 0

    wave_debug_log(
        "init",
        context=msgspec.structs.asdict(config),
        source=source_name,
        seed="none" if seed is None else int(seed),
        debug=debug_enabled(),
        pid=os.getpid(),
        **fields,
    )
    return path


def wave_debug_log(event: str, *, context: Mapping[str, object] | None = None, **fields: object) -> None:
    """Append one line; explicit `fields` win over same-named `context` entries."""
    global _TRACE_SEQ
    merged = dict(context) if context else {}
    merged.update(fields)
    payload = " ".join(f"{key}={_format_value(merged[key])}" for key in sorted(merged))
    timestamp = dt.datetime.now(dt.timezone.utc).isoformat(timespec="milliseconds")

    with _TRACE_LOCK:
        path = _TRACE_PATH
        if path is None:
            return
        _TRACE_SEQ += 1
        line = f"{timestamp} seq={_TRACE_SEQ} event={str(event).strip()}"
        if payload:
            line += f" {payload}"
        with path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")


def close_wave_debug_log() -> None:
    global _TRACE_PATH
    with _TRACE_LOCK:
        _TRACE_PATH = None


__all__ = [
    "close_wave_debug_log",
    "init_wave_debug_log",
    "parse_wave_debug_line",
    "wave_debug_log",
]
