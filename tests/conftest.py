from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest


def pytest_configure(config: pytest.Config) -> None:
    # Ensure the local `src/` tree wins over any other editable install that may exist
    # (e.g. a different git worktree pointing at the same project).
    src_dir = Path(__file__).resolve().parents[1] / "src"
    src_str = str(src_dir)
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


@pytest.fixture(autouse=True)
def _reset_wave_trace(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    from surge.debug import set_debug_enabled
    from surge.debug_log import close_wave_debug_log

    monkeypatch.delenv("SURGE_DEBUG", raising=False)
    close_wave_debug_log()
    set_debug_enabled(None)
    yield
    close_wave_debug_log()
    set_debug_enabled(None)
