from __future__ import annotations

import os
from pathlib import Path

from platformdirs import PlatformDirs

APP_NAME = "surge"
CONFIG_NAME = "surge.toml"


def _dirs() -> PlatformDirs:
    return PlatformDirs(appname=APP_NAME, appauthor=False)


def default_runtime_dir() -> Path:
    override = os.environ.get("SURGE_RUNTIME_DIR")
    if override:
        return Path(override).expanduser().resolve()
    return Path(_dirs().user_data_path)


def default_config_path() -> Path:
    override = os.environ.get("SURGE_CONFIG")
    if override:
        return Path(override).expanduser().resolve()
    return Path(_dirs().user_config_path) / CONFIG_NAME
