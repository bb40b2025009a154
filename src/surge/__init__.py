from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("surge-waves")
except PackageNotFoundError:  # pragma: no cover
    # Allow running from source (e.g. `PYTHONPATH=src`) without installed package metadata.
    __version__ = "0.0.0+dev"
