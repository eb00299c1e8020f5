"""Locate and load ``refctl.toml``.

Lookup order: the ``REFCTL_CONFIG`` env var (a file, or a directory holding
``refctl.toml``), then a walk up from the starting directory to the
filesystem root.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

from refctl.config.models import RefConfig

CONFIG_FILENAME = "refctl.toml"
CONFIG_ENV_VAR = "REFCTL_CONFIG"


def _from_env() -> Path | None:
    target = Path(os.environ[CONFIG_ENV_VAR]).expanduser()
    if target.is_dir():
        target = target / CONFIG_FILENAME
    return target if target.is_file() else None


def find_config(start: Path | None = None) -> Path | None:
    """Return the config file governing *start* (default: cwd), or None.

    When ``REFCTL_CONFIG`` is set it wins outright, even if it points at
    nothing; the walk-up is skipped.
    """
    if os.environ.get(CONFIG_ENV_VAR):
        return _from_env()

    origin = (start or Path.cwd()).resolve()
    for directory in (origin, *origin.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Path | None = None, cwd: Path | None = None) -> RefConfig:
    """Parse and validate the governing config; defaults when none exists."""
    source = path if path is not None else find_config(cwd)
    if source is None:
        return RefConfig()
    with source.open("rb") as fh:
        return RefConfig.model_validate(tomllib.load(fh))
