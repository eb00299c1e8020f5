"""Unified settings — CLI flags, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs  — CLI flags passed by Click
  2. Env vars     — ``REFCTL_*`` prefix, ``__`` for nested sections
  3. TOML file    — ``refctl.toml`` discovered via walk-up
  4. Code defaults — baked into the section models
"""

from __future__ import annotations

import threading
import tomllib
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from refctl.config.discovery import find_config
from refctl.config.models import AnnotateConfig, MarkersConfig, RefConfig, SearchConfig


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings sections from a discovered ``refctl.toml``."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path is None or not toml_path.is_file():
            return
        try:
            self._data = tomllib.loads(toml_path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as exc:
            import click

            msg = f"Invalid TOML in {toml_path}: {exc}"
            raise click.ClickException(msg) from exc

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        return {k: v for k, v in self._data.items() if k in RefConfig.model_fields}


# The TOML path has to reach settings_customise_sources, which is a classmethod.
_tls = threading.local()


class RefSettings(BaseSettings):
    """Frozen settings for one refctl invocation or embedding host.

    Attributes:
        config_path: The TOML file the sections were read from, if any.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "REFCTL_",
        "env_nested_delimiter": "__",
    }

    config_path: Path | None = None

    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False

    markers: MarkersConfig = Field(default_factory=MarkersConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    annotate: AnnotateConfig = Field(default_factory=AnnotateConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, getattr(_tls, "toml_path", None)),
        )

    @property
    def search_root(self) -> Path:
        return self.search.resolved_root()

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        search_root: Path | None = None,
        cwd: Path | None = None,
        **cli_flags: Any,
    ) -> RefSettings:
        """Build settings for a CLI run.

        An explicit *config_path* that does not exist is ignored rather than
        falling back to discovery. *search_root* overrides ``[search] root``
        while keeping the rest of that section.
        """
        toml_path: Path | None
        if config_path:
            candidate = Path(config_path)
            toml_path = candidate if candidate.is_file() else None
        else:
            toml_path = find_config(cwd)

        overrides: dict[str, Any] = dict(cli_flags)
        if search_root is not None:
            overrides["search"] = {"root": search_root}

        _tls.toml_path = toml_path
        try:
            return cls(config_path=toml_path, **overrides)
        finally:
            _tls.toml_path = None
