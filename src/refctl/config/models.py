"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, refctl.toml only contains overrides.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

_TAG_PATTERN = re.compile(r"^[^\s:\[\]]+$")


class MarkersConfig(BaseModel):
    """[markers] section."""

    model_config = {"frozen": True}

    location_tag: str = "id"
    reference_tag: str = "ref"
    rescan_delay: float = Field(default=0.5, ge=0.0)

    @field_validator("location_tag", "reference_tag")
    @classmethod
    def _normalize_tag(cls, value: str) -> str:
        if not _TAG_PATTERN.match(value):
            msg = f"Invalid marker tag {value!r}: no whitespace, ':', '[' or ']' allowed"
            raise ValueError(msg)
        return value.lower()

    @model_validator(mode="after")
    def _distinct_tags(self) -> MarkersConfig:
        if self.location_tag == self.reference_tag:
            msg = "location_tag and reference_tag must differ"
            raise ValueError(msg)
        return self


class SearchConfig(BaseModel):
    """[search] section."""

    model_config = {"frozen": True}

    root: Path | None = None
    content_tool: str = "rg"
    filename_tool: str = "fd"
    timeout: float = Field(default=10.0, gt=0.0)

    def resolved_root(self) -> Path:
        """Configured root, or the user's home directory, as an absolute path."""
        return (self.root or Path.home()).expanduser().resolve()


class AnnotateConfig(BaseModel):
    """[annotate] section."""

    model_config = {"frozen": True}

    eligible_kinds: list[str] = Field(default_factory=lambda: ["text", "prog"])


class RefConfig(BaseModel):
    """Root configuration composing all sections."""

    model_config = {"frozen": True}

    markers: MarkersConfig = Field(default_factory=MarkersConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    annotate: AnnotateConfig = Field(default_factory=AnnotateConfig)
