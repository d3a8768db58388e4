from __future__ import annotations

"""Configuration utilities for curvewarp.

This module defines a hierarchical configuration schema using Pydantic
models.  The :class:`Settings` container groups the defaults of the basis
library, the curve fitter, the sparse sampler and the alignment engine.
Instances can be populated from environment variables
(``CURVEWARP_<SECTION>__<KEY>``) or from YAML/JSON files with matching
nested keys.
"""

import json
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class SectionModel(BaseModel):
    """Base model for configuration subsections that ignores unknown fields."""

    model_config = ConfigDict(extra="ignore")


# ---------------------------------------------------------------------------
# Settings schema
# ---------------------------------------------------------------------------


class BasisSettings(SectionModel):
    """Basis family and size used when fitting curves."""

    family: str = "periodic"
    count: int = Field(default=5, ge=1)
    order: int = Field(default=4, ge=1)

    @field_validator("family", mode="before")
    @classmethod
    def _canonical_family(cls, value: Any) -> Any:
        from .core.basis import BasisFamily

        try:
            return BasisFamily.parse(value).value
        except ConfigurationError as exc:
            raise ValueError(str(exc)) from exc


class SmoothingSettings(SectionModel):
    """Roughness penalty applied by the fitter."""

    lam: float = Field(default=0.0, ge=0.0)
    penalty_order: int = Field(default=2, ge=0)


class SamplerSettings(SectionModel):
    """Distortion applied when deriving sparse observations."""

    resolution: int = Field(default=1000, ge=2)
    x_stretch: float = Field(default=1.0, gt=0.0)
    y_stretch: float = 1.0
    noise_sd: float = Field(default=0.0, ge=0.0)
    seed: Optional[int] = None


class AlignmentSettings(SectionModel):
    """Defaults for the alignment engine."""

    step_pattern: str = "symmetric"
    open_begin: bool = False
    open_end: bool = False

    @field_validator("step_pattern")
    @classmethod
    def _known_pattern(cls, value: str) -> str:
        from .core.steps import get_step_pattern

        try:
            return get_step_pattern(value).name
        except ConfigurationError as exc:
            raise ValueError(str(exc)) from exc


class Settings(BaseSettings):
    """Container for all runtime configuration sections."""

    basis: BasisSettings = Field(default_factory=BasisSettings)
    smoothing: SmoothingSettings = Field(default_factory=SmoothingSettings)
    sampler: SamplerSettings = Field(default_factory=SamplerSettings)
    alignment: AlignmentSettings = Field(default_factory=AlignmentSettings)

    model_config = SettingsConfigDict(
        env_prefix="CURVEWARP_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from defaults and ``CURVEWARP_*`` variables only."""

        return cls()


# ---------------------------------------------------------------------------
# Loading utilities
# ---------------------------------------------------------------------------


def load_settings(path: str | Path) -> Settings:
    """Load settings from a JSON or YAML file."""

    p = Path(path)
    text = p.read_text()
    if p.suffix.lower() in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise TypeError("Configuration file must define a mapping")
    return Settings.model_validate(data)


__all__ = [
    "BasisSettings",
    "SmoothingSettings",
    "SamplerSettings",
    "AlignmentSettings",
    "Settings",
    "load_settings",
]
