"""
Comparison configuration models for screendiff.

Provides Pydantic-validated configuration for the comparison strategy and the
pixel processor, loadable from a YAML file and SCREENDIFF_ environment
variables.
"""

from __future__ import annotations

from functools import cached_property
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from screendiff.compare.strategies import DEFAULT_EXACTNESS, ComparisonMode
from screendiff.errors import InvalidConfigurationError
from screendiff.processor.parallel import CoordinateMapping

STANDARD_CONFIG_PATHS = (
    Path(".screendiff.yaml"),
    Path(".screendiff.yml"),
    Path("screendiff.yaml"),
    Path("screendiff.yml"),
)


class ProcessorConfig(BaseModel):
    """Configuration for the parallel pixel processor."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    worker_count: int | None = Field(
        default=None,
        ge=1,
        le=1024,
        description="Number of concurrent chunks; defaults to the CPU count",
    )
    coordinate_mapping: CoordinateMapping = Field(
        default=CoordinateMapping.LEGACY,
        description="How flat offsets are mapped to (x, y) positions",
    )


class ComparisonConfig(BaseModel):
    """Complete comparison configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    mode: ComparisonMode = Field(
        default=ComparisonMode.EXACT,
        description="Comparison strategy",
    )
    exactness: float = Field(
        default=DEFAULT_EXACTNESS,
        ge=0.0,
        le=1.0,
        allow_inf_nan=False,
        description="Required perceptual similarity for fuzzy comparison",
    )
    generate_diff: bool = Field(
        default=True,
        description="Produce a diff buffer when a comparison fails",
    )
    processor: ProcessorConfig = Field(default_factory=ProcessorConfig)

    def with_overrides(self, **overrides: Any) -> ComparisonConfig:
        """Create a new config with the given fields replaced."""
        return build_config({**self.model_dump(), **overrides})


class ComparisonSettings(BaseSettings):
    """
    Environment-based comparison settings.

    Loads configuration from environment variables with SCREENDIFF_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="SCREENDIFF_",
        case_sensitive=False,
        extra="ignore",
    )

    mode: ComparisonMode | None = None
    exactness: float | None = None
    generate_diff: bool | None = None
    worker_count: int | None = None
    coordinate_mapping: CoordinateMapping | None = None

    # Config file path
    config_file: Path | None = None

    @cached_property
    def config(self) -> ComparisonConfig:
        """Build a ComparisonConfig from the environment and optional file."""
        file_config = read_config_file(self.config_file) if self.config_file else {}
        return build_config(merge_env(file_config, self))


def read_config_file(path: Path | str) -> dict[str, Any]:
    """Read a YAML config file; a missing file yields an empty dict."""
    config_path = Path(path)
    if not config_path.exists():
        return {}
    with config_path.open() as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise InvalidConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
    if not isinstance(data, dict):
        raise InvalidConfigurationError(f"Config file {config_path} must contain a mapping")
    return data


def merge_env(file_config: dict[str, Any], settings: ComparisonSettings) -> dict[str, Any]:
    """Overlay environment values on top of file values."""
    data = dict(file_config)
    processor = dict(data.get("processor") or {})

    if settings.mode is not None:
        data["mode"] = settings.mode
    if settings.exactness is not None:
        data["exactness"] = settings.exactness
    if settings.generate_diff is not None:
        data["generate_diff"] = settings.generate_diff
    if settings.worker_count is not None:
        processor["worker_count"] = settings.worker_count
    if settings.coordinate_mapping is not None:
        processor["coordinate_mapping"] = settings.coordinate_mapping

    if processor:
        data["processor"] = processor
    return data


def build_config(data: dict[str, Any]) -> ComparisonConfig:
    """Validate a dictionary (e.g. loaded from YAML) into a ComparisonConfig."""
    try:
        return ComparisonConfig.model_validate(data)
    except ValidationError as e:
        raise InvalidConfigurationError(f"Invalid comparison configuration: {e}") from e


def load_comparison_config(
    config_file: Path | str | None = None,
    env_override: bool = True,
) -> ComparisonConfig:
    """
    Load comparison configuration from file and/or environment.

    Priority (highest to lowest):
    1. Environment variables (if env_override=True)
    2. Config file (explicit path, else the first standard location found)
    3. Defaults

    Args:
        config_file: Optional path to YAML config file
        env_override: Whether environment variables override file config

    Returns:
        Complete ComparisonConfig instance
    """
    settings = _load_settings() if env_override else None
    path = config_file or (settings.config_file if settings else None)

    file_config: dict[str, Any] = {}
    if path:
        file_config = read_config_file(path)
    else:
        for standard_path in STANDARD_CONFIG_PATHS:
            if standard_path.exists():
                file_config = read_config_file(standard_path)
                break

    if settings is None:
        return build_config(file_config)
    return build_config(merge_env(file_config, settings))


def _load_settings() -> ComparisonSettings:
    try:
        return ComparisonSettings()
    except ValidationError as e:
        raise InvalidConfigurationError(f"Invalid SCREENDIFF_ environment value: {e}") from e
