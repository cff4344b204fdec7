"""YAML schema validation and render config loading.

Provides centralized validation for render configuration using pydantic:
    - Render schema (render.v1.yaml): iteration limits, sample counts,
      passes, resolution, intensity curve, optional thread count

All entrypoints (CLI, wizard, library callers) must go through these
validators so that a bad config fails fast with an actionable message
(offending key, expected range) before any thread is spawned.

Ranges mirror the fixed-width fields of the on-disk format:
    - limits, samples_per_pass_channel, resolution: u32
    - passes: u16
    - curve: finite, > 0
    - thread_count: >= 1, or null for ambient parallelism

Usage:
    from nebulae.utils import validators

    settings = validators.load_render_config("configs/render.v1.yaml")
    settings = validators.default_render_settings()
    validators.dump_render_config(settings, "my_render.yaml")
"""

import math
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

U32_MAX = 2**32 - 1
U16_MAX = 2**16 - 1

SCHEMA_VERSION = "render.v1"


class ConfigError(Exception):
    """Raised when a render configuration fails validation."""

    pass


# ============================================================================
# RENDER SCHEMA V1
# ============================================================================

class RenderSettings(BaseModel):
    """Render configuration (render.v1.yaml schema).

    Immutable for the duration of a render; constructed here (or by the
    wizard) and passed by value into the engine.
    """
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    schema_version: str = Field(SCHEMA_VERSION, alias="schema", description="Schema version")
    limits: Tuple[int, int, int] = Field(
        ..., description="Iteration limit for each of the red, green and blue channels"
    )
    samples_per_pass_channel: int = Field(
        ..., ge=0, le=U32_MAX, description="Random samples per channel, per pass, per thread"
    )
    passes: int = Field(..., ge=0, le=U16_MAX, description="Number of passes to run")
    resolution: int = Field(..., ge=1, le=U32_MAX, description="Image size (resolution × resolution px)")
    curve: float = Field(..., gt=0.0, description="Intensity curve exponent (typically 0 < curve <= 1)")
    thread_count: Optional[int] = Field(
        None, ge=1, description="Render threads; None uses the available parallelism"
    )

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != SCHEMA_VERSION:
            raise ValueError(f"Expected schema '{SCHEMA_VERSION}', got '{v}'")
        return v

    @field_validator('limits')
    @classmethod
    def validate_limits(cls, v: Tuple[int, int, int]) -> Tuple[int, int, int]:
        for channel, limit in enumerate(v):
            if not 0 <= limit <= U32_MAX:
                raise ValueError(
                    f"limits[{channel}]={limit} out of range [0, {U32_MAX}]"
                )
        return v

    @field_validator('curve')
    @classmethod
    def validate_curve(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError(f"curve must be finite, got {v}")
        return v

    def describe(self) -> str:
        """Multi-line human summary, logged at render start."""
        lines = [
            f"Escape limits:\t{self.limits[0]},{self.limits[1]},{self.limits[2]}",
            f"Runs per pass:\t{self.samples_per_pass_channel}",
            f"Passes:\t\t{self.passes}",
        ]
        if self.thread_count is not None:
            lines.append(f"Threads:\t{self.thread_count}")
        lines.append(f"Resolution:\t{self.resolution}x{self.resolution}")
        lines.append(f"Correction:\t{self.curve}")
        return "\n".join(lines)

    def to_yaml_dict(self) -> Dict[str, Any]:
        """Plain dict in on-disk key order; thread_count omitted when unset."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        data['limits'] = list(self.limits)
        return data


# ============================================================================
# PUBLIC API
# ============================================================================

def default_render_settings() -> RenderSettings:
    """Default settings (equivalent to the wizard's default answers)."""
    return RenderSettings(
        limits=(7_740, 2_580, 860),
        samples_per_pass_channel=1_000_000,
        passes=100,
        resolution=1 << 11,
        curve=0.5,
        thread_count=None,
    )


def parse_render_config(data: Dict[str, Any], source: str = "<dict>") -> RenderSettings:
    """Validate a raw mapping into RenderSettings.

    Raises
    ------
    ConfigError
        If validation fails (message lists every offending key)
    """
    if not isinstance(data, dict):
        raise ConfigError(f"Render config at {source} must be a mapping, got {type(data).__name__}")
    try:
        return RenderSettings(**data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigError(f"Render config validation failed at {source}: {problems}") from e


def load_render_config(path: Union[str, Path]) -> RenderSettings:
    """Load and validate render config from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to render.v1.yaml file

    Returns
    -------
    RenderSettings
        Validated configuration

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ConfigError
        If parsing or validation fails
    """
    import yaml

    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Render config not found: {path}")

    try:
        data = fs.load_yaml(path)
    except yaml.YAMLError as e:
        raise ConfigError(str(e)) from e
    return parse_render_config(data, source=str(path))


def dump_render_config(
    settings: RenderSettings,
    path: Optional[Union[str, Path]] = None
) -> str:
    """Serialize settings to YAML; also writes atomically when path is given."""
    from . import fs

    text = fs.dump_yaml(settings.to_yaml_dict())
    if path is not None:
        fs.atomic_write_text(path, text)
    return text


def available_parallelism() -> int:
    """CPUs this process may run on.

    Honors the affinity mask (taskset, container cpusets) where the platform
    exposes it; otherwise falls back to the machine's CPU count.
    """
    if hasattr(os, "sched_getaffinity"):
        return max(len(os.sched_getaffinity(0)), 1)
    return os.cpu_count() or 1


def resolve_thread_count(settings: RenderSettings) -> int:
    """Thread count to render with: explicit setting or ambient parallelism."""
    if settings.thread_count is not None:
        return settings.thread_count
    return available_parallelism()
