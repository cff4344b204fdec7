"""Test render config validation.

Tests for nebulae.utils.validators:
    - Defaults and the shipped configs/render.v1.yaml agree
    - YAML dump → load preserves every field
    - Range checks name the offending key
    - Malformed files and non-mapping documents raise ConfigError
    - Settings are immutable

Test cases:
    - test_default_settings()
    - test_shipped_config_matches_defaults()
    - test_dump_load_roundtrip()
    - test_thread_count_omitted_when_unset()
    - test_invalid_values_rejected()
    - test_unknown_key_rejected()
    - test_wrong_schema_rejected()
    - test_missing_file()
    - test_malformed_yaml()
    - test_settings_frozen()
    - test_describe()
    - test_resolve_thread_count()
    - test_available_parallelism_honors_affinity()
    - test_available_parallelism_without_affinity()

Run:
    pytest tests/test_schemas.py -v
"""

import os

import pytest
import yaml
from pydantic import ValidationError

from nebulae.utils import validators
from nebulae.utils.validators import ConfigError, RenderSettings


@pytest.fixture
def valid_dict():
    return {
        "schema": "render.v1",
        "limits": [100, 50, 10],
        "samples_per_pass_channel": 1000,
        "passes": 3,
        "resolution": 64,
        "curve": 0.5,
    }


# ============================================================================
# DEFAULTS & SHIPPED CONFIG
# ============================================================================

def test_default_settings():
    settings = validators.default_render_settings()

    assert settings.limits == (7740, 2580, 860)
    assert settings.samples_per_pass_channel == 1_000_000
    assert settings.passes == 100
    assert settings.resolution == 2048
    assert settings.curve == 0.5
    assert settings.thread_count is None
    assert settings.schema_version == "render.v1"


def test_shipped_config_matches_defaults(project_root):
    """configs/render.v1.yaml is the default configuration."""
    settings = validators.load_render_config(project_root / "configs/render.v1.yaml")
    assert settings == validators.default_render_settings()


# ============================================================================
# SERIALIZATION
# ============================================================================

def test_dump_load_roundtrip(tmp_path):
    """Every field survives YAML dump → load."""
    settings = RenderSettings(
        limits=(20_000, 200, 2_000),
        samples_per_pass_channel=100_000,
        passes=7,
        resolution=1024,
        curve=0.75,
        thread_count=6,
    )
    path = tmp_path / "nested" / "render.yaml"
    text = validators.dump_render_config(settings, path)

    assert path.read_text() == text
    assert validators.load_render_config(path) == settings


def test_thread_count_omitted_when_unset():
    """Unset thread_count is left out of the YAML; key order is stable."""
    data = yaml.safe_load(validators.dump_render_config(validators.default_render_settings()))

    assert "thread_count" not in data
    assert list(data) == [
        "schema", "limits", "samples_per_pass_channel", "passes", "resolution", "curve"
    ]
    assert data["limits"] == [7740, 2580, 860]


def test_parse_accepts_field_name(valid_dict):
    """schema_version is accepted as well as its 'schema' alias."""
    valid_dict["schema_version"] = valid_dict.pop("schema")
    assert validators.parse_render_config(valid_dict).passes == 3


def test_schema_optional(valid_dict):
    del valid_dict["schema"]
    assert validators.parse_render_config(valid_dict).schema_version == "render.v1"


# ============================================================================
# VALIDATION
# ============================================================================

@pytest.mark.parametrize("key,value", [
    ("limits", [100, 50]),
    ("limits", [100, 50, -1]),
    ("limits", [100, 50, 2**32]),
    ("samples_per_pass_channel", -5),
    ("samples_per_pass_channel", 2**32),
    ("passes", 70_000),
    ("resolution", 0),
    ("curve", 0.0),
    ("curve", -1.0),
    ("curve", float("inf")),
    ("curve", float("nan")),
    ("thread_count", 0),
])
def test_invalid_values_rejected(valid_dict, key, value):
    """Out-of-range values fail with the key in the message."""
    valid_dict[key] = value
    with pytest.raises(ConfigError, match=key):
        validators.parse_render_config(valid_dict, source="test.yaml")


def test_boundary_values_accepted(valid_dict):
    """Zero passes, samples and limits are valid; so are the u16/u32 maxima."""
    valid_dict.update(limits=[0, 0, 2**32 - 1], samples_per_pass_channel=0, passes=2**16 - 1)
    settings = validators.parse_render_config(valid_dict)
    assert settings.limits == (0, 0, 2**32 - 1)
    assert settings.passes == 65_535


def test_unknown_key_rejected(valid_dict):
    valid_dict["palette"] = "nebulous"
    with pytest.raises(ConfigError, match="palette"):
        validators.parse_render_config(valid_dict)


def test_wrong_schema_rejected(valid_dict):
    valid_dict["schema"] = "render.v0"
    with pytest.raises(ConfigError, match="render.v1"):
        validators.parse_render_config(valid_dict)


def test_non_mapping_rejected():
    with pytest.raises(ConfigError, match="mapping"):
        validators.parse_render_config([1, 2, 3])


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        validators.load_render_config(tmp_path / "missing.yaml")


def test_malformed_yaml(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("limits: [1, 2\npasses: :\n")
    with pytest.raises(ConfigError):
        validators.load_render_config(path)


def test_empty_file(tmp_path):
    """An empty document is missing every required key."""
    path = tmp_path / "empty.yaml"
    path.write_text("")
    with pytest.raises(ConfigError, match="limits"):
        validators.load_render_config(path)


def test_settings_frozen():
    settings = validators.default_render_settings()
    with pytest.raises(ValidationError):
        settings.passes = 5


# ============================================================================
# HELPERS
# ============================================================================

def test_describe():
    text = validators.default_render_settings().describe()

    assert "Escape limits:\t7740,2580,860" in text
    assert "Runs per pass:\t1000000" in text
    assert "Resolution:\t2048x2048" in text
    assert "Correction:\t0.5" in text
    assert "Threads" not in text


def test_resolve_thread_count(valid_dict):
    settings = validators.parse_render_config(valid_dict)
    assert validators.resolve_thread_count(settings) == validators.available_parallelism()

    valid_dict["thread_count"] = 3
    settings = validators.parse_render_config(valid_dict)
    assert validators.resolve_thread_count(settings) == 3


def test_available_parallelism_honors_affinity(monkeypatch):
    """Pinned to two of many CPUs: two threads, not the machine's count."""
    monkeypatch.setattr(os, "sched_getaffinity", lambda pid: {0, 5}, raising=False)
    monkeypatch.setattr(os, "cpu_count", lambda: 64)
    assert validators.available_parallelism() == 2


def test_available_parallelism_without_affinity(monkeypatch):
    monkeypatch.delattr(os, "sched_getaffinity", raising=False)
    monkeypatch.setattr(os, "cpu_count", lambda: 6)
    assert validators.available_parallelism() == 6

    monkeypatch.setattr(os, "cpu_count", lambda: None)
    assert validators.available_parallelism() == 1
