"""Shared fixtures for the nebulae test suite."""

import logging
import sys
from pathlib import Path

import pytest

from nebulae.utils import logging_config
from nebulae.utils.validators import RenderSettings


@pytest.fixture(scope="session")
def project_root():
    """Project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def tiny_settings():
    """Settings small enough to render in well under a second."""
    return RenderSettings(
        limits=(60, 25, 10),
        samples_per_pass_channel=400,
        passes=2,
        resolution=24,
        curve=0.5,
        thread_count=2,
    )


@pytest.fixture
def restore_logging(monkeypatch):
    """Undo handlers, levels, context and excepthook installed by a test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    logging_config.pop_context()
    logging.captureWarnings(False)
