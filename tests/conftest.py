"""
Pytest configuration and shared fixtures for smtoolkit tests.
"""

import logging
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from smtoolkit.core.platform import clear_platform_cache
from tests.mocks.process import FakeCommandRunner


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_runner() -> FakeCommandRunner:
    """Command runner that records calls instead of executing them."""
    return FakeCommandRunner()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep CI variables of the machine running the tests out of the way."""
    import os

    for name in list(os.environ):
        if name.startswith("INPUT_"):
            monkeypatch.delenv(name, raising=False)
    for name in ("RUNNER_TOOL_CACHE", "RUNNER_TEMP", "GITHUB_OUTPUT", "GITHUB_PATH"):
        monkeypatch.delenv(name, raising=False)

    clear_platform_cache()
    yield
    clear_platform_cache()


@pytest.fixture
def debug_logs(caplog):
    """Capture smtoolkit logs down to DEBUG level."""
    caplog.set_level(logging.DEBUG, logger="smtoolkit")
    return caplog
