"""
Unit tests for directory management.
"""

import os
import re
import stat
from pathlib import Path

import pytest

from smtoolkit.core.directory import (
    create_secure_temp_dir,
    get_temp_dir,
    get_tool_cache_dir,
    random_dir_name,
    random_file_name,
    random_temp_dir,
)

UUID = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"


class TestLocations:
    """Test cache and temp root resolution."""

    def test_tool_cache_from_environment(self, temp_dir):
        assert get_tool_cache_dir({"RUNNER_TOOL_CACHE": str(temp_dir)}) == temp_dir

    def test_tool_cache_default(self, temp_dir, monkeypatch):
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: temp_dir))
        assert get_tool_cache_dir({}) == temp_dir / ".smtoolkit" / "tool-cache"

    def test_temp_dir_from_environment(self, temp_dir):
        assert get_temp_dir({"RUNNER_TEMP": str(temp_dir)}) == temp_dir

    def test_temp_dir_default(self):
        import tempfile

        assert get_temp_dir({}) == Path(tempfile.gettempdir())


class TestRandomNames:
    """Test unique scratch names."""

    def test_name_formats(self):
        assert re.fullmatch(f"F_{UUID}", random_file_name())
        assert re.fullmatch(f"D_{UUID}", random_dir_name())

    def test_names_are_unique(self):
        assert len({random_dir_name() for _ in range(50)}) == 50

    def test_random_temp_dir(self, temp_dir):
        path = random_temp_dir(temp_dir / "nested")
        assert path.is_dir()
        assert path.parent == temp_dir / "nested"
        assert path.name.startswith("D_")

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_secure_temp_dir(self, temp_dir):
        path = create_secure_temp_dir(temp_dir, prefix="csp-setup-")
        assert path.name.startswith("csp-setup-")
        assert stat.S_IMODE(path.stat().st_mode) & 0o077 == 0
