"""
Unit tests for platform and runner detection.
"""

from unittest.mock import patch

import pytest

from smtoolkit.core.platform import (
    OsKind,
    PlatformInfo,
    RunnerType,
    detect_platform,
    detect_runner_type,
    is_self_hosted,
)


class TestOsKind:
    """Test OsKind enum."""

    def test_keys(self):
        assert [kind.key for kind in OsKind] == ["win32", "linux", "darwin"]

    def test_library_suffix(self):
        assert OsKind.WINDOWS.library_suffix == ".dll"
        assert OsKind.LINUX.library_suffix == ".so"
        assert OsKind.MACOS.library_suffix == ".dylib"


class TestPlatformInfo:
    """Test PlatformInfo dataclass."""

    def test_platform_key(self):
        info = PlatformInfo(OsKind.MACOS, "arm64")
        assert info.platform_key() == "darwin-arm64"
        assert str(info) == "darwin-arm64"


class TestDetectPlatform:
    """Test detect_platform function."""

    @pytest.mark.parametrize(
        "system,machine,expected",
        [
            ("Linux", "x86_64", "linux-x64"),
            ("Windows", "AMD64", "win32-x64"),
            ("Darwin", "arm64", "darwin-arm64"),
            ("Linux", "aarch64", "linux-arm64"),
        ],
    )
    def test_detect(self, system, machine, expected):
        with patch("platform.system", return_value=system), patch(
            "platform.machine", return_value=machine
        ):
            assert detect_platform().platform_key() == expected

    def test_unsupported_os(self):
        with patch("platform.system", return_value="SunOS"):
            with pytest.raises(RuntimeError, match="Unsupported operating system"):
                detect_platform()


class TestRunnerDetection:
    """Test self-hosted runner classification."""

    @pytest.mark.parametrize(
        "environ,expected",
        [
            ({}, True),
            ({"RUNNER_ENVIRONMENT": "github-hosted"}, False),
            ({"RUNNER_ENVIRONMENT": "self-hosted"}, True),
            ({"AGENT_ISSELFHOSTED": "1"}, True),
            ({"AGENT_ISSELFHOSTED": "0"}, False),
            ({"RUNNER_ENVIRONMENT": "github-hosted", "AGENT_ISSELFHOSTED": "1"}, False),
        ],
    )
    def test_is_self_hosted(self, environ, expected):
        assert is_self_hosted(environ) is expected

    def test_detect_runner_type(self):
        assert detect_runner_type({}) is RunnerType.SELF_HOSTED
        assert (
            detect_runner_type({"RUNNER_ENVIRONMENT": "github-hosted"})
            is RunnerType.GITHUB_RUNNER
        )
