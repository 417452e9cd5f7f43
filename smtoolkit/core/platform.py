"""
Platform and runner detection for smtoolkit.

This module detects the current platform (OS and CPU architecture) so the
right tool packaging can be selected from the catalog, and classifies the CI
runner the process is executing on.

Features:
- Closed set of supported operating systems (``OsKind``)
- CPU architecture normalization (x64, arm64, x86, arm)
- Canonical platform keys (e.g., 'linux-x64', 'darwin-arm64')
- Runner classification (GitHub-hosted vs self-hosted)
- Fast detection with caching

Usage:
    from smtoolkit.core.platform import detect_platform

    platform_info = detect_platform()
    print(f"Platform key: {platform_info.platform_key()}")
"""

import functools
import os
import platform
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional


class OsKind(Enum):
    """
    Operating systems the toolset is published for.

    Values are the OS keys used in catalog keys and remote cache keys.
    """

    WINDOWS = "win32"
    LINUX = "linux"
    MACOS = "darwin"

    @property
    def key(self) -> str:
        """OS key used in catalog and cache keys."""
        return self.value

    @property
    def library_suffix(self) -> str:
        """Shared library file suffix for this OS."""
        if self is OsKind.WINDOWS:
            return ".dll"
        elif self is OsKind.LINUX:
            return ".so"
        elif self is OsKind.MACOS:
            return ".dylib"
        raise ValueError(f"Unsupported operating system: {self}")


class RunnerType(Enum):
    """Kind of CI runner executing the setup."""

    GITHUB_RUNNER = "GITHUB_RUNNER"
    SELF_HOSTED = "SELF_HOSTED"


@dataclass(frozen=True)
class PlatformInfo:
    """
    Platform information used for tool selection.

    Attributes:
        os: Operating system
        arch: CPU architecture ('x64', 'arm64', 'x86', 'arm')
    """

    os: OsKind
    arch: str

    def platform_key(self) -> str:
        """
        Get canonical platform key (e.g., 'linux-x64', 'darwin-arm64').

        Example:
            >>> PlatformInfo(OsKind.LINUX, 'x64').platform_key()
            'linux-x64'
        """
        return f"{self.os.key}-{self.arch}"

    def __str__(self) -> str:
        return self.platform_key()


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformInfo:
    """
    Detect current platform information.

    This function is cached - it only runs detection once per process.

    Returns:
        PlatformInfo for the running machine

    Raises:
        RuntimeError: If the operating system is not supported
    """
    return PlatformInfo(os=_detect_os(), arch=_detect_architecture())


def _detect_os() -> OsKind:
    """
    Detect operating system.

    Raises:
        RuntimeError: If OS is not supported
    """
    system = platform.system().lower()

    if system == "windows":
        return OsKind.WINDOWS
    elif system == "linux":
        return OsKind.LINUX
    elif system == "darwin":
        return OsKind.MACOS
    else:
        raise RuntimeError(f"Unsupported operating system: {system}")


def _detect_architecture() -> str:
    """
    Detect CPU architecture.

    Returns:
        Normalized architecture: 'x64', 'arm64', 'x86', 'arm'
    """
    machine = platform.machine().lower()

    if machine in ("x86_64", "amd64", "x64"):
        return "x64"
    elif machine in ("aarch64", "arm64"):
        return "arm64"
    elif machine in ("i386", "i686", "x86"):
        return "x86"
    elif machine.startswith("arm"):
        return "arm"
    else:
        # Return original for unknown architectures
        return machine


def is_self_hosted(environ: Optional[Mapping[str, str]] = None) -> bool:
    """
    Check whether the process runs on a self-hosted runner.

    A runner counts as self-hosted unless GitHub reports it as hosted, and
    the Azure Pipelines agent flag is either set to '1' or absent.

    Args:
        environ: Environment mapping (default: os.environ)
    """
    if environ is None:
        environ = os.environ

    agent_self_hosted = environ.get("AGENT_ISSELFHOSTED")
    return environ.get("RUNNER_ENVIRONMENT") != "github-hosted" and (
        agent_self_hosted == "1" or agent_self_hosted is None
    )


def detect_runner_type(environ: Optional[Mapping[str, str]] = None) -> RunnerType:
    """Classify the current runner."""
    return RunnerType.SELF_HOSTED if is_self_hosted(environ) else RunnerType.GITHUB_RUNNER


def clear_platform_cache():
    """
    Clear the platform detection cache.

    This forces the next call to detect_platform() to re-detect.
    """
    detect_platform.cache_clear()


__all__ = [
    "OsKind",
    "RunnerType",
    "PlatformInfo",
    "detect_platform",
    "is_self_hosted",
    "detect_runner_type",
    "clear_platform_cache",
]
