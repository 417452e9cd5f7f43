"""
Core functionality for smtoolkit.

This package contains the foundational modules that the acquisition engine
depends on: retries, downloads, process execution, platform detection,
directories, filesystem helpers and output sinks.
"""

from .exceptions import (
    SmToolkitError,
    ConfigError,
    AcquisitionError,
    ExtractionError,
    InstallerError,
    DiskImageError,
    ProviderRegistrationError,
    CacheError,
    CacheLockTimeout,
    RemoteCacheError,
)

from .platform import (
    OsKind,
    RunnerType,
    PlatformInfo,
    detect_platform,
    detect_runner_type,
    is_self_hosted,
    clear_platform_cache,
)

from .retry import (
    RetryPolicy,
    DEFAULT_RETRY_POLICY,
    retry_with_backoff,
)

from .process import (
    CommandResult,
    CommandError,
    CommandRunner,
)

from .outputs import (
    OutputSink,
    GithubOutputSink,
    MemoryOutputSink,
)

__all__ = [
    # Exceptions
    "SmToolkitError",
    "ConfigError",
    "AcquisitionError",
    "ExtractionError",
    "InstallerError",
    "DiskImageError",
    "ProviderRegistrationError",
    "CacheError",
    "CacheLockTimeout",
    "RemoteCacheError",
    # Platform
    "OsKind",
    "RunnerType",
    "PlatformInfo",
    "detect_platform",
    "detect_runner_type",
    "is_self_hosted",
    "clear_platform_cache",
    # Retry
    "RetryPolicy",
    "DEFAULT_RETRY_POLICY",
    "retry_with_backoff",
    # Process
    "CommandResult",
    "CommandError",
    "CommandRunner",
    # Outputs
    "OutputSink",
    "GithubOutputSink",
    "MemoryOutputSink",
]
