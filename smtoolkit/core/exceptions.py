"""
Centralized exception hierarchy for smtoolkit.

This module defines the custom exceptions raised while acquiring, installing
and caching the signing toolset, so callers can tell fatal acquisition
failures apart from configuration mistakes.
"""


# ============================================================================
# Base Exceptions
# ============================================================================


class SmToolkitError(Exception):
    """Base exception for all smtoolkit errors."""

    pass


class ConfigError(SmToolkitError):
    """Configuration parsing or validation error."""

    pass


# ============================================================================
# Acquisition Exceptions
# ============================================================================


class AcquisitionError(SmToolkitError):
    """Base exception for tool acquisition failures."""

    pass


class ExtractionError(AcquisitionError):
    """Raised when a downloaded artifact cannot be unpacked or installed."""

    pass


class InstallerError(ExtractionError):
    """Raised when an OS installer (msiexec) reports a failure."""

    def __init__(self, package: str, details: str):
        self.package = package
        self.details = details
        super().__init__(f"Installation of {package} failed. {details}")


class DiskImageError(ExtractionError):
    """Raised when a disk image cannot be mounted."""

    pass


class ProviderRegistrationError(AcquisitionError):
    """Raised when registering Windows CSP/KSP providers fails."""

    def __init__(self, exit_code: int, stdout: str, stderr: str):
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"Provider registration script failed with exit code {exit_code}\n"
            f"stdout: {stdout}\n"
            f"stderr: {stderr}"
        )


# ============================================================================
# Cache Exceptions
# ============================================================================


class CacheError(SmToolkitError):
    """Base exception for local tool cache errors."""

    pass


class CacheLockTimeout(CacheError):
    """Raised when the lock guarding a cached tool cannot be acquired."""

    pass


class RemoteCacheError(SmToolkitError):
    """Raised when the remote shared cache cannot restore or save an entry."""

    pass


__all__ = [
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
]
