"""
CDN download primitives with checksum verification.

This module provides single-attempt network operations:
- Streaming HTTP/HTTPS downloads with TLS verification
- Optional SHA-256 verification computed while streaming
- Small text fetches (checksum files)
- Timeout handling

Retries are not handled here; callers wrap these functions with
``smtoolkit.core.retry.retry_with_backoff`` so every network call shares one
backoff policy.
"""

import contextlib
import hashlib
import logging
from pathlib import Path
from typing import Optional

import requests
from requests.exceptions import RequestException

from smtoolkit.core.exceptions import AcquisitionError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
USER_AGENT = "smtoolkit"


class DownloadError(AcquisitionError):
    """Exception raised when download fails."""

    pass


class ChecksumError(DownloadError):
    """Exception raised when checksum verification fails."""

    pass


class StreamingHasher:
    """Compute hash incrementally for streaming downloads."""

    def __init__(self, algorithm: str = "sha256"):
        """
        Initialize streaming hasher.

        Args:
            algorithm: Hash algorithm ('sha256', 'sha512')

        Raises:
            ValueError: If algorithm is not supported
        """
        self.algorithm = algorithm.lower()

        if self.algorithm == "sha256":
            self.hasher = hashlib.sha256()
        elif self.algorithm == "sha512":
            self.hasher = hashlib.sha512()
        else:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")

    def update(self, data: bytes):
        """Add data to hash computation."""
        self.hasher.update(data)

    def finalize(self) -> str:
        """Get final hash value as hex string."""
        return self.hasher.hexdigest()

    def verify(self, expected_hash: str) -> bool:
        """
        Check if computed hash matches expected value (case-insensitive).
        """
        return self.finalize().lower() == expected_hash.lower()


def create_session() -> requests.Session:
    """Create a requests session identifying smtoolkit."""
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    return session


def _session_scope(session: Optional[requests.Session]):
    # A session passed in belongs to the caller and stays open
    if session is not None:
        return contextlib.nullcontext(session)
    return create_session()


def download_file(
    url: str,
    destination: Path,
    expected_sha256: Optional[str] = None,
    timeout: int = DEFAULT_TIMEOUT,
    session: Optional[requests.Session] = None,
) -> Path:
    """
    Download file from URL to destination in a single attempt.

    Args:
        url: URL to download from
        destination: Local path to save file
        expected_sha256: Expected SHA256 hash (verified during download)
        timeout: Request timeout in seconds
        session: Optional requests session (default: a session closed on return)

    Returns:
        Path to downloaded file

    Raises:
        DownloadError: If the request fails or returns an error status
        ChecksumError: If checksum doesn't match expected value
        ValueError: If URL is empty

    Example:
        >>> download_file("https://cdn.example/tools/smctl", Path("/tmp/F_1234"))
    """
    if not url:
        raise ValueError("URL cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    hasher = StreamingHasher("sha256") if expected_sha256 else None

    logger.info(f"Downloading from {url}")

    try:
        with _session_scope(session) as active, active.get(
            url, stream=True, timeout=timeout, allow_redirects=True
        ) as response:
            response.raise_for_status()
            with open(destination, "wb") as f:
                for chunk in response.iter_content(chunk_size=8192):
                    if chunk:
                        f.write(chunk)
                        if hasher:
                            hasher.update(chunk)
    except RequestException as e:
        destination.unlink(missing_ok=True)
        raise DownloadError(f"Failed to download {url}: {e}") from e

    if expected_sha256 and hasher:
        if not hasher.verify(expected_sha256):
            actual_hash = hasher.finalize()
            destination.unlink()
            raise ChecksumError(
                f"Checksum mismatch for {url}: "
                f"expected {expected_sha256}, got {actual_hash}"
            )
        logger.info("Checksum verified successfully")

    logger.info(f"Download complete: {destination}")
    return destination


def fetch_text(
    url: str,
    timeout: int = DEFAULT_TIMEOUT,
    session: Optional[requests.Session] = None,
) -> str:
    """
    Fetch a small text resource.

    Args:
        url: URL to fetch
        timeout: Request timeout in seconds
        session: Optional requests session

    Returns:
        Response body decoded as text

    Raises:
        DownloadError: If the request fails or returns an error status
    """
    try:
        with _session_scope(session) as active:
            response = active.get(url, timeout=timeout, allow_redirects=True)
        response.raise_for_status()
    except RequestException as e:
        raise DownloadError(f"Failed to fetch {url}: {e}") from e
    return response.text


__all__ = [
    "DownloadError",
    "ChecksumError",
    "StreamingHasher",
    "create_session",
    "download_file",
    "fetch_text",
]
