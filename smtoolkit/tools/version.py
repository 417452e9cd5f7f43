"""
Version resolution for cached tools.

The version under which a tool is cached is either the operator-declared
cache version, or, when checksum versioning is enabled, ``0.0.0-<sha256>``
derived from the ``<artifact>.sha256`` file published next to the artifact on
the CDN. Deriving the version from the checksum makes a new CDN upload miss
the local cache automatically.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from smtoolkit.core.download import fetch_text
from smtoolkit.core.retry import RetryPolicy, retry_with_backoff
from smtoolkit.tools.catalog import ToolMetadata

logger = logging.getLogger(__name__)

CHECKSUM_VERSION_PREFIX = "0.0.0-"


@dataclass(frozen=True)
class VersionResolution:
    """
    Result of resolving a tool version.

    Attributes:
        version: Version string used as the local cache key
        checksum: SHA-256 published on the CDN, when it was fetched
    """

    version: str
    checksum: Optional[str] = None

    @property
    def from_checksum(self) -> bool:
        return self.checksum is not None


def download_url(cdn_base: str, tool: ToolMetadata) -> str:
    """CDN URL of a tool's artifact."""
    return f"{cdn_base.rstrip('/')}/{tool.download_name}"


def checksum_url(cdn_base: str, tool: ToolMetadata) -> str:
    return f"{download_url(cdn_base, tool)}.sha256"


class VersionResolver:
    """Computes the cache version of a tool for one acquisition."""

    def __init__(
        self,
        cdn_base: str,
        retry_policy: Optional[RetryPolicy] = None,
        fetch: Optional[Callable[[str], str]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Initialize resolver.

        Args:
            cdn_base: CDN base URL
            retry_policy: Policy for the checksum download
            fetch: Function returning the body of a URL (default: fetch_text)
            sleep: Sleep function passed to the retry executor
        """
        self.cdn_base = cdn_base
        self.retry_policy = retry_policy
        self.fetch = fetch or fetch_text
        self.sleep = sleep

    def resolve(
        self, tool: ToolMetadata, use_checksum_versioning: bool, declared_version: str
    ) -> VersionResolution:
        """
        Resolve the cache version of a tool.

        Never raises: checksum download problems fall back to the declared
        version with a warning.

        Args:
            tool: Tool metadata
            use_checksum_versioning: Derive the version from the CDN checksum
            declared_version: Operator-declared cache version

        Returns:
            VersionResolution with the version and, if fetched, the checksum
        """
        if not use_checksum_versioning:
            return VersionResolution(declared_version)

        logger.info(f"Using sha256 checksum file for determining the version of {tool.name}")
        url = checksum_url(self.cdn_base, tool)
        retry_kwargs = {} if self.sleep is None else {"sleep": self.sleep}

        try:
            body = retry_with_backoff(
                lambda: self.fetch(url),
                f"Download sha256 checksum for {tool.name}",
                self.retry_policy,
                **retry_kwargs,
            )
            logger.info(f"Downloaded sha256 checksum file from {url}")
            tokens = body.split()
            if not tokens:
                raise ValueError(f"checksum file {url} is empty")
            checksum = tokens[0]
        except Exception as e:
            logger.warning(f"Failed to download sha256 checksum file from {url}, reason: {e}")
            logger.warning(
                f"Falling back to use cache-version: {declared_version} as version for {tool.name}"
            )
            return VersionResolution(declared_version)

        logger.info(f"Using sha256 checksum {checksum} as version for {tool.name}")
        return VersionResolution(f"{CHECKSUM_VERSION_PREFIX}{checksum}", checksum)


__all__ = [
    "CHECKSUM_VERSION_PREFIX",
    "VersionResolution",
    "VersionResolver",
    "download_url",
    "checksum_url",
]
