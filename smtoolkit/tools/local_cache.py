"""
Local on-machine tool cache.

Installed tools live under the tool cache root:

    <root>/<tool>/<version>/<arch>/           installed files
    <root>/<tool>/<version>/<arch>.complete   written after a full store

An entry without its ``.complete`` marker is an interrupted store and is
treated as absent. Stores of one tool are serialized across processes with a
``filelock`` lock at ``<root>/<tool>.lock``.
"""

import logging
import shutil
from pathlib import Path
from typing import List, Optional

from filelock import FileLock, Timeout

from smtoolkit.core.exceptions import CacheError, CacheLockTimeout
from smtoolkit.core.filesystem import recursive_copy

logger = logging.getLogger(__name__)

COMPLETE_SUFFIX = ".complete"


class LocalToolCache:
    """Versioned tool directories under a cache root."""

    def __init__(self, root: Path, arch: str, lock_timeout: float = 300):
        """
        Initialize local cache.

        Args:
            root: Tool cache root
            arch: Architecture key used as the leaf directory
            lock_timeout: Seconds to wait for the per-tool lock
        """
        self.root = Path(root)
        self.arch = arch
        self.lock_timeout = lock_timeout

    def tool_dir(self, tool_name: str) -> Path:
        return self.root / tool_name

    def entry_dir(self, tool_name: str, version: str) -> Path:
        return self.root / tool_name / version / self.arch

    def _marker(self, tool_name: str, version: str) -> Path:
        return self.root / tool_name / version / f"{self.arch}{COMPLETE_SUFFIX}"

    def _lock(self, tool_name: str) -> FileLock:
        self.root.mkdir(parents=True, exist_ok=True)
        return FileLock(str(self.root / f"{tool_name}.lock"), timeout=self.lock_timeout)

    def find(self, tool_name: str, version: str) -> Optional[Path]:
        """
        Look up a cached tool.

        Args:
            tool_name: Tool name
            version: Exact version

        Returns:
            Absolute path of the cached directory, or None
        """
        if not tool_name or not version:
            raise ValueError("tool_name and version are required")

        entry = self.entry_dir(tool_name, version)
        if entry.is_dir() and self._marker(tool_name, version).exists():
            logger.debug(f"Found tool in cache {tool_name} {version} {self.arch}")
            return entry.resolve()

        logger.debug(f"Unable to locate tool {tool_name} {version} {self.arch}")
        return None

    def find_all_versions(self, tool_name: str) -> List[str]:
        """All completely cached versions of a tool for this architecture."""
        tool_dir = self.tool_dir(tool_name)
        if not tool_dir.is_dir():
            return []
        return sorted(
            child.name
            for child in tool_dir.iterdir()
            if child.is_dir() and self.find(tool_name, child.name) is not None
        )

    def store(self, source: Path, tool_name: str, version: str) -> Path:
        """
        Copy a directory into the cache as tool_name@version.

        An existing entry for the same version is replaced.

        Args:
            source: Directory holding the tool files
            tool_name: Tool name
            version: Version

        Returns:
            Absolute path of the cached directory

        Raises:
            CacheLockTimeout: If the tool lock cannot be acquired
            CacheError: If the copy fails
        """
        source = Path(source)
        entry = self.entry_dir(tool_name, version)
        marker = self._marker(tool_name, version)
        logger.info(f"Caching {tool_name}@{version} from {source}")

        try:
            with self._lock(tool_name):
                marker.unlink(missing_ok=True)
                if entry.exists():
                    shutil.rmtree(entry)
                entry.mkdir(parents=True)
                recursive_copy(source, entry)
                marker.write_text("")
        except Timeout as e:
            raise CacheLockTimeout(
                f"Could not acquire cache lock for {tool_name} after {self.lock_timeout}s"
            ) from e
        except OSError as e:
            raise CacheError(f"Failed to cache {tool_name}@{version}: {e}") from e

        logger.info(f"{tool_name} cached @ {entry}")
        return entry.resolve()


__all__ = ["LocalToolCache", "COMPLETE_SUFFIX"]
