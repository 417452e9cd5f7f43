"""
Remote shared cache providers.

A remote cache stores whole tool cache directories under a key, so a fresh
build machine can restore tools another machine already installed. Entries are
gzip-compressed tarballs holding one member directory per cached path, named
by its position in the saved path list, plus a ``manifest.json`` listing them.
Restoring maps the members onto the paths of the restoring machine.

Providers:
- DirectoryRemoteCache: tarballs in a shared directory (network mount, CI volume)
- HttpRemoteCache: tarballs behind an HTTP endpoint (GET/PUT ``<base>/<key>.tar.gz``)
- NullRemoteCache: never available

Usage:
    cache = create_remote_cache(config)
    if cache.is_available():
        hit = cache.restore([tool_cache_root / "smctl"], "smctl-1.0.0-linux-x64")
"""

import io
import json
import logging
import os
import tarfile
import tempfile
import time
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Union

import requests
from requests.exceptions import RequestException

from smtoolkit.config.parser import SetupConfig
from smtoolkit.core.download import DEFAULT_TIMEOUT, USER_AGENT
from smtoolkit.core.exceptions import RemoteCacheError
from smtoolkit.core.filesystem import extract_tar, is_relative_to, recursive_copy

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"
ARCHIVE_SUFFIX = ".tar.gz"

PathLike = Union[str, Path]


class RemoteCacheProvider(Protocol):
    """Interface of remote shared caches."""

    def is_available(self) -> bool:
        ...

    def restore(self, paths: Sequence[PathLike], key: str) -> Optional[str]:
        """Restore paths saved under key. Returns the key on a hit, None on a miss."""
        ...

    def save(self, paths: Sequence[PathLike], key: str) -> str:
        """Save paths under key. Returns an identifier of the saved entry."""
        ...


def _validate_key(key: str) -> None:
    if not key or "/" in key or "\\" in key or key in (".", ".."):
        raise ValueError(f"Invalid cache key: {key!r}")


def build_cache_archive(paths: Sequence[PathLike], archive_file: Path) -> List[Path]:
    """
    Pack directories into a cache archive.

    Each path is stored under its index in ``paths``, so a restore maps the
    members onto the paths it is given rather than onto this machine's layout.
    Missing paths are skipped.

    Args:
        paths: Directories to pack
        archive_file: Destination .tar.gz file

    Returns:
        The paths that were packed

    Raises:
        RemoteCacheError: If none of the paths exist
    """
    packed: Dict[str, Path] = {}
    for index, path in enumerate(paths):
        path = Path(path).absolute()
        if path.exists():
            packed[str(index)] = path
        else:
            logger.warning(f"Cache path does not exist, skipping: {path}")
    if not packed:
        raise RemoteCacheError("None of the cache paths exist, nothing to save")

    manifest: Dict[str, str] = {}
    with tarfile.open(archive_file, "w:gz") as tar:
        for member, path in packed.items():
            tar.add(str(path), arcname=member)
            manifest[member] = path.name

        data = json.dumps(manifest, indent=2).encode("utf-8")
        info = tarfile.TarInfo(MANIFEST_NAME)
        info.size = len(data)
        info.mtime = int(time.time())
        tar.addfile(info, io.BytesIO(data))

    return list(packed.values())


def _read_manifest(archive_file: Path, manifest_file: Path, count: int) -> Dict[int, str]:
    try:
        manifest = json.loads(manifest_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise RemoteCacheError(f"Cache archive {archive_file} has no valid manifest: {e}") from e
    if not isinstance(manifest, dict) or not manifest:
        raise RemoteCacheError(f"Cache archive {archive_file} has no valid manifest")

    members: Dict[int, str] = {}
    for member in manifest:
        if not (isinstance(member, str) and member.isdigit() and int(member) < count):
            raise RemoteCacheError(
                f"Cache archive {archive_file} has member {member!r} outside the {count} "
                f"requested path(s)"
            )
        members[int(member)] = member
    return members


def _check_links(source: Path) -> None:
    """Reject symlinks that resolve outside the member directory."""
    root = source.resolve()
    for dirpath, dirnames, filenames in os.walk(source):
        for name in dirnames + filenames:
            entry = Path(dirpath) / name
            if entry.is_symlink() and not is_relative_to(entry.resolve(), root):
                raise RemoteCacheError(
                    f"Cache member {source.name} has a link escaping its directory: {name}"
                )


def unpack_cache_archive(archive_file: Path, paths: Sequence[PathLike]) -> List[Path]:
    """
    Restore the directories held in a cache archive onto ``paths``.

    Member ``N`` is written to ``paths[N]``. Nothing is written anywhere else.

    Args:
        archive_file: .tar.gz cache archive
        paths: Directories to restore into, in the order they were saved

    Returns:
        The restored paths

    Raises:
        RemoteCacheError: If the manifest is invalid or names members that do
            not map onto ``paths``
        ArchiveExtractionError: If the archive cannot be extracted
    """
    restored: List[Path] = []
    with tempfile.TemporaryDirectory(prefix="smtoolkit-restore-") as staging:
        staging_dir = Path(staging)
        extract_tar(archive_file, staging_dir)

        members = _read_manifest(archive_file, staging_dir / MANIFEST_NAME, len(paths))
        for member in members.values():
            source = staging_dir / member
            if not source.is_dir():
                raise RemoteCacheError(f"Cache archive {archive_file} is missing member {member}")
            _check_links(source)

        for index, member in sorted(members.items()):
            target = Path(paths[index])
            recursive_copy(staging_dir / member, target)
            logger.debug(f"Restored {target}")
            restored.append(target)

    return restored


class NullRemoteCache:
    """Remote cache that is never available."""

    def is_available(self) -> bool:
        return False

    def restore(self, paths: Sequence[PathLike], key: str) -> Optional[str]:
        return None

    def save(self, paths: Sequence[PathLike], key: str) -> str:
        raise RemoteCacheError("No remote cache is configured")


class DirectoryRemoteCache:
    """Remote cache stored as tarballs in a shared directory."""

    def __init__(self, root: PathLike):
        self.root = Path(root)

    def archive_path(self, key: str) -> Path:
        _validate_key(key)
        return self.root / f"{key}{ARCHIVE_SUFFIX}"

    def is_available(self) -> bool:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.debug(f"Remote cache directory {self.root} is unusable: {e}")
            return False
        return os.access(self.root, os.W_OK)

    def restore(self, paths: Sequence[PathLike], key: str) -> Optional[str]:
        archive = self.archive_path(key)
        if not archive.is_file():
            logger.info(f"Cache not found for key: {key}")
            return None

        logger.info(f"Restoring cache {key} from {archive}")
        unpack_cache_archive(archive, paths)
        return key

    def save(self, paths: Sequence[PathLike], key: str) -> str:
        archive = self.archive_path(key)
        self.root.mkdir(parents=True, exist_ok=True)

        fd, temp_name = tempfile.mkstemp(
            dir=self.root, prefix=f".{key}.", suffix=".tmp"
        )
        os.close(fd)
        temp_archive = Path(temp_name)
        try:
            build_cache_archive(paths, temp_archive)
            temp_archive.replace(archive)
        except Exception:
            temp_archive.unlink(missing_ok=True)
            raise

        logger.info(f"Saved cache {key} to {archive}")
        return key


class HttpRemoteCache:
    """Remote cache served over HTTP(S)."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize HTTP cache.

        Args:
            base_url: Base URL; entries live at <base_url>/<key>.tar.gz
            token: Optional bearer token
            timeout: Request timeout in seconds
            session: Optional requests session
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = USER_AGENT
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def entry_url(self, key: str) -> str:
        _validate_key(key)
        return f"{self.base_url}/{key}{ARCHIVE_SUFFIX}"

    def is_available(self) -> bool:
        return bool(self.base_url)

    def restore(self, paths: Sequence[PathLike], key: str) -> Optional[str]:
        url = self.entry_url(key)
        with tempfile.TemporaryDirectory(prefix="smtoolkit-cache-") as staging:
            archive = Path(staging) / f"{key}{ARCHIVE_SUFFIX}"
            try:
                with self.session.get(url, stream=True, timeout=self.timeout) as response:
                    if response.status_code == 404:
                        logger.info(f"Cache not found for key: {key}")
                        return None
                    response.raise_for_status()
                    with open(archive, "wb") as f:
                        for chunk in response.iter_content(chunk_size=8192):
                            if chunk:
                                f.write(chunk)
            except RequestException as e:
                raise RemoteCacheError(f"Failed to restore cache {key} from {url}: {e}") from e

            logger.info(f"Restoring cache {key} from {url}")
            unpack_cache_archive(archive, paths)
        return key

    def save(self, paths: Sequence[PathLike], key: str) -> str:
        url = self.entry_url(key)
        with tempfile.TemporaryDirectory(prefix="smtoolkit-cache-") as staging:
            archive = Path(staging) / f"{key}{ARCHIVE_SUFFIX}"
            build_cache_archive(paths, archive)
            try:
                with open(archive, "rb") as f:
                    response = self.session.put(
                        url,
                        data=f,
                        headers={"Content-Type": "application/gzip"},
                        timeout=self.timeout,
                    )
                response.raise_for_status()
            except RequestException as e:
                raise RemoteCacheError(f"Failed to save cache {key} to {url}: {e}") from e

        logger.info(f"Saved cache {key} to {url}")
        return key


def create_remote_cache(config: SetupConfig) -> RemoteCacheProvider:
    """
    Choose the remote cache provider for a configuration.

    Returns:
        HttpRemoteCache for http(s) URLs, DirectoryRemoteCache for other
        values, NullRemoteCache when no remote cache is configured
    """
    location = config.remote_cache
    if not location:
        return NullRemoteCache()
    if location.startswith(("http://", "https://")):
        return HttpRemoteCache(
            location, token=config.remote_cache_token, timeout=config.download_timeout
        )
    return DirectoryRemoteCache(Path(location).expanduser())


__all__ = [
    "RemoteCacheProvider",
    "NullRemoteCache",
    "DirectoryRemoteCache",
    "HttpRemoteCache",
    "build_cache_archive",
    "unpack_cache_archive",
    "create_remote_cache",
]
