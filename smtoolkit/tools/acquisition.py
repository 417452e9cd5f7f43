"""
Tool acquisition orchestrator.

``ToolAcquirer.acquire(name)`` makes a signing tool available on the machine
and returns its installed path. Per acquisition:

1. Look the tool up in the catalog for the running platform
2. Resolve the cache version (declared, or derived from the CDN checksum)
3. Try the remote shared cache (GitHub-hosted runners, when enabled)
4. Look the version up in the local tool cache
5. On a miss: download with retries, unpack, store in the local cache
6. Run post-install side effects (symlinks, PKCS#11 config, registration)
7. Save to the remote cache in the background after a remote miss

Download and extraction failures are fatal; remote cache problems are logged
as warnings and never change the result.

Usage:
    acquirer = ToolAcquirer(config, detect_platform(), default_catalog(), outputs)
    smctl = acquirer.acquire("smctl")
    acquirer.close()
"""

import logging
import os
import shutil
import subprocess
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence

import requests

from smtoolkit.config.parser import SetupConfig
from smtoolkit.core.directory import (
    get_temp_dir,
    get_tool_cache_dir,
    random_file_name,
    random_temp_dir,
)
from smtoolkit.core.download import create_session, download_file, fetch_text
from smtoolkit.core.filesystem import walk_tree
from smtoolkit.core.outputs import OutputSink
from smtoolkit.core.platform import PlatformInfo, is_self_hosted
from smtoolkit.core.process import CommandError, CommandRunner
from smtoolkit.core.retry import retry_with_backoff
from smtoolkit.platforms.base import HookContext
from smtoolkit.platforms.pkcs11 import write_pkcs11_config
from smtoolkit.platforms.unix import normalize_execute_bits
from smtoolkit.tools.catalog import ToolCatalog, ToolKind, ToolMetadata
from smtoolkit.tools.extraction import ArchiveDispatcher
from smtoolkit.tools.local_cache import LocalToolCache
from smtoolkit.tools.remote_cache import RemoteCacheProvider, create_remote_cache
from smtoolkit.tools.version import VersionResolution, VersionResolver, download_url

logger = logging.getLogger(__name__)


def remote_cache_key(tool: ToolMetadata, cache_version: str, platform: PlatformInfo) -> str:
    """
    Remote cache key of a tool.

    Example:
        >>> remote_cache_key(smctl, "1.0.0", PlatformInfo(OsKind.LINUX, "x64"))
        'smctl-1.0.0-linux-x64'
    """
    return f"{tool.name}-{cache_version}-{platform.os.key}-{platform.arch}"


class ToolAcquirer:
    """Acquires signing tools through the local and remote caches."""

    def __init__(
        self,
        config: SetupConfig,
        platform: PlatformInfo,
        catalog: ToolCatalog,
        outputs: OutputSink,
        runner: Optional[CommandRunner] = None,
        remote_cache: Optional[RemoteCacheProvider] = None,
        session: Optional[requests.Session] = None,
        environ: Optional[Mapping[str, str]] = None,
        sleep: Callable[[float], None] = time.sleep,
        volumes_root: Optional[Path] = None,
    ):
        """
        Initialize acquirer.

        Args:
            config: Setup configuration
            platform: Platform tools are acquired for
            catalog: Tool catalog
            outputs: Sink for PATH entries and outputs
            runner: Command runner (default: CommandRunner())
            remote_cache: Remote cache provider (default: from config)
            session: requests session used for CDN access (default: one owned
                and closed by the acquirer)
            environ: Environment mapping (default: os.environ)
            sleep: Sleep function used between retries
            volumes_root: Parent directory for disk image mount points
        """
        if environ is None:
            environ = os.environ

        self.config = config
        self.platform = platform
        self.catalog = catalog
        self.outputs = outputs
        self.runner = runner or CommandRunner()
        self.remote_cache = remote_cache if remote_cache is not None else create_remote_cache(config)
        self._owns_session = session is None
        self.session = session if session is not None else create_session()
        self.sleep = sleep
        self.self_hosted = is_self_hosted(environ)

        self.tool_cache_root = Path(config.tool_cache_dir or get_tool_cache_dir(environ))
        self.temp_root = Path(config.temp_dir or get_temp_dir(environ))

        system_root = environ.get("SystemRoot")
        self.hook_context = HookContext(
            runner=self.runner,
            temp_root=self.temp_root,
            system_root=Path(system_root) if system_root else None,
        )

        self.local_cache = LocalToolCache(self.tool_cache_root, platform.arch)
        self.resolver = VersionResolver(
            config.cdn_base,
            config.retry_policy,
            fetch=lambda url: fetch_text(url, config.download_timeout, self.session),
            sleep=sleep,
        )
        dispatcher_kwargs = {} if volumes_root is None else {"volumes_root": volumes_root}
        self.dispatcher = ArchiveDispatcher(self.runner, self.temp_root, **dispatcher_kwargs)

        self._lock = threading.Lock()
        self._save_executor: Optional[ThreadPoolExecutor] = None
        self._pending_saves: List[Future] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def acquire(self, name: str) -> Optional[Path]:
        """
        Make a tool available and return its installed path.

        Args:
            name: Tool name (e.g., 'smctl', 'smtools')

        Returns:
            ``<dir>/<installed file>`` for executables, the tool directory
            otherwise, or None if the tool is not published for this platform

        Raises:
            DownloadError: If the artifact cannot be downloaded after retries
            ExtractionError: If the artifact cannot be unpacked or installed
            ProviderRegistrationError: If provider registration fails
        """
        tool = self.catalog.lookup(name, self.platform.os, self.platform.arch)
        if not tool:
            logger.warning(f"{tool.key} is not supported")
            return None

        logger.info(f"Setting up {tool.qualified_key}")

        try_remote = self._should_try_remote()
        resolution = self.resolver.resolve(
            tool, self.config.use_binary_sha256_checksum, self.config.cache_version
        )

        cache_key = remote_cache_key(tool, self.config.cache_version, self.platform)
        cache_paths = [self.local_cache.tool_dir(tool.name)]
        cache_hit = None
        if try_remote:
            cache_hit = self._restore_remote(cache_paths, cache_key)

        tool_dir = self._cached_setup(tool, resolution)

        if try_remote:
            if cache_hit:
                # A restored cache carries files only, machine-level setup is redone
                if tool.cache_hit_hook:
                    tool.cache_hit_hook(tool_dir, self.hook_context)
            else:
                logger.info(f"It was a cache miss for {cache_key}, saving it now")
                self._schedule_save(cache_paths, cache_key)

        installed = tool_dir
        if tool.tool_kind is ToolKind.EXECUTABLE:
            installed = tool_dir / tool.installed_file_name
            if tool.version_flag:
                self._check_version(tool, installed)

        return installed

    def acquire_all(self, names: Sequence[str]) -> Dict[str, Optional[Path]]:
        """
        Acquire several tools concurrently.

        The first failure is re-raised; acquisitions already running are not
        cancelled.

        Returns:
            Mapping of tool name to installed path
        """
        if not names:
            return {}

        pool = ThreadPoolExecutor(max_workers=len(names), thread_name_prefix="acquire")
        futures = [pool.submit(self.acquire, name) for name in names]
        done, _ = wait(futures, return_when=FIRST_EXCEPTION)

        for future in futures:
            if future in done and future.exception() is not None:
                pool.shutdown(wait=False)
                raise future.exception()

        pool.shutdown(wait=True)
        return {name: future.result() for name, future in zip(names, futures)}

    def wait_for_pending_saves(self, timeout: Optional[float] = None) -> List[Optional[str]]:
        """
        Wait for background remote cache saves.

        Returns:
            Cache ids of the finished saves (None for failed saves)
        """
        with self._lock:
            pending = list(self._pending_saves)
            self._pending_saves.clear()

        if not pending:
            return []

        done, not_done = wait(pending, timeout=timeout)
        if not_done:
            logger.warning(f"{len(not_done)} cache save(s) still running")
            with self._lock:
                self._pending_saves.extend(not_done)
        return [future.result() for future in pending if future in done]

    def close(self) -> None:
        """Wait for background saves, then release the worker thread and session."""
        self.wait_for_pending_saves()
        with self._lock:
            executor, self._save_executor = self._save_executor, None
        if executor is not None:
            executor.shutdown(wait=True)
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "ToolAcquirer":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Acquisition steps
    # ------------------------------------------------------------------

    def _should_try_remote(self) -> bool:
        if not self.config.use_github_caching_service:
            return False
        if self.self_hosted:
            logger.debug("Self-hosted runner, skipping remote cache")
            return False
        return self.remote_cache.is_available()

    def _restore_remote(self, paths: List[Path], key: str) -> Optional[str]:
        logger.info(f"Trying to restore cache for {key} @ {paths[0]}")
        try:
            return retry_with_backoff(
                lambda: self.remote_cache.restore(paths, key),
                f"Restore cache {key}",
                self.config.retry_policy,
                self.sleep,
            )
        except Exception as e:
            logger.warning(f"Error in restoring cache: {e}")
            return None

    def _cached_setup(self, tool: ToolMetadata, resolution: VersionResolution) -> Path:
        logger.info(f"Looking for all installed and cached versions of {tool.name}")
        for version in self.local_cache.find_all_versions(tool.name):
            logger.info(f"\tFound {version}")

        version = resolution.version
        logger.info(f"Required cached version of {tool.name} for this run is {version}")

        tool_dir = self.local_cache.find(tool.name, version)
        if tool_dir:
            logger.info(f"{tool.name} found in cache @ {tool_dir}")
        else:
            tool_dir = self._download_and_store(tool, resolution)

        if tool.post_install_hook:
            tool.post_install_hook(tool_dir, self.hook_context)

        if tool.needs_pkcs11_config:
            write_pkcs11_config(tool_dir, self.platform.os, self.outputs)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("---")
            logger.debug(f"Contents of: {tool_dir}")
            logger.debug("---")
            for entry in walk_tree(tool_dir):
                logger.debug(entry)
            logger.debug("---")

        if tool.tool_kind is not ToolKind.LIBRARY:
            logger.info(f"Adding {tool_dir} to PATH")
            self.outputs.add_path(tool_dir)

        return tool_dir

    def _download_and_store(self, tool: ToolMetadata, resolution: VersionResolution) -> Path:
        url = download_url(self.config.cdn_base, tool)
        logger.info(f"{tool.name} NOT found in cache, downloading from {url}")

        expected_sha256 = None
        if self.config.verify_binary_checksum and resolution.from_checksum:
            expected_sha256 = resolution.checksum

        staging = random_temp_dir(self.temp_root)
        stored: List[Path] = []
        try:
            downloaded = staging / random_file_name()
            retry_with_backoff(
                lambda: download_file(
                    url,
                    downloaded,
                    expected_sha256=expected_sha256,
                    timeout=self.config.download_timeout,
                    session=self.session,
                ),
                f"Download {tool.name}",
                self.config.retry_policy,
                self.sleep,
            )
            logger.info(f"{tool.name} downloaded @ {downloaded}")

            def store(contents: Path) -> None:
                logger.info(f"Performing post download activities for {contents}")
                source = contents
                if tool.is_archived and tool.exploded_directory_name:
                    source = contents / tool.exploded_directory_name
                if tool.needs_execute_bit:
                    normalize_execute_bits(source)
                stored.append(self.local_cache.store(source, tool.name, resolution.version))

            self.dispatcher.extract(tool, downloaded, store)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        return stored[0]

    def _check_version(self, tool: ToolMetadata, executable: Path) -> None:
        logger.info(f"Checking actual version of {tool.name}")
        try:
            result = self.runner.run(executable, [tool.version_flag])
        except (CommandError, OSError, subprocess.SubprocessError) as e:
            logger.warning(f"failed to check: {e}")
            return
        if result.stdout.strip():
            logger.info(result.stdout.strip())

    # ------------------------------------------------------------------
    # Background remote saves
    # ------------------------------------------------------------------

    def _schedule_save(self, paths: List[Path], key: str) -> None:
        with self._lock:
            if self._save_executor is None:
                self._save_executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="cache-save"
                )
            self._pending_saves.append(self._save_executor.submit(self._save_remote, paths, key))

    def _save_remote(self, paths: List[Path], key: str) -> Optional[str]:
        try:
            cache_id = retry_with_backoff(
                lambda: self.remote_cache.save(paths, key),
                f"Save cache {key}",
                self.config.retry_policy,
                self.sleep,
            )
        except Exception as e:
            logger.warning(f"Error in saving cache: {e}")
            return None
        logger.info(f"Cache saved successfully, cacheId is {cache_id}")
        return cache_id


__all__ = ["ToolAcquirer", "remote_cache_key"]
