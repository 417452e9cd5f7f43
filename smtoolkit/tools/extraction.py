"""
Archive extraction dispatcher.

Turns a downloaded artifact into a directory of tool files, choosing the
strategy from the tool's ``ArchiveKind``:

- NONE: the file is copied into a fresh ``D_<uuid>`` directory
- DMG:  the disk image is attached under ``/Volumes/D_<uuid>``
- MSI:  the package is (re)installed with msiexec into a fresh directory
- ZIP/TAR: the archive is safely extracted into a fresh directory

The unpacked contents are owned by an ``ExtractionContext``. Mounted images
disappear once detached, so callers process the contents inside the context
(``with_contents`` or a ``with`` block) and the context releases them on every
exit path.

Usage:
    dispatcher = ArchiveDispatcher(CommandRunner(), temp_root)
    with dispatcher.open(tool, downloaded) as contents:
        cache.store(contents.path, tool.name, version)
"""

import codecs
import logging
import shutil
from pathlib import Path
from typing import Callable, Optional, TypeVar

from smtoolkit.core.directory import random_file_name, random_temp_dir
from smtoolkit.core.exceptions import InstallerError
from smtoolkit.core.filesystem import (
    UnsupportedArchiveFormat,
    extract_tar,
    extract_zip,
)
from smtoolkit.core.process import CommandRunner
from smtoolkit.platforms.macos import DEFAULT_VOLUMES_ROOT, mount_dmg, unmount_dmg
from smtoolkit.tools.catalog import ArchiveKind, ToolMetadata

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Accepted exit codes for the uninstall pass; 1605 means "not installed"
MSI_UNINSTALL_OK_CODES = (0, 1605)


def _noop() -> None:
    pass


class ExtractionContext:
    """
    Scoped owner of one artifact's unpacked contents.

    ``release`` runs at most once, after the caller is done with the contents.
    """

    def __init__(self, path: Path, release: Optional[Callable[[], None]] = None):
        self.path = Path(path)
        self._release = release or _noop
        self._released = False

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._release()

    def with_contents(self, callback: Callable[[Path], T]) -> Path:
        """
        Run callback on the unpacked contents, then release them.

        Returns:
            The contents path

        Raises:
            Exception: Whatever callback raises, after the release
        """
        try:
            callback(self.path)
        finally:
            self.release()
        return self.path

    def __enter__(self) -> "ExtractionContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


def read_installer_log(log_file: Path) -> str:
    """
    Read an msiexec log, which is UTF-16 when it starts with a BOM.

    Raises:
        OSError: If the log cannot be read
    """
    data = Path(log_file).read_bytes()
    if data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        return data.decode("utf-16", errors="replace")
    if data.startswith(codecs.BOM_UTF8):
        return data.decode("utf-8-sig", errors="replace")
    return data.decode("utf-8", errors="replace")


def _remove_tree(path: Path) -> Callable[[], None]:
    def release() -> None:
        logger.debug(f"Removing {path}")
        shutil.rmtree(path, ignore_errors=True)

    return release


class ArchiveDispatcher:
    """Unpacks downloaded artifacts according to their packaging."""

    def __init__(
        self,
        runner: CommandRunner,
        temp_root: Path,
        volumes_root: Path = DEFAULT_VOLUMES_ROOT,
    ):
        """
        Initialize dispatcher.

        Args:
            runner: Command runner for hdiutil and msiexec
            temp_root: Parent directory for scratch directories
            volumes_root: Parent directory for disk image mount points
        """
        self.runner = runner
        self.temp_root = Path(temp_root)
        self.volumes_root = Path(volumes_root)

    def open(self, tool: ToolMetadata, downloaded: Path) -> ExtractionContext:
        """
        Unpack a downloaded artifact.

        Args:
            tool: Tool metadata (selects the strategy)
            downloaded: Downloaded file

        Returns:
            ExtractionContext owning the unpacked contents

        Raises:
            ArchiveExtractionError: If a ZIP/TAR archive cannot be extracted
            DiskImageError: If a disk image cannot be mounted
            InstallerError: If msiexec fails
        """
        downloaded = Path(downloaded)
        kind = tool.archive_kind
        logger.info(f"Setting the {kind.value} file {downloaded}")

        if kind is ArchiveKind.NONE:
            return self._wrap_in_directory(downloaded, tool.installed_file_name)
        elif kind is ArchiveKind.DMG:
            volume = mount_dmg(self.runner, downloaded, self.volumes_root)
            return ExtractionContext(volume, lambda: unmount_dmg(self.runner, volume))
        elif kind is ArchiveKind.MSI:
            # The installed tree belongs to the installer and is kept
            return ExtractionContext(self._install_msi(downloaded))
        elif kind is ArchiveKind.ZIP:
            return self._extract_into_temp(downloaded, extract_zip)
        elif kind is ArchiveKind.TAR:
            return self._extract_into_temp(downloaded, extract_tar)
        raise UnsupportedArchiveFormat(f"Unsupported archive kind: {kind}")

    def extract(
        self, tool: ToolMetadata, downloaded: Path, callback: Callable[[Path], T]
    ) -> Path:
        """
        Unpack an artifact, run callback on the contents and release them.

        Returns:
            The directory the contents were unpacked to
        """
        return self.open(tool, downloaded).with_contents(callback)

    def _wrap_in_directory(self, downloaded: Path, file_name: str) -> ExtractionContext:
        directory = random_temp_dir(self.temp_root)
        try:
            shutil.copyfile(downloaded, directory / file_name)
        except OSError:
            shutil.rmtree(directory, ignore_errors=True)
            raise
        return ExtractionContext(directory, _remove_tree(directory))

    def _extract_into_temp(
        self, archive: Path, extractor: Callable[[Path, Path], Path]
    ) -> ExtractionContext:
        directory = random_temp_dir(self.temp_root)
        try:
            extractor(archive, directory)
        except Exception:
            shutil.rmtree(directory, ignore_errors=True)
            raise
        return ExtractionContext(directory, _remove_tree(directory))

    def _uninstall_msi(self, package: Path) -> None:
        logger.info(f"Removing previous installation of {package}")
        try:
            result = self.runner.run(
                "msiexec", ["/x", str(package), "/qn", "/norestart"], check=False
            )
        except OSError as e:
            logger.warning(f"Failed to uninstall {package}: {e}")
            return

        if result.exit_code not in MSI_UNINSTALL_OK_CODES:
            logger.warning(
                f"Uninstall of {package} exited with code {result.exit_code}, continuing"
            )

    def _install_msi(self, package: Path) -> Path:
        self._uninstall_msi(package)

        directory = random_temp_dir(self.temp_root)
        log_file = directory / f"{random_file_name()}.log"
        logger.info(f"Installing {package} @ {directory}")

        args = [
            "/i",
            str(package),
            "/qn",
            "/le",
            str(log_file),
            "/norestart",
            f"INSTALLDIR={directory}",
            "ALLUSERS=2",
            "MSIINSTALLPERUSER=1",
        ]
        try:
            failed = not self.runner.run("msiexec", args, check=False).ok
        except OSError as e:
            logger.debug(f"msiexec could not be launched: {e}")
            failed = True

        if failed:
            try:
                details = read_installer_log(log_file)
            except OSError as e:
                details = str(e)
            raise InstallerError(str(package), details)

        return directory


__all__ = [
    "ExtractionContext",
    "ArchiveDispatcher",
    "read_installer_log",
    "MSI_UNINSTALL_OK_CODES",
]
