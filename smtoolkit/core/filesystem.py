"""
Cross-platform file system utilities for smtoolkit.

This module provides the file operations used while installing tools:
- Archive extraction (zip, tar.gz/tar.xz/tar.bz2) with traversal protection
- Unix permission bits preserved from zip archives
- Guarded deletion and tree copies
- Directory walking for diagnostics

All operations handle platform differences transparently.
"""

import os
import shutil
import stat
import sys
import tarfile
import zipfile
from pathlib import Path
from typing import List, Optional, Union

from smtoolkit.core.exceptions import ExtractionError, SmToolkitError

IS_WINDOWS = os.name == "nt"


# ============================================================================
# Errors
# ============================================================================


class FilesystemError(SmToolkitError):
    """Base exception for filesystem operations."""

    pass


class ArchiveExtractionError(FilesystemError, ExtractionError):
    """Failed to extract an archive."""

    pass


class UnsupportedArchiveFormat(ArchiveExtractionError):
    """Archive format is not supported."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """Archive contains insecure paths (directory traversal attempt)."""

    pass


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check if path is relative to parent.

    Args:
        path: Path to check
        parent: Potential parent path

    Returns:
        True if path is under parent
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def walk_tree(directory: Union[str, Path]) -> List[str]:
    """
    List a directory tree recursively.

    Directories are prefixed with ``[D]`` and regular files with ``[F]``.
    Unreadable directories are skipped.

    Args:
        directory: Root directory to walk

    Returns:
        Entries in walk order

    Example:
        >>> walk_tree('/opt/hostedtoolcache/smctl/1.0.0/x64')
        ['[F]/opt/hostedtoolcache/smctl/1.0.0/x64/smctl']
    """
    directory = Path(directory)
    results: List[str] = []

    try:
        entries = sorted(directory.iterdir())
    except OSError:
        return results

    for entry in entries:
        if entry.is_dir() and not entry.is_symlink():
            results.append(f"[D]{entry}")
            results.extend(walk_tree(entry))
        elif entry.is_file():
            results.append(f"[F]{entry}")

    return results


# ============================================================================
# Archive Extraction
# ============================================================================


def _validate_archive_path(path: str, destination: Path) -> None:
    """
    Validate that an archive member path is safe to extract.

    Args:
        path: Member path from archive
        destination: Extraction destination

    Raises:
        InsecureArchiveError: If path attempts directory traversal
    """
    member_path = (destination / path).resolve()

    if not is_relative_to(member_path, destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )


def extract_zip(archive_path: Union[str, Path], destination: Union[str, Path]) -> Path:
    """
    Extract a ZIP archive, keeping Unix permission bits and symlinks.

    Args:
        archive_path: Path to the .zip file
        destination: Directory to extract to (created if missing)

    Returns:
        The destination directory

    Raises:
        ArchiveExtractionError: If the archive is missing or corrupt
        InsecureArchiveError: If a member or symlink escapes the destination
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.exists():
        raise ArchiveExtractionError(f"Archive not found: {archive_path}")

    destination.mkdir(parents=True, exist_ok=True)

    try:
        with zipfile.ZipFile(archive_path, "r") as zf:
            members = zf.infolist()

            # Validate all paths first
            for info in members:
                _validate_archive_path(info.filename, destination)

            for info in members:
                unix_mode = info.external_attr >> 16
                target = destination / info.filename

                if stat.S_ISLNK(unix_mode):
                    link_target = zf.read(info).decode("utf-8")
                    _validate_archive_path(
                        str(Path(info.filename).parent / link_target), destination
                    )
                    target.parent.mkdir(parents=True, exist_ok=True)
                    if target.exists() or target.is_symlink():
                        target.unlink()
                    os.symlink(link_target, target)
                    continue

                zf.extract(info, destination)

                if not info.is_dir() and unix_mode & 0o777:
                    target.chmod(unix_mode & 0o777)

    except zipfile.BadZipFile as e:
        raise ArchiveExtractionError(f"Invalid zip file {archive_path}: {e}") from e
    except OSError as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_path}: {e}") from e

    return destination


def extract_tar(archive_path: Union[str, Path], destination: Union[str, Path]) -> Path:
    """
    Extract a tar archive, detecting compression automatically.

    Args:
        archive_path: Path to the .tar, .tar.gz, .tar.xz or .tar.bz2 file
        destination: Directory to extract to (created if missing)

    Returns:
        The destination directory

    Raises:
        ArchiveExtractionError: If the archive is missing or corrupt
        InsecureArchiveError: If a member escapes the destination
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.exists():
        raise ArchiveExtractionError(f"Archive not found: {archive_path}")

    destination.mkdir(parents=True, exist_ok=True)

    try:
        with tarfile.open(archive_path, "r:*") as tar:
            # Validate all paths first
            for member in tar.getmembers():
                _validate_archive_path(member.name, destination)

            # Extract with filter for security (Python 3.12+)
            # For older Python, we've already validated paths above
            if sys.version_info >= (3, 12):
                tar.extractall(destination, filter="data")
            else:
                tar.extractall(destination)

    except tarfile.TarError as e:
        raise ArchiveExtractionError(f"Invalid tar file {archive_path}: {e}") from e
    except OSError as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_path}: {e}") from e

    return destination


# ============================================================================
# Safe File Operations
# ============================================================================


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not is_relative_to(path, require_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        if IS_WINDOWS:

            def handle_remove_readonly(func, failed_path, exc):
                """Error handler for Windows read-only files."""
                if not os.access(failed_path, os.W_OK):
                    os.chmod(failed_path, 0o777)
                    func(failed_path)
                else:
                    raise

            shutil.rmtree(path, onerror=handle_remove_readonly)
        else:
            shutil.rmtree(path)

    except Exception as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


def recursive_copy(
    source: Union[str, Path], destination: Union[str, Path], symlinks: bool = True
) -> Path:
    """
    Recursively copy a directory tree, merging into an existing destination.

    Args:
        source: Source directory
        destination: Destination directory
        symlinks: If True, copy symlinks as symlinks (default)

    Returns:
        The destination directory

    Raises:
        FilesystemError: If source is missing or not a directory
    """
    source = Path(source)
    destination = Path(destination)

    if not source.exists():
        raise FilesystemError(f"Source does not exist: {source}")

    if not source.is_dir():
        raise FilesystemError(f"Source is not a directory: {source}")

    shutil.copytree(source, destination, symlinks=symlinks, dirs_exist_ok=True)
    return destination


__all__ = [
    # Exceptions
    "FilesystemError",
    "ArchiveExtractionError",
    "UnsupportedArchiveFormat",
    "InsecureArchiveError",
    # Path utilities
    "is_relative_to",
    "walk_tree",
    # Archive extraction
    "extract_zip",
    "extract_tar",
    # Safe file operations
    "safe_rmtree",
    "recursive_copy",
]
