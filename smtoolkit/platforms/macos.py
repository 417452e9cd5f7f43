"""
macOS specific handling: disk image mounting and canonical symlinks.

DMG artifacts are attached with ``hdiutil`` under a uniquely named mount
point and detached once their contents have been copied into the cache.
Architecture-qualified executables (``smctl-mac-x64``) get a canonical name
(``smctl``) through a symlink next to them.
"""

import logging
from pathlib import Path

from smtoolkit.core.directory import random_dir_name
from smtoolkit.core.exceptions import DiskImageError
from smtoolkit.core.process import CommandError, CommandRunner
from smtoolkit.platforms.base import HookContext, ToolHook

logger = logging.getLogger(__name__)

DEFAULT_VOLUMES_ROOT = Path("/Volumes")


def mount_dmg(
    runner: CommandRunner, dmg_file: Path, volumes_root: Path = DEFAULT_VOLUMES_ROOT
) -> Path:
    """
    Attach a disk image at a fresh mount point.

    Args:
        runner: Command runner
        dmg_file: Disk image to attach
        volumes_root: Parent directory for mount points

    Returns:
        The mount point

    Raises:
        DiskImageError: If hdiutil cannot attach the image
    """
    volume = volumes_root / random_dir_name()
    logger.info(f"Mounting DMG file {dmg_file} to volume {volume}")
    try:
        runner.run("hdiutil", ["attach", str(dmg_file), "-mountpoint", str(volume)])
    except (CommandError, OSError) as e:
        raise DiskImageError(f"Failed to mount {dmg_file}: {e}") from e
    return volume


def unmount_dmg(runner: CommandRunner, volume: Path) -> bool:
    """
    Detach a mounted disk image. Failures are logged, not raised.

    Returns:
        True if the volume was detached
    """
    logger.info(f"Unmounting volume {volume}")
    try:
        runner.run("hdiutil", ["detach", str(volume)])
    except (CommandError, OSError) as e:
        logger.warning(f"Failed to unmount {volume}: {e}")
        return False
    return True


def create_canonical_symlink(tool_path: Path, source_name: str, link_name: str) -> None:
    """
    Point ``<tool_path>/<link_name>`` at ``source_name`` in the same directory.

    An existing file or link at the target is replaced. Failures are logged
    as warnings.
    """
    target = tool_path / link_name
    try:
        if target.is_symlink() or target.exists():
            target.unlink()
            logger.info(f"Removed existing file at {target}")
    except OSError as e:
        logger.warning(f"Failed to remove {target}: {e}")

    logger.info(f"Creating symlink: {target} -> {tool_path / source_name}")
    try:
        # Relative target keeps the link valid when the cache is restored elsewhere
        target.symlink_to(source_name)
    except OSError as e:
        logger.warning(f"Failed to create symlink: {e}")


def canonical_symlink_hook(source_name: str, link_name: str) -> ToolHook:
    """Build a post-install hook that creates a canonical symlink."""

    def hook(tool_path: Path, ctx: HookContext) -> None:
        create_canonical_symlink(tool_path, source_name, link_name)

    return hook


__all__ = [
    "DEFAULT_VOLUMES_ROOT",
    "mount_dmg",
    "unmount_dmg",
    "create_canonical_symlink",
    "canonical_symlink_hook",
]
