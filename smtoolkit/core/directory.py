"""
Directory management for smtoolkit.

This module resolves the on-machine locations the engine works in and hands
out uniquely named scratch locations, so concurrent acquisitions never share
a temporary path.

Directory Structure:
    Tool cache root (RUNNER_TOOL_CACHE, or ~/.smtoolkit/tool-cache):
        - <tool>/<version>/<arch>/   : Installed tool files
        - <tool>/<version>/<arch>.complete : Marker written after a full store
        - <tool>.lock                : Lock serializing stores of one tool

    Temp root (RUNNER_TEMP, or the system temp directory):
        - D_<uuid>/        : Extraction and install directories
        - csp-setup-<uuid>/ : Access-restricted registration scratch space
"""

import os
import tempfile
import uuid
from pathlib import Path
from typing import Mapping, Optional


def get_tool_cache_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Get the local tool cache root.

    Args:
        environ: Environment mapping (default: os.environ)

    Returns:
        RUNNER_TOOL_CACHE when set, otherwise ~/.smtoolkit/tool-cache
    """
    if environ is None:
        environ = os.environ

    tool_cache = environ.get("RUNNER_TOOL_CACHE")
    if tool_cache:
        return Path(tool_cache)
    return Path.home() / ".smtoolkit" / "tool-cache"


def get_temp_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Get the temp root used for scratch directories.

    Args:
        environ: Environment mapping (default: os.environ)

    Returns:
        RUNNER_TEMP when set, otherwise the system temp directory
    """
    if environ is None:
        environ = os.environ

    return Path(environ.get("RUNNER_TEMP") or tempfile.gettempdir())


def random_file_name() -> str:
    return f"F_{uuid.uuid4()}"


def random_dir_name() -> str:
    return f"D_{uuid.uuid4()}"


def random_temp_dir(temp_root: Path) -> Path:
    """
    Create a fresh, uniquely named directory under temp_root.

    Args:
        temp_root: Parent directory

    Returns:
        Path to the created directory
    """
    path = temp_root / random_dir_name()
    path.mkdir(parents=True)
    return path


def create_secure_temp_dir(temp_root: Path, prefix: str = "smtoolkit-") -> Path:
    """
    Create an access-restricted temporary directory.

    The name carries a random UUID and the directory is created with mode
    0o700, so other users can neither predict nor read its contents.

    Args:
        temp_root: Parent directory
        prefix: Directory name prefix

    Returns:
        Path to the created directory
    """
    path = temp_root / f"{prefix}{uuid.uuid4()}"
    path.mkdir(mode=0o700, parents=True)
    return path


__all__ = [
    "get_tool_cache_dir",
    "get_temp_dir",
    "random_file_name",
    "random_dir_name",
    "random_temp_dir",
    "create_secure_temp_dir",
]
