"""Unix permission handling for installed tools."""

import logging
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)

EXECUTABLE_MODE = 0o755


def normalize_execute_bits(tool_path: Path) -> List[Path]:
    """
    Set rwxr-xr-x on the regular files directly inside tool_path.

    Subdirectories are not descended into.

    Args:
        tool_path: Directory holding the tool files

    Returns:
        Files whose mode was set
    """
    logger.info(f"Adding +x permission to files present @ {tool_path}")
    updated = []
    for entry in sorted(Path(tool_path).iterdir()):
        if entry.is_file():
            entry.chmod(EXECUTABLE_MODE)
            logger.debug(f"Added +x permission to: {entry}")
            updated.append(entry)
    return updated


__all__ = ["EXECUTABLE_MODE", "normalize_execute_bits"]
