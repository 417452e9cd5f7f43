"""
Shared types for platform post-install hooks.

A hook receives the installed tool directory and a ``HookContext`` carrying
the collaborators it may need, so hooks stay plain functions that tests can
drive with fakes.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from smtoolkit.core.process import CommandRunner


@dataclass(frozen=True)
class HookContext:
    """
    Collaborators available to post-install hooks.

    Attributes:
        runner: Command runner used for external programs
        temp_root: Directory for scratch files
        system_root: Windows SystemRoot (None on other platforms)
    """

    runner: CommandRunner
    temp_root: Path
    system_root: Optional[Path] = None


ToolHook = Callable[[Path, HookContext], None]

__all__ = ["HookContext", "ToolHook"]
