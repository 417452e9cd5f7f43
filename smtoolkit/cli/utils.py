"""
Shared utilities for CLI commands.

Builds the acquisition engine from command-line arguments so every command
loads configuration and reports errors the same way.
"""

import logging
import sys
from typing import Optional

from smtoolkit.config.parser import SetupConfig, load_config
from smtoolkit.core.outputs import GithubOutputSink
from smtoolkit.core.platform import detect_platform
from smtoolkit.tools.acquisition import ToolAcquirer
from smtoolkit.tools.catalog import default_catalog

logger = logging.getLogger(__name__)


def print_error(message: str, details: Optional[str] = None):
    """
    Print error message to stderr in consistent format.

    Args:
        message: Main error message
        details: Optional additional details
    """
    print(f"ERROR: {message}", file=sys.stderr)
    if details:
        print(f"  {details}", file=sys.stderr)


def load_setup_config(args) -> SetupConfig:
    """Load configuration from the --config file and INPUT_* variables."""
    return load_config(getattr(args, "config", None))


def build_acquirer(config: SetupConfig) -> ToolAcquirer:
    """Create a tool acquirer for the running machine."""
    return ToolAcquirer(
        config,
        detect_platform(),
        default_catalog(),
        GithubOutputSink(),
    )


__all__ = ["print_error", "load_setup_config", "build_acquirer"]
