"""
Setup command implementation.

Installs the signing toolset required on this platform.
"""

import logging

from smtoolkit.cli.utils import build_acquirer, load_setup_config, print_error
from smtoolkit.core.exceptions import SmToolkitError
from smtoolkit.core.platform import detect_platform
from smtoolkit.tools.setup import setup_tools

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the setup command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for error)
    """
    logger.debug(f"Arguments: {args}")

    try:
        config = load_setup_config(args)
        with build_acquirer(config) as acquirer:
            installed = setup_tools(config, acquirer, detect_platform())
    except SmToolkitError as e:
        logger.error(f"Setup failed: {e}")
        print_error("Setup failed", str(e))
        return 1

    for name, path in installed.items():
        if path is None:
            logger.warning(f"{name} is not available on this platform")
        else:
            logger.info(f"{name}: {path}")

    return 0
