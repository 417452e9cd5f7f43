"""
Acquire command implementation.

Installs the named tools, reusing cached copies when possible.
"""

import logging

from smtoolkit.cli.utils import build_acquirer, load_setup_config, print_error
from smtoolkit.core.exceptions import SmToolkitError

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the acquire command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for error or unsupported tool)
    """
    logger.debug(f"Arguments: {args}")

    try:
        config = load_setup_config(args)
        with build_acquirer(config) as acquirer:
            installed = acquirer.acquire_all(args.tools)
    except SmToolkitError as e:
        logger.error(f"Acquisition failed: {e}")
        print_error("Acquisition failed", str(e))
        return 1

    exit_code = 0
    for name in args.tools:
        path = installed.get(name)
        if path is None:
            print_error(f"{name} is not supported on this platform")
            exit_code = 1
        else:
            print(path)

    return exit_code
