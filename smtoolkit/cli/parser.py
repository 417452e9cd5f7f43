"""
smtoolkit CLI argument parser.

This module implements the command-line interface for smtoolkit using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from smtoolkit import __version__

logger = logging.getLogger(__name__)


class CLI:
    """smtoolkit command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="smtoolkit",
            description="smtoolkit - DigiCert Software Trust Manager toolset setup",
            epilog='Use "smtoolkit COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"smtoolkit {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to a YAML configuration file (INPUT_* variables take precedence)",
        )

        # Subcommands
        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_setup_command(subparsers)
        self._add_acquire_command(subparsers)
        self._add_versions_command(subparsers)

        return parser

    def _add_setup_command(self, subparsers):
        """Add 'setup' subcommand."""
        subparsers.add_parser(
            "setup",
            help="Install the signing toolset for this platform",
            description=(
                "Install the signing tools this platform needs: smtools on "
                "Windows/Linux, smctl/smctk/smpkcs11/ssm-scd on macOS, or only "
                "smctl in simple signing mode"
            ),
        )

    def _add_acquire_command(self, subparsers):
        """Add 'acquire' subcommand."""
        parser = subparsers.add_parser(
            "acquire",
            help="Install specific tools",
            description="Download (or reuse from cache) the named tools",
        )
        parser.add_argument(
            "tools",
            nargs="+",
            metavar="TOOL",
            help="Tool names (e.g., smctl, smtools, smpkcs11)",
        )

    def _add_versions_command(self, subparsers):
        """Add 'versions' subcommand."""
        parser = subparsers.add_parser(
            "versions",
            help="List cached tool versions",
            description="List the versions present in the local tool cache",
        )
        parser.add_argument(
            "tools",
            nargs="*",
            metavar="TOOL",
            help="Tool names (default: every tool published for this platform)",
        )
        parser.add_argument(
            "--tool-cache-dir",
            type=Path,
            metavar="PATH",
            help="Tool cache root (default: RUNNER_TOOL_CACHE or ~/.smtoolkit/tool-cache)",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        # Configure logging
        self._configure_logging(parsed_args)

        # Check if command specified
        if not parsed_args.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except Exception as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        command_map = {
            "setup": "smtoolkit.cli.commands.setup",
            "acquire": "smtoolkit.cli.commands.acquire",
            "versions": "smtoolkit.cli.commands.versions",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
