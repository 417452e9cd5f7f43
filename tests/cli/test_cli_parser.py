"""
Tests for CLI argument parser.
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from smtoolkit.cli.parser import CLI


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_no_command_shows_help(self, capsys):
        """Test that running without command shows help."""
        result = CLI().run([])

        assert result == 1
        captured = capsys.readouterr()
        assert "usage:" in captured.out.lower()

    def test_version_flag(self, capsys):
        """Test --version flag."""
        with pytest.raises(SystemExit) as exc_info:
            CLI().run(["--version"])

        assert exc_info.value.code == 0
        assert "smtoolkit" in capsys.readouterr().out

    def test_global_options(self):
        args = CLI().parse_args(["-v", "--config", "smtoolkit.yaml", "setup"])

        assert args.verbose is True
        assert args.config == Path("smtoolkit.yaml")
        assert args.command == "setup"


class TestCommandParsing:
    """Test subcommand parsing."""

    def test_acquire_requires_tools(self):
        with pytest.raises(SystemExit):
            CLI().parse_args(["acquire"])

    def test_acquire(self):
        args = CLI().parse_args(["acquire", "smctl", "smpkcs11"])
        assert args.tools == ["smctl", "smpkcs11"]

    def test_versions_defaults(self):
        args = CLI().parse_args(["versions"])

        assert args.tools == []
        assert args.tool_cache_dir is None

    def test_versions_cache_dir(self):
        args = CLI().parse_args(["versions", "smctl", "--tool-cache-dir", "/opt/cache"])

        assert args.tools == ["smctl"]
        assert args.tool_cache_dir == Path("/opt/cache")


class TestDispatch:
    """Test command dispatch and error handling."""

    def test_dispatches_to_command_module(self):
        with patch("smtoolkit.cli.commands.setup.run", return_value=0) as run:
            assert CLI().run(["setup"]) == 0

        run.assert_called_once()
        assert run.call_args[0][0].command == "setup"

    def test_unexpected_error_returns_one(self):
        with patch("smtoolkit.cli.commands.setup.run", side_effect=RuntimeError("boom")):
            assert CLI().run(["-q", "setup"]) == 1

    def test_keyboard_interrupt(self):
        with patch("smtoolkit.cli.commands.setup.run", side_effect=KeyboardInterrupt):
            assert CLI().run(["setup"]) == 130
