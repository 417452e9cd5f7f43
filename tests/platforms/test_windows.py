"""
Tests for Windows provider registration.
"""

import pytest

from smtoolkit.core.exceptions import ProviderRegistrationError
from smtoolkit.core.process import CommandError
from smtoolkit.platforms.base import HookContext
from smtoolkit.platforms.windows import (
    CSP_PROVIDER_NAMES,
    ERRORLEVEL_GUARD,
    PROVIDER_LIBRARIES,
    build_registration_script,
    register_providers,
)


@pytest.fixture
def tool_path(temp_dir):
    path = temp_dir / "smtools"
    path.mkdir()
    for source_name, _, _ in PROVIDER_LIBRARIES:
        (path / source_name).write_text(source_name)
    return path


@pytest.fixture
def system_root(temp_dir):
    root = temp_dir / "Windows"
    (root / "System32").mkdir(parents=True)
    (root / "SysWOW64").mkdir(parents=True)
    return root


@pytest.fixture
def ctx(fake_runner, temp_dir, system_root):
    temp_root = temp_dir / "tmp"
    temp_root.mkdir()
    return HookContext(runner=fake_runner, temp_root=temp_root, system_root=system_root)


class TestRegistrationScript:
    """Test build_registration_script function."""

    def test_script_layout(self):
        lines = build_registration_script().split("\r\n")

        assert lines[0] == "@echo off"
        commands = [line for line in lines if line.startswith("reg add")]
        assert len(commands) == 16
        # Every command is followed by the errorlevel guard
        for index, line in enumerate(lines):
            if line.startswith("reg add"):
                assert lines[index + 1] == ERRORLEVEL_GUARD

    def test_both_providers_and_hives(self):
        script = build_registration_script()

        for provider in CSP_PROVIDER_NAMES:
            assert f"WOW6432Node\\Microsoft\\Cryptography\\Defaults\\Provider\\{provider}" in script
            assert f"SOFTWARE\\Microsoft\\Cryptography\\Defaults\\Provider\\{provider}" in script
        assert '/v "Image Path" /t REG_SZ /d "ssmcsp.dll" /f' in script


class TestRegisterProviders:
    """Test register_providers function."""

    def test_registration(self, tool_path, ctx, fake_runner, system_root):
        register_providers(tool_path, ctx)

        assert fake_runner.calls[0] == ("smctl.exe", ["windows", "ksp", "register"])
        program, args = fake_runner.calls[1]
        assert program == "cmd.exe"
        assert args[0] == "/c"
        assert args[1].endswith(".bat")

        assert (system_root / "System32" / "smksp.dll").read_text() == "smksp-x64.dll"
        assert (system_root / "SysWOW64" / "smksp.dll").read_text() == "smksp-x86.dll"
        assert (system_root / "System32" / "ssmcsp.dll").read_text() == "ssmcsp-x64.dll"
        assert (system_root / "SysWOW64" / "ssmcsp.dll").read_text() == "ssmcsp-x86.dll"

        # The scratch directory holding the script is removed
        assert list(ctx.temp_root.iterdir()) == []

    def test_script_failure(self, tool_path, ctx, fake_runner):
        fake_runner.on("cmd.exe", exit_code=5, stdout="", stderr="Access is denied.")

        with pytest.raises(ProviderRegistrationError) as exc_info:
            register_providers(tool_path, ctx)

        assert exc_info.value.exit_code == 5
        assert exc_info.value.stderr == "Access is denied."
        assert list(ctx.temp_root.iterdir()) == []

    def test_ksp_register_failure(self, tool_path, ctx, fake_runner):
        fake_runner.on("smctl.exe", exit_code=1)

        with pytest.raises(CommandError):
            register_providers(tool_path, ctx)

        assert fake_runner.programs == ["smctl.exe"]

    def test_missing_system_root(self, tool_path, fake_runner, temp_dir):
        ctx = HookContext(runner=fake_runner, temp_root=temp_dir)

        with pytest.raises(ProviderRegistrationError, match="SystemRoot is not set"):
            register_providers(tool_path, ctx)

        assert fake_runner.calls == []
