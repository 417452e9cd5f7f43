"""
Windows cryptographic provider registration.

After the smtools MSI bundle is available, the DigiCert KSP and CSP providers
have to be registered with the system:

1. ``smctl windows ksp register``
2. Provider DLLs copied into ``System32`` (64-bit) and ``SysWOW64`` (32-bit)
3. CSP registry entries added for both provider names under both hives

The registry entries are written by a generated batch script that stops at
the first failing ``reg add``.
"""

import logging
import shutil
from pathlib import Path
from typing import List

from smtoolkit.core.directory import create_secure_temp_dir, random_file_name
from smtoolkit.core.exceptions import ProviderRegistrationError
from smtoolkit.core.filesystem import FilesystemError, safe_rmtree
from smtoolkit.platforms.base import HookContext

logger = logging.getLogger(__name__)

SMCTL_EXECUTABLE = "smctl.exe"

CSP_PROVIDER_NAMES = (
    "DigiCert Software Trust Manager CSP",
    "DigiCert Secure Software Manager CSP",
)

PROVIDER_REGISTRY_ROOTS = (
    r"HKEY_LOCAL_MACHINE\SOFTWARE\WOW6432Node\Microsoft\Cryptography\Defaults\Provider",
    r"HKEY_LOCAL_MACHINE\SOFTWARE\Microsoft\Cryptography\Defaults\Provider",
)

ERRORLEVEL_GUARD = "if %errorlevel% neq 0 exit /b %errorlevel%"

# (source file in the tool directory, system directory, installed name)
PROVIDER_LIBRARIES = (
    ("smksp-x64.dll", "System32", "smksp.dll"),
    ("smksp-x86.dll", "SysWOW64", "smksp.dll"),
    ("ssmcsp-x64.dll", "System32", "ssmcsp.dll"),
    ("ssmcsp-x86.dll", "SysWOW64", "ssmcsp.dll"),
)


def build_registration_script() -> str:
    """
    Build the batch script registering the CSP providers.

    Returns:
        Batch file content with an errorlevel guard after every command
    """
    lines: List[str] = ["@echo off"]
    for provider in CSP_PROVIDER_NAMES:
        for root in PROVIDER_REGISTRY_ROOTS:
            key = f"{root}\\{provider}"
            commands = [
                f'reg add "{key}" /f',
                f'reg add "{key}" /v "SigInFile" /t REG_DWORD /d 0 /f',
                f'reg add "{key}" /v "Type" /t REG_DWORD /d 1 /f',
                f'reg add "{key}" /v "Image Path" /t REG_SZ /d "ssmcsp.dll" /f',
            ]
            for command in commands:
                lines.append(command)
                lines.append(ERRORLEVEL_GUARD)
    return "\r\n".join(lines) + "\r\n"


def copy_provider_libraries(tool_path: Path, system_root: Path) -> None:
    """
    Copy the KSP/CSP provider DLLs into the system directories.

    Args:
        tool_path: Installed smtools directory
        system_root: Windows SystemRoot directory
    """
    for source_name, system_dir, target_name in PROVIDER_LIBRARIES:
        source = tool_path / source_name
        target = system_root / system_dir / target_name
        logger.debug(f"Copying {source} to {target}")
        shutil.copyfile(source, target)


def register_providers(tool_path: Path, ctx: HookContext) -> None:
    """
    Register the DigiCert KSP and CSP providers on the system.

    Args:
        tool_path: Installed smtools directory
        ctx: Hook collaborators (runner, temp root, SystemRoot)

    Raises:
        ProviderRegistrationError: If SystemRoot is unknown or the registry
            script exits with a non-zero code
        CommandError: If ``smctl windows ksp register`` fails
        OSError: If a provider library cannot be copied
    """
    if ctx.system_root is None:
        raise ProviderRegistrationError(-1, "", "SystemRoot is not set")

    setup_dir = create_secure_temp_dir(ctx.temp_root, prefix="csp-setup-")
    try:
        script = setup_dir / f"{random_file_name()}.bat"
        script.write_text(build_registration_script(), encoding="utf-8")

        logger.info("Registering KSP and CSP on the system")
        ctx.runner.run(tool_path / SMCTL_EXECUTABLE, ["windows", "ksp", "register"])

        copy_provider_libraries(tool_path, ctx.system_root)

        result = ctx.runner.run("cmd.exe", ["/c", str(script)], check=False)
        if not result.ok:
            raise ProviderRegistrationError(result.exit_code, result.stdout, result.stderr)

        logger.info("KSP and CSP registration complete")
    finally:
        try:
            safe_rmtree(setup_dir)
        except FilesystemError as e:
            logger.warning(f"Failed to remove {setup_dir}: {e}")


__all__ = [
    "CSP_PROVIDER_NAMES",
    "PROVIDER_LIBRARIES",
    "build_registration_script",
    "copy_provider_libraries",
    "register_providers",
]
