"""
Setup entry point: acquire the toolset a signing job needs on this platform.

- simple-signing-mode: only ``smctl``
- Windows/Linux: the ``smtools`` bundle
- macOS: ``smctl``, ``smctk``, ``smpkcs11`` and ``ssm-scd``, concurrently
"""

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from smtoolkit.config.parser import SetupConfig
from smtoolkit.core.platform import OsKind, PlatformInfo, RunnerType, detect_runner_type
from smtoolkit.tools.acquisition import ToolAcquirer
from smtoolkit.tools.catalog import SMCTK, SMCTL, SMPKCS11, SMTOOLS, SSM_SCD

logger = logging.getLogger(__name__)

MACOS_TOOLS = (SMCTL, SMCTK, SMPKCS11, SSM_SCD)


def tools_for_setup(config: SetupConfig, platform: PlatformInfo) -> List[str]:
    """Names of the tools a setup run acquires."""
    if config.simple_signing_mode:
        return [SMCTL]
    if platform.os is OsKind.MACOS:
        return list(MACOS_TOOLS)
    return [SMTOOLS]


def setup_tools(
    config: SetupConfig,
    acquirer: ToolAcquirer,
    platform: PlatformInfo,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Optional[Path]]:
    """
    Acquire every tool required on this platform.

    Args:
        config: Setup configuration
        acquirer: Tool acquirer
        platform: Current platform
        environ: Environment mapping (default: os.environ)

    Returns:
        Mapping of tool name to installed path (None if not supported)
    """
    runner_type = detect_runner_type(environ)
    logger.info(f"Runner type: {runner_type.value}")
    logger.info(f"Remote cache available: {acquirer.remote_cache.is_available()}")

    if runner_type is RunnerType.GITHUB_RUNNER and not config.use_github_caching_service:
        logger.info(
            "Consider enabling use-github-caching-service to reuse installed tools "
            "between runs"
        )

    names = tools_for_setup(config, platform)
    if config.simple_signing_mode:
        logger.info("Simple signing mode, setting up smctl only")
        return {SMCTL: acquirer.acquire(SMCTL)}

    if len(names) == 1:
        return {names[0]: acquirer.acquire(names[0])}
    return acquirer.acquire_all(names)


__all__ = ["MACOS_TOOLS", "tools_for_setup", "setup_tools"]
