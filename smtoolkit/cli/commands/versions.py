"""
Versions command implementation.

Lists the tool versions present in the local tool cache. Does not need the
CDN configuration.
"""

import logging

from smtoolkit.core.directory import get_tool_cache_dir
from smtoolkit.core.platform import detect_platform
from smtoolkit.tools.catalog import default_catalog
from smtoolkit.tools.local_cache import LocalToolCache

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the versions command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (always 0)
    """
    platform_info = detect_platform()
    root = args.tool_cache_dir or get_tool_cache_dir()
    cache = LocalToolCache(root, platform_info.arch)

    names = args.tools
    if not names:
        published = default_catalog().tools_for(platform_info.os, platform_info.arch)
        names = sorted({tool.name for tool in published})

    logger.debug(f"Tool cache root: {root}")
    for name in names:
        versions = cache.find_all_versions(name)
        if not versions:
            print(f"{name}: (none)")
            continue
        print(f"{name}:")
        for version in versions:
            print(f"  {version}  {cache.entry_dir(name, version)}")

    return 0
