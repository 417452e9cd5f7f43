"""
Tool acquisition and caching.

Catalog, version resolution, extraction, local and remote caches and the
orchestrator tying them together.
"""

from .catalog import (
    ArchiveKind,
    NotSupported,
    ToolCatalog,
    ToolKind,
    ToolMetadata,
    default_catalog,
)
from .version import VersionResolution, VersionResolver
from .extraction import ArchiveDispatcher, ExtractionContext
from .local_cache import LocalToolCache
from .remote_cache import (
    DirectoryRemoteCache,
    HttpRemoteCache,
    NullRemoteCache,
    RemoteCacheProvider,
    create_remote_cache,
)
from .acquisition import ToolAcquirer, remote_cache_key
from .setup import setup_tools

__all__ = [
    "ArchiveKind",
    "NotSupported",
    "ToolCatalog",
    "ToolKind",
    "ToolMetadata",
    "default_catalog",
    "VersionResolution",
    "VersionResolver",
    "ArchiveDispatcher",
    "ExtractionContext",
    "LocalToolCache",
    "DirectoryRemoteCache",
    "HttpRemoteCache",
    "NullRemoteCache",
    "RemoteCacheProvider",
    "create_remote_cache",
    "ToolAcquirer",
    "remote_cache_key",
    "setup_tools",
]
