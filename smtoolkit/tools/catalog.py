"""
Tool catalog: static metadata for every (tool, OS, architecture) combination.

Each supported combination has one immutable ``ToolMetadata`` entry that tells
the engine what to download, how it is packaged and which side effects it
needs. Lookups for unsupported combinations return the ``NotSupported``
sentinel rather than raising.

Usage:
    from smtoolkit.tools.catalog import default_catalog

    catalog = default_catalog()
    tool = catalog.lookup("smctl", OsKind.LINUX, "x64")
    if tool:
        print(tool.download_name)
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Union

from smtoolkit.core.platform import OsKind
from smtoolkit.platforms.base import ToolHook
from smtoolkit.platforms.macos import canonical_symlink_hook
from smtoolkit.platforms.windows import register_providers

SMCTL = "smctl"
SMTOOLS = "smtools"
SMPKCS11 = "smpkcs11"
SMCTK = "smctk"
SSM_SCD = "ssm-scd"


class ToolKind(Enum):
    """What the installed artifact is."""

    EXECUTABLE = "EXECUTABLE"
    LIBRARY = "LIBRARY"
    ARCHIVE = "ARCHIVE"


class ArchiveKind(Enum):
    """How the downloaded artifact is packaged."""

    NONE = "FILE"
    DMG = "DMG"
    MSI = "MSI"
    ZIP = "ZIP"
    TAR = "TAR"


def qualified_key(name: str, os_kind: OsKind, arch: str) -> str:
    """
    Catalog key for a tool on a platform.

    Example:
        >>> qualified_key("smctl", OsKind.LINUX, "x64")
        'smctl-linux-x64'
    """
    return f"{name}-{os_kind.key}-{arch}"


@dataclass(frozen=True)
class ToolMetadata:
    """
    Immutable description of one tool on one platform.

    Attributes:
        name: Canonical tool name (local cache directory, remote cache key)
        platform_key: '<os>-<arch>' this entry applies to
        download_name: File name on the CDN
        installed_file_name: File name inside the installed directory
        tool_kind: Executable, library or archive bundle
        archive_kind: Packaging of the downloaded file
        needs_execute_bit: Set 0o755 on the installed files
        needs_pkcs11_config: Generate the PKCS#11 configuration file
        exploded_directory_name: Sub-directory of the unpacked archive that
            is the tool root
        version_flag: Flag printing the tool version, checked after install
        post_install_hook: Runs after every acquisition
        cache_hit_hook: Runs after a remote cache hit
    """

    name: str
    platform_key: str
    download_name: str
    installed_file_name: str
    tool_kind: ToolKind
    archive_kind: ArchiveKind = ArchiveKind.NONE
    needs_execute_bit: bool = False
    needs_pkcs11_config: bool = False
    exploded_directory_name: Optional[str] = None
    version_flag: Optional[str] = None
    post_install_hook: Optional[ToolHook] = None
    cache_hit_hook: Optional[ToolHook] = None

    @property
    def qualified_key(self) -> str:
        return f"{self.name}-{self.platform_key}"

    @property
    def is_archived(self) -> bool:
        return self.archive_kind is not ArchiveKind.NONE


class NotSupported:
    """Falsy lookup result for combinations without a catalog entry."""

    __slots__ = ("key",)

    def __init__(self, key: str):
        self.key = key

    def __bool__(self) -> bool:
        return False

    def __eq__(self, other) -> bool:
        return isinstance(other, NotSupported) and other.key == self.key

    def __hash__(self) -> int:
        return hash(("NotSupported", self.key))

    def __repr__(self) -> str:
        return f"NotSupported({self.key!r})"


LookupResult = Union[ToolMetadata, NotSupported]


class ToolCatalog:
    """Read-only mapping from qualified keys to tool metadata."""

    def __init__(self, entries: Mapping[str, ToolMetadata]):
        for key, tool in entries.items():
            if key != tool.qualified_key:
                raise ValueError(f"Catalog key {key} does not match {tool.qualified_key}")
        self._entries = MappingProxyType(dict(entries))

    def lookup(self, name: str, os_kind: OsKind, arch: str) -> LookupResult:
        """
        Find the metadata for a tool on a platform.

        Args:
            name: Tool name (e.g., 'smctl')
            os_kind: Operating system
            arch: Architecture key ('x64', 'arm64')

        Returns:
            ToolMetadata, or a falsy NotSupported carrying the key
        """
        key = qualified_key(name, os_kind, arch)
        return self._entries.get(key, NotSupported(key))

    def keys(self) -> List[str]:
        return sorted(self._entries)

    def tools_for(self, os_kind: OsKind, arch: str) -> List[ToolMetadata]:
        """All tools published for a platform."""
        platform_key = f"{os_kind.key}-{arch}"
        return [
            tool
            for key, tool in sorted(self._entries.items())
            if tool.platform_key == platform_key
        ]

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[ToolMetadata]:
        return iter(self._entries[key] for key in sorted(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


def _mac_entries(arch: str) -> List[ToolMetadata]:
    platform_key = f"{OsKind.MACOS.key}-{arch}"
    return [
        ToolMetadata(
            name=SMCTL,
            platform_key=platform_key,
            download_name="smctl-mac-x64.dmg",
            installed_file_name="smctl-mac-x64",
            tool_kind=ToolKind.EXECUTABLE,
            archive_kind=ArchiveKind.DMG,
            version_flag="-v",
            post_install_hook=canonical_symlink_hook("smctl-mac-x64", SMCTL),
        ),
        ToolMetadata(
            name=SMPKCS11,
            platform_key=platform_key,
            download_name="smpkcs11.dylib.dmg",
            installed_file_name="smpkcs11.dylib",
            tool_kind=ToolKind.LIBRARY,
            archive_kind=ArchiveKind.DMG,
            needs_pkcs11_config=True,
        ),
        ToolMetadata(
            name=SMCTK,
            platform_key=platform_key,
            download_name="DigiCert SSM Signing Clients.zip",
            installed_file_name="smctk-apple-any",
            tool_kind=ToolKind.ARCHIVE,
            archive_kind=ArchiveKind.ZIP,
        ),
        ToolMetadata(
            name=SSM_SCD,
            platform_key=platform_key,
            download_name="ssm-scd-x64.dmg",
            installed_file_name="ssm-scd-x64",
            tool_kind=ToolKind.EXECUTABLE,
            archive_kind=ArchiveKind.DMG,
            version_flag="-v",
        ),
    ]


def default_catalog() -> ToolCatalog:
    """Build the catalog of published DigiCert signing tools."""
    windows = f"{OsKind.WINDOWS.key}-x64"
    linux = f"{OsKind.LINUX.key}-x64"

    tools: List[ToolMetadata] = [
        ToolMetadata(
            name=SMCTL,
            platform_key=windows,
            download_name="smctl.exe",
            installed_file_name="smctl.exe",
            tool_kind=ToolKind.EXECUTABLE,
            version_flag="-v",
        ),
        ToolMetadata(
            name=SMCTL,
            platform_key=linux,
            download_name="smctl",
            installed_file_name="smctl",
            tool_kind=ToolKind.EXECUTABLE,
            needs_execute_bit=True,
            version_flag="-v",
        ),
        ToolMetadata(
            name=SMTOOLS,
            platform_key=windows,
            download_name="smtools-windows-x64.msi",
            installed_file_name="smtools-windows-x64.msi",
            tool_kind=ToolKind.ARCHIVE,
            archive_kind=ArchiveKind.MSI,
            needs_pkcs11_config=True,
            cache_hit_hook=register_providers,
        ),
        ToolMetadata(
            name=SMTOOLS,
            platform_key=linux,
            download_name="smtools-linux-x64.tar.gz",
            installed_file_name="smtools-linux-x64.tar.gz",
            tool_kind=ToolKind.ARCHIVE,
            archive_kind=ArchiveKind.TAR,
            needs_execute_bit=True,
            needs_pkcs11_config=True,
            exploded_directory_name="smtools-linux-x64",
        ),
    ]
    tools.extend(_mac_entries("x64"))
    tools.extend(_mac_entries("arm64"))

    entries: Dict[str, ToolMetadata] = {tool.qualified_key: tool for tool in tools}
    return ToolCatalog(entries)


__all__ = [
    "SMCTL",
    "SMTOOLS",
    "SMPKCS11",
    "SMCTK",
    "SSM_SCD",
    "ToolKind",
    "ArchiveKind",
    "ToolMetadata",
    "NotSupported",
    "LookupResult",
    "ToolCatalog",
    "qualified_key",
    "default_catalog",
]
