"""
Platform specific post-install side effects.

Windows provider registration, macOS disk images and symlinks, Unix execute
bits and PKCS#11 configuration files.
"""

from .base import HookContext, ToolHook
from .macos import canonical_symlink_hook, mount_dmg, unmount_dmg
from .pkcs11 import write_pkcs11_config
from .unix import normalize_execute_bits
from .windows import register_providers

__all__ = [
    "HookContext",
    "ToolHook",
    "canonical_symlink_hook",
    "mount_dmg",
    "unmount_dmg",
    "write_pkcs11_config",
    "normalize_execute_bits",
    "register_providers",
]
