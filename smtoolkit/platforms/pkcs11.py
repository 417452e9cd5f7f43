"""
PKCS#11 configuration file generation.

Java based signers (jarsigner, apksigner) load the DigiCert PKCS#11 library
through a small properties file. It is written next to the library and its
location is published as the ``PKCS11_CONFIG`` output.
"""

import logging
from pathlib import Path

from smtoolkit.core.outputs import OutputSink
from smtoolkit.core.platform import OsKind

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "pkc11Properties.cfg"
LIBRARY_BASE_NAME = "smpkcs11"
PROVIDER_NAME = "DigiCert Software Trust Manager"
OUTPUT_NAME = "PKCS11_CONFIG"


def render_pkcs11_config(library_path: Path) -> str:
    """Render the PKCS#11 provider configuration for library_path."""
    return (
        f'name="{PROVIDER_NAME}"\n'
        f"library={library_path}\n"
        "slotListIndex=0\n"
    )


def write_pkcs11_config(tool_path: Path, os_kind: OsKind, outputs: OutputSink) -> Path:
    """
    Write the PKCS#11 configuration file unless it already exists.

    Args:
        tool_path: Directory holding the PKCS#11 library
        os_kind: Operating system (selects the library suffix)
        outputs: Sink receiving the PKCS11_CONFIG output

    Returns:
        Path to the configuration file

    Example:
        >>> write_pkcs11_config(Path("/opt/smtools"), OsKind.LINUX, sink)
        PosixPath('/opt/smtools/pkc11Properties.cfg')
    """
    cfg_path = Path(tool_path) / CONFIG_FILE_NAME
    logger.info(f"Setting up PKCS#11 configuration file @ {cfg_path}")

    if not cfg_path.exists():
        library_path = Path(tool_path) / f"{LIBRARY_BASE_NAME}{os_kind.library_suffix}"
        cfg_path.write_text(render_pkcs11_config(library_path), encoding="utf-8")
    else:
        logger.debug(f"Keeping existing PKCS#11 configuration {cfg_path}")

    published = str(cfg_path)
    if os_kind is OsKind.WINDOWS:
        published = published.replace("\\", "\\\\")
    outputs.set_output(OUTPUT_NAME, published)

    return cfg_path


__all__ = [
    "CONFIG_FILE_NAME",
    "OUTPUT_NAME",
    "render_pkcs11_config",
    "write_pkcs11_config",
]
