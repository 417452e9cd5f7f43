"""
Key/value output sinks.

Later pipeline steps need to know where things were installed: the engine
publishes values such as ``PKCS11_CONFIG`` and extends the PATH with tool
directories through an ``OutputSink``.

- GithubOutputSink: appends to the files named by GITHUB_OUTPUT/GITHUB_PATH
- MemoryOutputSink: records everything in memory (tests, embedding)
"""

import logging
import os
import threading
import uuid
from pathlib import Path
from typing import Dict, List, MutableMapping, Optional, Protocol, Union, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class OutputSink(Protocol):
    """Destination for values published by the engine."""

    def set_output(self, name: str, value: str) -> None:
        """Publish a named output value."""
        ...

    def add_path(self, path: Union[str, Path]) -> None:
        """Prepend a directory to the PATH seen by later steps."""
        ...


class MemoryOutputSink:
    """Output sink that keeps published values in memory."""

    def __init__(self):
        self.outputs: Dict[str, str] = {}
        self.paths: List[str] = []
        self._lock = threading.Lock()

    def set_output(self, name: str, value: str) -> None:
        with self._lock:
            self.outputs[name] = value

    def add_path(self, path: Union[str, Path]) -> None:
        with self._lock:
            self.paths.append(str(path))


class GithubOutputSink:
    """
    Output sink following the GitHub Actions file commands.

    Outputs are appended to the file named by ``GITHUB_OUTPUT`` and PATH
    entries to the file named by ``GITHUB_PATH``. When those variables are
    not set the values are logged, and PATH entries are applied to the
    current process environment.
    """

    def __init__(self, environ: Optional[MutableMapping[str, str]] = None):
        """
        Initialize sink.

        Args:
            environ: Environment mapping (default: os.environ)
        """
        self.environ = os.environ if environ is None else environ
        self._lock = threading.Lock()

    def set_output(self, name: str, value: str) -> None:
        output_file = self.environ.get("GITHUB_OUTPUT")
        if not output_file:
            logger.info(f"Output {name}={value}")
            return

        with self._lock:
            with open(output_file, "a", encoding="utf-8", newline="") as f:
                f.write(self._format_output(name, value))

    def add_path(self, path: Union[str, Path]) -> None:
        path = str(path)
        with self._lock:
            path_file = self.environ.get("GITHUB_PATH")
            if path_file:
                with open(path_file, "a", encoding="utf-8", newline="") as f:
                    f.write(f"{path}\n")
            current = self.environ.get("PATH", "")
            self.environ["PATH"] = f"{path}{os.pathsep}{current}" if current else path

    @staticmethod
    def _format_output(name: str, value: str) -> str:
        if "\n" not in value:
            return f"{name}={value}\n"
        # Multiline values use the heredoc form
        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        return f"{name}<<{delimiter}\n{value}\n{delimiter}\n"


__all__ = ["OutputSink", "MemoryOutputSink", "GithubOutputSink"]
