"""
Unit tests for filesystem utilities.
"""

import io
import os
import stat
import tarfile
import zipfile

import pytest

from smtoolkit.core.exceptions import ExtractionError
from smtoolkit.core.filesystem import (
    ArchiveExtractionError,
    FilesystemError,
    InsecureArchiveError,
    extract_tar,
    extract_zip,
    is_relative_to,
    recursive_copy,
    safe_rmtree,
    walk_tree,
)

posix_only = pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")


def _zip_entry(zf, name, data, mode=0o644):
    info = zipfile.ZipInfo(name)
    info.external_attr = (stat.S_IFREG | mode) << 16
    zf.writestr(info, data)


class TestWalkTree:
    """Test walk_tree function."""

    def test_walk_tree_prefixes(self, temp_dir):
        """Test directories and files are listed recursively with prefixes."""
        (temp_dir / "bin").mkdir()
        (temp_dir / "bin" / "smctl").write_text("x")
        (temp_dir / "README").write_text("x")

        entries = walk_tree(temp_dir)

        assert f"[F]{temp_dir / 'README'}" in entries
        assert f"[D]{temp_dir / 'bin'}" in entries
        assert f"[F]{temp_dir / 'bin' / 'smctl'}" in entries
        assert entries.index(f"[D]{temp_dir / 'bin'}") < entries.index(
            f"[F]{temp_dir / 'bin' / 'smctl'}"
        )

    def test_walk_missing_directory(self, temp_dir):
        """Test missing directory yields no entries."""
        assert walk_tree(temp_dir / "missing") == []


class TestExtractZip:
    """Test extract_zip function."""

    def test_extract_zip(self, temp_dir):
        """Test members are extracted."""
        archive = temp_dir / "tools.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            _zip_entry(zf, "smctk-apple-any/smctk", b"tool")

        extract_zip(archive, temp_dir / "out")

        assert (temp_dir / "out" / "smctk-apple-any" / "smctk").read_bytes() == b"tool"

    @posix_only
    def test_extract_zip_keeps_mode(self, temp_dir):
        """Test Unix permission bits stored in the archive are applied."""
        archive = temp_dir / "tools.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            _zip_entry(zf, "run.sh", b"#!/bin/sh\n", mode=0o755)

        extract_zip(archive, temp_dir / "out")

        assert stat.S_IMODE((temp_dir / "out" / "run.sh").stat().st_mode) == 0o755

    def test_extract_zip_traversal_blocked(self, temp_dir):
        """Test members escaping the destination are rejected."""
        archive = temp_dir / "evil.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            _zip_entry(zf, "../evil.txt", b"x")

        with pytest.raises(InsecureArchiveError):
            extract_zip(archive, temp_dir / "out")

        assert not (temp_dir / "evil.txt").exists()

    def test_extract_invalid_zip(self, temp_dir):
        """Test corrupt archives raise ArchiveExtractionError."""
        archive = temp_dir / "broken.zip"
        archive.write_bytes(b"not a zip")

        with pytest.raises(ArchiveExtractionError, match="Invalid zip file"):
            extract_zip(archive, temp_dir / "out")

    def test_missing_archive(self, temp_dir):
        """Test missing archive raises an extraction error."""
        with pytest.raises(ExtractionError):
            extract_zip(temp_dir / "missing.zip", temp_dir / "out")


class TestExtractTar:
    """Test extract_tar function."""

    def test_extract_tar_gz(self, temp_dir):
        """Test gzip tarballs are extracted."""
        source = temp_dir / "smtools-linux-x64"
        source.mkdir()
        (source / "smctl").write_text("tool")
        archive = temp_dir / "smtools.tar.gz"
        with tarfile.open(archive, "w:gz") as tar:
            tar.add(source, arcname="smtools-linux-x64")

        extract_tar(archive, temp_dir / "out")

        assert (temp_dir / "out" / "smtools-linux-x64" / "smctl").read_text() == "tool"

    def test_extract_tar_traversal_blocked(self, temp_dir):
        """Test members escaping the destination are rejected."""
        archive = temp_dir / "evil.tar.gz"
        data = b"x"
        with tarfile.open(archive, "w:gz") as tar:
            info = tarfile.TarInfo("../evil.txt")
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))

        with pytest.raises(InsecureArchiveError):
            extract_tar(archive, temp_dir / "out")

    def test_extract_invalid_tar(self, temp_dir):
        """Test corrupt archives raise ArchiveExtractionError."""
        archive = temp_dir / "broken.tar.gz"
        archive.write_bytes(b"not a tarball")

        with pytest.raises(ArchiveExtractionError):
            extract_tar(archive, temp_dir / "out")


class TestFileOperations:
    """Test safe file operations."""

    def test_is_relative_to(self, temp_dir):
        assert is_relative_to(temp_dir / "a" / "b", temp_dir)
        assert not is_relative_to(temp_dir.parent, temp_dir)

    def test_recursive_copy_merges(self, temp_dir):
        """Test copying into an existing destination merges trees."""
        source = temp_dir / "src"
        (source / "lib").mkdir(parents=True)
        (source / "lib" / "smpkcs11.so").write_text("lib")
        destination = temp_dir / "dst"
        destination.mkdir()
        (destination / "existing").write_text("keep")

        recursive_copy(source, destination)

        assert (destination / "lib" / "smpkcs11.so").read_text() == "lib"
        assert (destination / "existing").read_text() == "keep"

    def test_recursive_copy_missing_source(self, temp_dir):
        with pytest.raises(FilesystemError, match="does not exist"):
            recursive_copy(temp_dir / "missing", temp_dir / "dst")

    def test_safe_rmtree(self, temp_dir):
        """Test directory removal and prefix guard."""
        target = temp_dir / "tree"
        (target / "sub").mkdir(parents=True)

        safe_rmtree(target, require_prefix=temp_dir)
        assert not target.exists()

        with pytest.raises(ValueError, match="Refusing to delete"):
            safe_rmtree(temp_dir, require_prefix=temp_dir / "elsewhere")
