"""
Unit tests for the archive extraction dispatcher.
"""

import codecs
import shutil
import tarfile
import zipfile
from pathlib import Path

import pytest

from smtoolkit.core.exceptions import DiskImageError, InstallerError
from smtoolkit.core.filesystem import ArchiveExtractionError
from smtoolkit.core.process import CommandResult
from smtoolkit.core.platform import OsKind
from smtoolkit.tools.catalog import default_catalog
from smtoolkit.tools.extraction import (
    ArchiveDispatcher,
    ExtractionContext,
    read_installer_log,
)


def _tool(name, os_kind, arch="x64"):
    return default_catalog().lookup(name, os_kind, arch)


def _fake_hdiutil(contents):
    """Handler that simulates attaching an image holding ``contents``."""

    def handler(args):
        if args[0] == "attach":
            volume = args[args.index("-mountpoint") + 1]
            Path(volume).mkdir(parents=True)
            for name, data in contents.items():
                (Path(volume) / name).write_text(data)
        elif args[0] == "detach":
            shutil.rmtree(args[1])
        return CommandResult(0)

    return handler


@pytest.fixture
def dispatcher(fake_runner, temp_dir):
    return ArchiveDispatcher(fake_runner, temp_dir / "tmp", volumes_root=temp_dir / "Volumes")


@pytest.fixture
def downloaded(temp_dir):
    path = temp_dir / "F_download"
    path.write_bytes(b"binary")
    return path


class TestExtractionContext:
    """Test ExtractionContext class."""

    def test_release_runs_once(self, temp_dir):
        releases = []
        ctx = ExtractionContext(temp_dir, lambda: releases.append(1))

        ctx.release()
        ctx.release()

        assert releases == [1]

    def test_with_contents_releases_on_error(self, temp_dir):
        releases = []
        ctx = ExtractionContext(temp_dir, lambda: releases.append(1))

        def callback(path):
            raise RuntimeError("store failed")

        with pytest.raises(RuntimeError, match="store failed"):
            ctx.with_contents(callback)

        assert releases == [1]

    def test_context_manager(self, temp_dir):
        releases = []
        with ExtractionContext(temp_dir, lambda: releases.append(1)) as ctx:
            assert ctx.path == temp_dir

        assert releases == [1]


class TestPlainFile:
    """Test artifacts that are not archived."""

    def test_copied_under_installed_name(self, dispatcher, downloaded):
        tool = _tool("smctl", OsKind.LINUX)
        seen = {}

        path = dispatcher.extract(
            tool, downloaded, lambda p: seen.update(data=(p / "smctl").read_bytes())
        )

        assert seen["data"] == b"binary"
        assert path.name.startswith("D_")
        assert not path.exists()


class TestDiskImage:
    """Test DMG artifacts."""

    def test_mount_and_detach(self, dispatcher, fake_runner, downloaded, temp_dir):
        fake_runner.on("hdiutil", _fake_hdiutil({"smctl-mac-x64": "tool"}))
        tool = _tool("smctl", OsKind.MACOS)
        seen = []

        volume = dispatcher.extract(
            tool, downloaded, lambda p: seen.append((p / "smctl-mac-x64").read_text())
        )

        assert seen == ["tool"]
        assert volume.parent == temp_dir / "Volumes"
        attach, detach = fake_runner.calls_to("hdiutil")
        assert attach == ["attach", str(downloaded), "-mountpoint", str(volume)]
        assert detach == ["detach", str(volume)]

    def test_detach_after_callback_failure(self, dispatcher, fake_runner, downloaded):
        fake_runner.on("hdiutil", _fake_hdiutil({"ssm-scd-x64": "tool"}))
        tool = _tool("ssm-scd", OsKind.MACOS, "arm64")

        def callback(path):
            raise OSError("disk full")

        with pytest.raises(OSError, match="disk full"):
            dispatcher.extract(tool, downloaded, callback)

        assert [args[0] for args in fake_runner.calls_to("hdiutil")] == ["attach", "detach"]

    def test_mount_failure(self, dispatcher, fake_runner, downloaded):
        fake_runner.on("hdiutil", exit_code=1, stderr="hdiutil: attach failed")
        tool = _tool("smpkcs11", OsKind.MACOS)

        with pytest.raises(DiskImageError, match="Failed to mount"):
            dispatcher.extract(tool, downloaded, lambda p: None)

        assert len(fake_runner.calls_to("hdiutil")) == 1


class TestMsi:
    """Test MSI artifacts."""

    def test_install(self, dispatcher, fake_runner, downloaded, temp_dir):
        fake_runner.on("msiexec", exit_code=0)
        tool = _tool("smtools", OsKind.WINDOWS)

        path = dispatcher.extract(tool, downloaded, lambda p: None)

        uninstall, install = fake_runner.calls_to("msiexec")
        assert uninstall == ["/x", str(downloaded), "/qn", "/norestart"]
        assert install[:3] == ["/i", str(downloaded), "/qn"]
        assert f"INSTALLDIR={path}" in install
        assert "ALLUSERS=2" in install
        assert "MSIINSTALLPERUSER=1" in install
        # The installed directory is kept
        assert path.is_dir()

    def test_not_installed_before_is_fine(self, dispatcher, fake_runner, downloaded, caplog):
        calls = []

        def handler(args):
            calls.append(args[0])
            return CommandResult(1605 if args[0] == "/x" else 0)

        fake_runner.on("msiexec", handler)
        tool = _tool("smtools", OsKind.WINDOWS)

        dispatcher.extract(tool, downloaded, lambda p: None)

        assert calls == ["/x", "/i"]
        assert "continuing" not in caplog.text

    def test_install_failure_reports_log(self, dispatcher, fake_runner, downloaded):
        def handler(args):
            if args[0] == "/i":
                log_file = args[args.index("/le") + 1]
                with open(log_file, "wb") as f:
                    f.write(codecs.BOM_UTF16_LE + "Error 1925: privileges".encode("utf-16-le"))
                return CommandResult(1603)
            return CommandResult(0)

        fake_runner.on("msiexec", handler)
        tool = _tool("smtools", OsKind.WINDOWS)

        with pytest.raises(InstallerError, match="Error 1925: privileges"):
            dispatcher.extract(tool, downloaded, lambda p: None)

    def test_install_failure_without_log(self, dispatcher, fake_runner, downloaded):
        fake_runner.on("msiexec", exit_code=1603)
        tool = _tool("smtools", OsKind.WINDOWS)

        with pytest.raises(InstallerError, match="Installation of"):
            dispatcher.extract(tool, downloaded, lambda p: None)


class TestArchives:
    """Test ZIP and TAR artifacts."""

    def test_zip(self, dispatcher, temp_dir):
        archive = temp_dir / "F_zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("smctk-apple-any/smctk", "tool")
        tool = _tool("smctk", OsKind.MACOS)
        seen = []

        path = dispatcher.extract(
            tool, archive, lambda p: seen.append((p / "smctk-apple-any" / "smctk").read_text())
        )

        assert seen == ["tool"]
        assert not path.exists()

    def test_tar(self, dispatcher, temp_dir):
        source = temp_dir / "smtools-linux-x64"
        source.mkdir()
        (source / "smctl").write_text("tool")
        archive = temp_dir / "F_tar"
        with tarfile.open(archive, "w:gz") as tar:
            tar.add(source, arcname="smtools-linux-x64")
        tool = _tool("smtools", OsKind.LINUX)
        seen = []

        dispatcher.extract(
            tool, archive, lambda p: seen.append((p / "smtools-linux-x64" / "smctl").read_text())
        )

        assert seen == ["tool"]

    def test_corrupt_archive_cleans_up(self, dispatcher, downloaded, temp_dir):
        tool = _tool("smtools", OsKind.LINUX)

        with pytest.raises(ArchiveExtractionError):
            dispatcher.extract(tool, downloaded, lambda p: None)

        assert list((temp_dir / "tmp").iterdir()) == []


class TestReadInstallerLog:
    """Test read_installer_log function."""

    def test_utf16(self, temp_dir):
        log_file = temp_dir / "install.log"
        log_file.write_bytes(codecs.BOM_UTF16_LE + "failed".encode("utf-16-le"))
        assert read_installer_log(log_file) == "failed"

    def test_utf8_bom(self, temp_dir):
        log_file = temp_dir / "install.log"
        log_file.write_bytes(codecs.BOM_UTF8 + b"failed")
        assert read_installer_log(log_file) == "failed"

    def test_plain(self, temp_dir):
        log_file = temp_dir / "install.log"
        log_file.write_bytes(b"failed")
        assert read_installer_log(log_file) == "failed"
