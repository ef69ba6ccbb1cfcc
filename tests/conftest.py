"""Shared test fixtures for servctl tests."""
import subprocess
from pathlib import Path

import pytest

from servctl.core.config import ServctlConfig, set_config
from servctl.core.disk_ops import DiskOperator
from servctl.models.disk import GIB, TIB, Disk, DiskType


@pytest.fixture(autouse=True)
def _reset_config(monkeypatch):
    """Each test starts from environment defaults with mock mode off."""
    monkeypatch.delenv("SERVCTL_MOCK", raising=False)
    set_config(None)
    yield
    set_config(None)


def make_disk(name, size=TIB, disk_type=DiskType.HDD, model="", **kwargs):
    """Build a blank data disk."""
    return Disk(
        name=name,
        path=f"/dev/{name}",
        size_bytes=size,
        disk_type=disk_type,
        model=model,
        rotational=disk_type == DiskType.HDD,
        is_available=True,
        **kwargs,
    )


@pytest.fixture
def os_disk():
    return make_disk("sda", size=500 * GIB, disk_type=DiskType.SSD, is_os_disk=True)


class FakeRunner:
    """Stands in for subprocess.run and records every command.

    ``fail`` maps a tool name to stderr; that tool exits 1.
    ``missing`` lists tools that raise FileNotFoundError.
    Successful ``mount DEV MP`` calls are remembered so ``ismount`` sees them.
    """

    def __init__(self, fail=None, missing=(), uuids=None):
        self.calls = []
        self.fail = dict(fail or {})
        self.missing = set(missing)
        self.uuids = dict(uuids or {})
        self.mounted = set()

    def __call__(self, cmd, capture_output=False, text=False, check=False, timeout=None):
        self.calls.append(list(cmd))
        tool = cmd[0]
        if tool in self.missing:
            raise FileNotFoundError(tool)
        if tool in self.fail:
            raise subprocess.CalledProcessError(1, cmd, output="", stderr=self.fail[tool])

        stdout = ""
        if tool == "blkid":
            stdout = self.uuids.get(cmd[-1], "")
        elif tool == "mount":
            self.mounted.add(cmd[-1])
        return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")

    def ismount(self, path):
        return str(path) in self.mounted

    def tools(self):
        return [c[0] for c in self.calls]


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def host(tmp_path: Path) -> ServctlConfig:
    """ServctlConfig whose host files all live under tmp_path."""
    etc = tmp_path / "etc"
    etc.mkdir()
    fstab = etc / "fstab"
    fstab.write_text("# /etc/fstab\nUUID=1111  /  ext4  errors=remount-ro  0  1\n")
    return ServctlConfig(
        fstab_path=str(fstab),
        cron_dir=str(etc / "cron.d"),
        script_dir=str(tmp_path / "bin"),
        backup_log=str(tmp_path / "backup.log"),
        hdparm_conf=str(etc / "hdparm.conf"),
        mount_root=str(tmp_path / "mnt"),
        lock_file=str(tmp_path / "apply.lock"),
    )


@pytest.fixture
def operator(host, runner):
    """DiskOperator wired to the fake runner with every tool installed."""
    return DiskOperator(
        config=host,
        run_cmd=runner,
        which=lambda tool: f"/usr/bin/{tool}",
        ismount=runner.ismount,
    )
