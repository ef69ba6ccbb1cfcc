"""Tests for lsblk parsing and disk discovery."""
import json
import subprocess

import pytest

from servctl.discovery.scanner import (
    LOOP_MODEL,
    DiskInventory,
    as_bool,
    as_int,
    classify_disk_type,
    parse_lsblk,
)
from servctl.models.disk import GIB, MIB, DiskType, format_bytes
from servctl.models.errors import EnumerationError


def lsblk(*devices):
    return {"blockdevices": list(devices)}


class TestCoercion:
    """lsblk field types vary between versions."""

    @pytest.mark.parametrize("value,expected", [
        (True, True), (False, False), (1, True), (0, False),
        ("1", True), ("0", False), ("true", True), ("false", False),
        (None, False), ("yes", False), ([], False),
    ])
    def test_as_bool(self, value, expected):
        assert as_bool(value) is expected

    @pytest.mark.parametrize("value,expected", [
        (1024, 1024), ("2048", 2048), (3.0, 3), (None, 0),
        ("12G", 0), (-5, 0), (float("nan"), 0), (True, 0),
    ])
    def test_as_int(self, value, expected):
        assert as_int(value) == expected


class TestClassifyDiskType:
    def test_nvme_by_name(self):
        assert classify_disk_type("nvme0n1", "", False, False) == DiskType.NVME

    def test_nvme_by_transport(self):
        assert classify_disk_type("sdx", "nvme", False, False) == DiskType.NVME

    def test_usb_transport(self):
        assert classify_disk_type("sdb", "usb", True, False) == DiskType.USB

    def test_removable_is_usb(self):
        assert classify_disk_type("sdb", "sata", True, True) == DiskType.USB

    def test_rotational_is_hdd(self):
        assert classify_disk_type("sdb", "sata", True, False) == DiskType.HDD

    def test_otherwise_ssd(self):
        assert classify_disk_type("sdb", "sata", False, False) == DiskType.SSD

    def test_removable_nvme_is_usb(self):
        assert classify_disk_type("nvme1n1", "usb", False, True) == DiskType.USB

    def test_nvme_name_beats_usb_transport(self):
        assert classify_disk_type("nvme1n1", "usb", False, False) == DiskType.NVME


class TestParseLsblk:
    def test_os_disk_detected_from_root_partition(self):
        disks = parse_lsblk(lsblk({
            "name": "sda", "size": 500 * GIB, "type": "disk", "rota": False, "rm": False,
            "tran": "sata", "model": "Samsung SSD  ",
            "children": [
                {"name": "sda1", "size": 512 * MIB, "type": "part", "mountpoint": "/boot/efi", "fstype": "vfat"},
                {"name": "sda2", "size": 499 * GIB, "type": "part", "mountpoint": "/", "fstype": "ext4"},
            ],
        }))

        assert len(disks) == 1
        disk = disks[0]
        assert disk.is_os_disk
        assert not disk.is_available
        assert disk.model == "Samsung SSD"
        assert disk.path == "/dev/sda"
        assert [p.mountpoint for p in disk.partitions] == ["/boot/efi", "/"]

    def test_root_on_lvm_marks_os_disk(self):
        disks = parse_lsblk(lsblk({
            "name": "sda", "size": "1000", "type": "disk",
            "children": [{
                "name": "sda3", "type": "part", "mountpoint": None,
                "children": [{"name": "vg-root", "type": "lvm", "mountpoint": "/"}],
            }],
        }))
        assert disks[0].is_os_disk

    def test_mountpoints_array(self):
        disks = parse_lsblk(lsblk({
            "name": "sdb", "size": 1000, "type": "disk",
            "children": [{"name": "sdb1", "type": "part", "mountpoints": [None, "/"]}],
        }))
        assert disks[0].is_os_disk
        assert disks[0].partitions[0].mountpoint == "/"

    def test_blank_disk_is_available(self):
        disks = parse_lsblk(lsblk({"name": "sdb", "size": "8000000000000", "type": "disk", "rota": "1"}))
        assert disks[0].is_available
        assert disks[0].disk_type == DiskType.HDD
        assert disks[0].size_bytes == 8000000000000

    def test_partitioned_disk_not_available(self):
        disks = parse_lsblk(lsblk({
            "name": "sdb", "size": 1000, "type": "disk",
            "children": [{"name": "sdb1", "type": "part"}],
        }))
        assert not disks[0].is_available
        assert not disks[0].is_os_disk

    def test_removable_not_available(self):
        disks = parse_lsblk(lsblk({"name": "sdc", "size": 1000, "type": "disk", "rm": "1", "tran": "usb"}))
        assert disks[0].removable
        assert not disks[0].is_available

    def test_skips_partitions_roms_and_small_loops(self):
        disks = parse_lsblk(lsblk(
            {"name": "sr0", "size": 1000, "type": "rom"},
            {"name": "loop0", "size": 50 * MIB, "type": "loop"},
            {"name": "loop1", "size": 2 * GIB, "type": "loop"},
        ))
        assert [d.name for d in disks] == ["loop1"]
        assert disks[0].model == LOOP_MODEL
        assert disks[0].transport == "loop"
        assert disks[0].is_available

    def test_malformed_entries_are_skipped(self):
        disks = parse_lsblk(lsblk(
            "garbage",
            {"type": "disk"},
            {"name": "sdb", "size": {"bad": 1}, "type": "disk", "rota": "maybe", "model": None},
        ))
        assert len(disks) == 1
        assert disks[0].size_bytes == 0
        assert disks[0].rotational is False
        assert disks[0].model == ""

    @pytest.mark.parametrize("payload", [None, [], {}, {"blockdevices": None}, {"blockdevices": "x"}])
    def test_missing_device_list_raises(self, payload):
        with pytest.raises(EnumerationError):
            parse_lsblk(payload)


class TestDiskInventory:
    def _completed(self, stdout):
        return lambda cmd, **kw: subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")

    def test_discover_runs_lsblk(self):
        calls = []

        def run(cmd, **kwargs):
            calls.append(cmd)
            return subprocess.CompletedProcess(cmd, 0, stdout=json.dumps(lsblk(
                {"name": "sdb", "size": 1000, "type": "disk"},
            )), stderr="")

        disks = DiskInventory(mock=False, run_cmd=run).discover()

        assert [d.name for d in disks] == ["sdb"]
        assert calls[0][:3] == ["lsblk", "-J", "-b"]

    def test_invalid_json_raises(self):
        with pytest.raises(EnumerationError):
            DiskInventory(mock=False, run_cmd=self._completed("not json")).discover()

    def test_lsblk_missing_raises(self):
        def run(cmd, **kwargs):
            raise FileNotFoundError("lsblk")

        with pytest.raises(EnumerationError, match="lsblk not found"):
            DiskInventory(mock=False, run_cmd=run).discover()

    def test_lsblk_failure_raises(self):
        def run(cmd, **kwargs):
            raise subprocess.CalledProcessError(32, cmd, stderr="permission denied")

        with pytest.raises(EnumerationError, match="permission denied"):
            DiskInventory(mock=False, run_cmd=run).discover()

    def test_lsblk_timeout_raises(self):
        def run(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout"))

        with pytest.raises(EnumerationError, match="timed out"):
            DiskInventory(mock=False, run_cmd=run).discover()

    def test_mock_mode_from_env(self, monkeypatch):
        monkeypatch.setenv("SERVCTL_MOCK", "1")
        disks = DiskInventory().discover()

        names = [d.name for d in disks]
        assert names == ["sda", "nvme0n1", "sdb", "sdc", "sdd"]
        assert disks[0].is_os_disk
        assert disks[-1].removable


@pytest.mark.parametrize("size,expected", [
    (512, "512 B"),
    (1536, "1.50 KB"),
    (int(1.5 * GIB), "1.50 GB"),
    (2 * 1024 * GIB, "2.00 TB"),
])
def test_format_bytes(size, expected):
    assert format_bytes(size) == expected
