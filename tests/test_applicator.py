"""Tests for applying storage strategies."""
import os
from pathlib import Path

import pytest

from servctl.core.applicator import StrategyApplicator
from servctl.core.disk_ops import DiskOperator
from servctl.models.disk import TIB, DiskType
from servctl.models.errors import UnsupportedConfiguration
from servctl.models.strategy import Strategy, StrategyConfig, StrategyID

from conftest import FakeRunner, make_disk


def strategy(strategy_id, *disks):
    return Strategy(id=strategy_id, name=strategy_id.label, description="", disks=tuple(disks))


def snapshot(root: Path):
    """Every path under ``root`` with file contents, for no-mutation checks."""
    state = {}
    for dirpath, dirnames, filenames in os.walk(root):
        state[dirpath] = None
        for name in filenames:
            path = os.path.join(dirpath, name)
            state[path] = Path(path).read_text()
    return state


@pytest.fixture
def cfg(tmp_path):
    return StrategyConfig(
        mountpoint=str(tmp_path / "data"),
        backup_mount=str(tmp_path / "backup"),
        scratch_mount=str(tmp_path / "scratch"),
        fast_mount=str(tmp_path / "fast"),
    )


@pytest.fixture
def applicator(operator):
    return StrategyApplicator(operator)


def mkfs_calls(runner):
    return [c for c in runner.calls if c[0].startswith("mkfs")]


def mounts(runner):
    return [c[1:] for c in runner.calls if c[0] == "mount"]


class TestPartition:
    def test_single_disk(self, applicator, runner, cfg, host):
        results = applicator.apply(strategy(StrategyID.PARTITION, make_disk("sdb")), cfg)

        assert len(results) == 4
        assert all(r.success for r in results)
        assert mkfs_calls(runner) == [["mkfs.ext4", "-F", "-L", "servctl_data", "/dev/sdb"]]
        assert mounts(runner) == [["/dev/sdb", cfg.mountpoint]]
        assert Path(cfg.mountpoint).is_dir()
        assert f"  {cfg.mountpoint}  ext4  " in Path(host.fstab_path).read_text()

    def test_no_disks_only_creates_directory(self, applicator, runner, cfg):
        results = applicator.apply(strategy(StrategyID.PARTITION), cfg)

        assert len(results) == 1
        assert Path(cfg.mountpoint).is_dir()
        assert runner.calls == []

    def test_hardware_raid_formats_each_disk(self, applicator, runner, cfg, host):
        results = applicator.apply(
            strategy(StrategyID.PARTITION, make_disk("sdb"), make_disk("sdc")), cfg,
        )

        assert len(results) == 8
        assert [c[3] for c in mkfs_calls(runner)] == ["servctl_data_1", "servctl_data_2"]
        assert mounts(runner) == [
            ["/dev/sdb", cfg.mountpoint],
            ["/dev/sdc", os.path.join(host.mount_root, "disk2")],
        ]


def test_mergerfs_pool(applicator, runner, cfg, host):
    disks = [make_disk(f"sd{c}") for c in "bcd"]

    results = applicator.apply(strategy(StrategyID.MERGERFS, *disks), cfg)

    assert len(results) == 3 * 4 + 2
    assert all(r.success for r in results)
    branches = [os.path.join(host.mount_root, f"disk{n}") for n in (1, 2, 3)]
    assert mounts(runner)[:3] == [[d.path, b] for d, b in zip(disks, branches)]
    assert mounts(runner)[-1] == [cfg.mountpoint]
    pool_line = Path(host.fstab_path).read_text().splitlines()[-1]
    assert pool_line.startswith(":".join(branches) + f" {cfg.mountpoint} fuse.mergerfs")


@pytest.mark.parametrize("dry_run", [False, True])
def test_mergerfs_without_disks_is_refused(applicator, runner, cfg, host, dry_run):
    fstab_before = Path(host.fstab_path).read_text()

    results = applicator.apply(strategy(StrategyID.MERGERFS), cfg, dry_run=dry_run)

    assert len(results) == 1
    assert not results[0].success
    assert isinstance(results[0].error, UnsupportedConfiguration)
    assert "at least 1 disk" in results[0].message
    assert Path(host.fstab_path).read_text() == fstab_before
    assert runner.calls == []
    assert not Path(cfg.mountpoint).exists()


def test_mirror_is_one_step(applicator, runner, cfg):
    results = applicator.apply(strategy(StrategyID.MIRROR, make_disk("sdb"), make_disk("sdc")), cfg)

    assert len(results) == 1
    assert runner.tools() == ["zpool"]


class TestBackup:
    def test_primary_backup_and_job(self, applicator, runner, cfg, host):
        primary, backup = make_disk("sdb", size=4 * TIB), make_disk("sdc", size=2 * TIB)

        results = applicator.apply(strategy(StrategyID.BACKUP, primary, backup), cfg)

        assert len(results) == 9
        assert all(r.success for r in results)
        assert [c[3] for c in mkfs_calls(runner)] == ["servctl_data", "servctl_data_backup"]
        assert mounts(runner) == [["/dev/sdb", cfg.mountpoint], ["/dev/sdc", cfg.backup_mount]]
        cron = Path(host.cron_dir) / "servctl-backup"
        assert cron.read_text().startswith("0 3 * * * root ")
        script = (Path(host.script_dir) / "servctl-backup.sh").read_text()
        assert f"rsync -av --delete {cfg.mountpoint}/ {cfg.backup_mount}/" in script

    def test_needs_two_disks(self, applicator, cfg):
        results = applicator.apply(strategy(StrategyID.BACKUP, make_disk("sdb")), cfg)

        assert len(results) == 1
        assert isinstance(results[0].error, UnsupportedConfiguration)


def test_scratch_vault_puts_larger_disk_on_vault(applicator, runner, cfg):
    small, big = make_disk("sdb", size=TIB), make_disk("sdc", size=8 * TIB)

    results = applicator.apply(strategy(StrategyID.SCRATCH_VAULT, small, big), cfg)

    assert len(results) == 8
    assert [(c[3], c[4]) for c in mkfs_calls(runner)] == [("vault", "/dev/sdc"), ("scratch", "/dev/sdb")]
    assert mounts(runner) == [["/dev/sdc", cfg.mountpoint], ["/dev/sdb", cfg.scratch_mount]]


def test_speed_tiered(applicator, runner, cfg, host):
    nvme = make_disk("nvme0n1", disk_type=DiskType.NVME)
    hdd = make_disk("sdb", size=8 * TIB)

    results = applicator.apply(strategy(StrategyID.SPEED_TIERED, hdd, nvme), cfg)

    assert len(results) == 4 + 1 + 4 + 1
    assert [c[3] for c in mkfs_calls(runner)] == ["fast_1", "data_1"]
    assert mounts(runner) == [
        ["/dev/nvme0n1", os.path.join(host.mount_root, "fast1")],
        ["/dev/sdb", os.path.join(host.mount_root, "slow1")],
    ]
    assert Path(cfg.fast_mount).is_dir()
    assert Path(cfg.mountpoint).is_dir()


class TestValidation:
    @pytest.mark.parametrize("filesystem", ["zfs", "ntfs", "exfat"])
    def test_rejects_unformattable_filesystem(self, applicator, runner, cfg, filesystem):
        cfg.filesystem = filesystem

        results = applicator.apply(strategy(StrategyID.PARTITION, make_disk("sdb")), cfg)

        assert len(results) == 1
        assert not results[0].success
        assert isinstance(results[0].error, UnsupportedConfiguration)
        assert runner.calls == []

    def test_rejects_unknown_policy_for_pool(self, applicator, cfg):
        cfg.mergerfs_policy = "random"
        results = applicator.apply(strategy(StrategyID.MERGERFS, make_disk("sdb"), make_disk("sdc")), cfg)

        assert len(results) == 1
        assert "random" in results[0].message

    def test_policy_ignored_for_other_strategies(self, applicator, cfg):
        cfg.mergerfs_policy = "random"
        results = applicator.apply(strategy(StrategyID.PARTITION, make_disk("sdb")), cfg)
        assert all(r.success for r in results)

    def test_filesystem_is_case_insensitive(self, applicator, runner, cfg):
        cfg.filesystem = "XFS"
        applicator.apply(strategy(StrategyID.PARTITION, make_disk("sdb")), cfg)
        assert mkfs_calls(runner)[0][0] == "mkfs.xfs"

    @pytest.mark.parametrize("strategy_id,field", [
        (StrategyID.PARTITION, "label"),
        (StrategyID.MERGERFS, "mountpoint"),
        (StrategyID.BACKUP, "backup_mount"),
        (StrategyID.SCRATCH_VAULT, "scratch_mount"),
        (StrategyID.SPEED_TIERED, "fast_mount"),
    ])
    def test_rejects_blank_field(self, applicator, runner, cfg, strategy_id, field):
        setattr(cfg, field, "  ")

        results = applicator.apply(strategy(strategy_id, make_disk("sdb"), make_disk("sdc")), cfg)

        assert len(results) == 1
        assert isinstance(results[0].error, UnsupportedConfiguration)
        assert field in results[0].message
        assert runner.calls == []

    def test_blank_field_from_string_map(self, applicator, runner, cfg):
        values = cfg.to_map()
        values["scratch_mount"] = ""

        results = applicator.apply(strategy(StrategyID.SCRATCH_VAULT, make_disk("sdb"), make_disk("sdc")), values)

        assert isinstance(results[0].error, UnsupportedConfiguration)
        assert runner.calls == []

    def test_blank_field_unused_by_strategy_is_allowed(self, applicator, cfg):
        cfg.scratch_mount = ""
        results = applicator.apply(strategy(StrategyID.PARTITION, make_disk("sdb")), cfg)
        assert all(r.success for r in results)


class TestDryRun:
    CASES = [
        (StrategyID.PARTITION, ["sdb"]),
        (StrategyID.PARTITION, ["sdb", "sdc", "sdd"]),
        (StrategyID.MERGERFS, ["sdb", "sdc", "sdd"]),
        (StrategyID.MIRROR, ["sdb", "sdc"]),
        (StrategyID.BACKUP, ["sdb", "sdc"]),
        (StrategyID.SCRATCH_VAULT, ["sdb", "sdc"]),
        (StrategyID.SPEED_TIERED, ["nvme0n1", "sdb", "sdc"]),
    ]

    @pytest.mark.parametrize("strategy_id,names", CASES)
    def test_same_shape_without_mutation(self, host, cfg, tmp_path, strategy_id, names):
        def build(runner):
            return StrategyApplicator(DiskOperator(
                host, runner, which=lambda tool: f"/usr/bin/{tool}", ismount=runner.ismount,
            ))

        chosen = strategy(strategy_id, *[
            make_disk(n, disk_type=DiskType.NVME if n.startswith("nvme") else DiskType.HDD)
            for n in names
        ])
        before = snapshot(tmp_path)

        dry_runner = FakeRunner()
        dry = build(dry_runner).apply(chosen, cfg, dry_run=True)

        assert snapshot(tmp_path) == before
        assert dry_runner.calls == []
        assert all(r.success for r in dry)
        assert all(r.message.startswith("[Dry Run]") for r in dry if not r.skipped)

        real_runner = FakeRunner()
        real = build(real_runner).apply(chosen, cfg, dry_run=False)
        assert len(real) == len(dry)


class TestRerun:
    def test_second_apply_reports_already_present(self, applicator, runner, cfg, host):
        chosen = strategy(StrategyID.BACKUP, make_disk("sdb"), make_disk("sdc"))
        applicator.apply(chosen, cfg)
        fstab_before = Path(host.fstab_path).read_text()
        calls_before = len(runner.calls)

        results = applicator.apply(chosen, cfg)

        assert all(r.success for r in results)
        assert all(r.skipped for r in results)
        assert Path(host.fstab_path).read_text() == fstab_before
        assert len(runner.calls) == calls_before

    def test_failed_step_does_not_stop_the_run(self, host, cfg):
        runner = FakeRunner(fail={"mkfs.ext4": "busy"})
        applicator = StrategyApplicator(DiskOperator(host, runner, ismount=runner.ismount))

        results = applicator.apply(strategy(StrategyID.PARTITION, make_disk("sdb")), cfg)

        assert [r.success for r in results] == [False, True, True, True]
        assert runner.tools() == ["mkfs.ext4", "mount", "blkid"]


class TestConfigInput:
    def test_string_map(self, applicator, runner, tmp_path):
        mount = str(tmp_path / "srv")
        applicator.apply(
            strategy(StrategyID.PARTITION, make_disk("sdb")),
            {"mountpoint": mount, "filesystem": "btrfs", "label": "media"},
        )
        assert mkfs_calls(runner) == [["mkfs.btrfs", "-f", "-L", "media", "/dev/sdb"]]
        assert mounts(runner) == [["/dev/sdb", mount]]

    def test_none_uses_defaults(self, applicator, runner):
        results = applicator.apply(strategy(StrategyID.PARTITION, make_disk("sdb")), None, dry_run=True)
        assert "/mnt/data" in results[1].message
        assert runner.calls == []
