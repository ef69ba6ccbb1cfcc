"""
Strategy application for servctl.

Turns a chosen Strategy into an ordered list of disk operations:
- Formatting and mounting each claimed disk
- Persisting mounts in fstab
- Building mergerfs pools and mirrors
- Scheduling the backup job

A failed step never aborts the run; every step's result is returned in
execution order.
"""
import os
from typing import List, Mapping, Optional, Union

from servctl.core.disk_ops import DiskOperator
from servctl.core.logger import get_logger, log_result
from servctl.discovery.classifier import speed_class
from servctl.models.disk import Disk
from servctl.models.errors import UnsupportedConfiguration
from servctl.models.filesystem import FORMATTABLE, FilesystemType
from servctl.models.strategy import (
    MERGERFS_POLICIES,
    OperationResult,
    SpeedClass,
    Strategy,
    StrategyConfig,
    StrategyID,
)

logger = get_logger(__name__)

ConfigLike = Union[StrategyConfig, Mapping[str, str], None]

# Config fields each strategy writes to the host; none may be blank
REQUIRED_FIELDS = {
    StrategyID.PARTITION: ("mountpoint", "label"),
    StrategyID.MERGERFS: ("mountpoint", "label"),
    StrategyID.MIRROR: ("mountpoint", "label"),
    StrategyID.BACKUP: ("mountpoint", "backup_mount", "label"),
    StrategyID.SCRATCH_VAULT: ("mountpoint", "scratch_mount"),
    StrategyID.SPEED_TIERED: ("mountpoint", "fast_mount"),
}


class StrategyApplicator:
    """Applies a storage strategy to the host (or narrates it in dry run)."""

    def __init__(self, operator: Optional[DiskOperator] = None):
        self.ops = operator or DiskOperator()

    @property
    def mount_root(self) -> str:
        return self.ops.config.mount_root

    def apply(self, strategy: Strategy, config: ConfigLike = None,
              dry_run: bool = False) -> List[OperationResult]:
        """Apply ``strategy`` with ``config``.

        Args:
            strategy: Strategy to apply
            config: StrategyConfig, its string map, or None for defaults
            dry_run: Narrate every step without changing the host

        Returns:
            One OperationResult per step, in execution order
        """
        cfg = config if isinstance(config, StrategyConfig) else StrategyConfig.from_map(config)

        blank = [name for name in REQUIRED_FIELDS[strategy.id] if not str(getattr(cfg, name)).strip()]
        if blank:
            return [OperationResult.failed(UnsupportedConfiguration(
                f"{strategy.name} needs a non-empty {', '.join(blank)}"
            ))]

        fs_type = FilesystemType.parse(cfg.filesystem)
        if fs_type not in FORMATTABLE:
            return [OperationResult.failed(UnsupportedConfiguration(
                f"Unsupported filesystem {cfg.filesystem!r}: choose ext4, xfs or btrfs"
            ))]
        if strategy.id == StrategyID.MERGERFS and cfg.mergerfs_policy not in MERGERFS_POLICIES:
            return [OperationResult.failed(UnsupportedConfiguration(
                f"Unknown MergerFS policy {cfg.mergerfs_policy!r}: "
                f"choose one of {', '.join(MERGERFS_POLICIES)}"
            ))]

        logger.info(f"Applying {strategy.name}{' (dry run)' if dry_run else ''}")
        handler = {
            StrategyID.PARTITION: self._apply_partition,
            StrategyID.MERGERFS: self._apply_mergerfs,
            StrategyID.MIRROR: self._apply_mirror,
            StrategyID.BACKUP: self._apply_backup,
            StrategyID.SCRATCH_VAULT: self._apply_scratch_vault,
            StrategyID.SPEED_TIERED: self._apply_speed_tiered,
        }[strategy.id]
        results = handler(list(strategy.disks), cfg, fs_type, dry_run)
        for result in results:
            log_result(result)

        failed = sum(1 for r in results if not r.success)
        if failed:
            logger.warning(f"{strategy.name}: {failed} of {len(results)} step(s) failed")
        else:
            logger.info(f"{strategy.name}: {len(results)} step(s) completed")
        return results

    # -----------------------------
    #  Per-strategy sequences
    # -----------------------------
    def _apply_partition(self, disks: List[Disk], cfg: StrategyConfig,
                         fs_type: FilesystemType, dry_run: bool) -> List[OperationResult]:
        if not disks:
            return [self.ops.create_mount_point(cfg.mountpoint, dry_run)]
        if len(disks) == 1:
            return self._provision(disks[0], cfg.mountpoint, cfg.label, fs_type, dry_run)

        # Hardware RAID: every virtual disk formatted on its own
        results = self._provision(disks[0], cfg.mountpoint, f"{cfg.label}_1", fs_type, dry_run)
        for n, disk in enumerate(disks[1:], start=2):
            results += self._provision(disk, self._numbered("disk", n), f"{cfg.label}_{n}", fs_type, dry_run)
        return results

    def _apply_mergerfs(self, disks: List[Disk], cfg: StrategyConfig,
                        fs_type: FilesystemType, dry_run: bool) -> List[OperationResult]:
        if not disks:
            return [OperationResult.failed(UnsupportedConfiguration(
                "MergerFS pool requires at least 1 disk"
            ))]
        results = []
        sources = []
        for n, disk in enumerate(disks, start=1):
            mount = self._numbered("disk", n)
            sources.append(mount)
            results += self._provision(disk, mount, f"{cfg.label}_{n}", fs_type, dry_run)
        results.append(self.ops.create_mount_point(cfg.mountpoint, dry_run))
        results.append(self.ops.setup_mergerfs(sources, cfg.mountpoint, cfg.mergerfs_policy, dry_run))
        return results

    def _apply_mirror(self, disks: List[Disk], cfg: StrategyConfig,
                      fs_type: FilesystemType, dry_run: bool) -> List[OperationResult]:
        return [self.ops.setup_mirror(disks, cfg.mountpoint, fs_type, cfg.label, dry_run)]

    def _apply_backup(self, disks: List[Disk], cfg: StrategyConfig,
                      fs_type: FilesystemType, dry_run: bool) -> List[OperationResult]:
        if len(disks) < 2:
            return [OperationResult.failed(UnsupportedConfiguration(
                f"Primary + Backup requires 2 disks, got {len(disks)}"
            ))]
        primary, backup = disks[0], disks[1]
        results = self._provision(primary, cfg.mountpoint, cfg.label, fs_type, dry_run)
        results += self._provision(backup, cfg.backup_mount, f"{cfg.label}_backup", fs_type, dry_run)
        results.append(self.ops.setup_backup_job(cfg.mountpoint, cfg.backup_mount, cfg.backup_schedule, dry_run))
        return results

    def _apply_scratch_vault(self, disks: List[Disk], cfg: StrategyConfig,
                             fs_type: FilesystemType, dry_run: bool) -> List[OperationResult]:
        if len(disks) < 2:
            return [OperationResult.failed(UnsupportedConfiguration(
                f"Scratch + Vault requires 2 disks, got {len(disks)}"
            ))]
        vault, scratch = disks[0], disks[1]
        if scratch.size_bytes > vault.size_bytes:
            vault, scratch = scratch, vault
        results = self._provision(vault, cfg.mountpoint, "vault", fs_type, dry_run)
        results += self._provision(scratch, cfg.scratch_mount, "scratch", fs_type, dry_run)
        return results

    def _apply_speed_tiered(self, disks: List[Disk], cfg: StrategyConfig,
                            fs_type: FilesystemType, dry_run: bool) -> List[OperationResult]:
        fast = [d for d in disks if speed_class(d) == SpeedClass.FAST]
        slow = [d for d in disks if speed_class(d) == SpeedClass.SLOW]

        results = []
        for n, disk in enumerate(fast, start=1):
            results += self._provision(disk, self._numbered("fast", n), f"fast_{n}", fs_type, dry_run)
        results.append(self.ops.create_mount_point(cfg.fast_mount, dry_run))

        for n, disk in enumerate(slow, start=1):
            results += self._provision(disk, self._numbered("slow", n), f"data_{n}", fs_type, dry_run)
        results.append(self.ops.create_mount_point(cfg.mountpoint, dry_run))
        return results

    # -----------------------------
    #  Helpers
    # -----------------------------
    def _provision(self, disk: Disk, mount_point: str, label: str,
                   fs_type: FilesystemType, dry_run: bool) -> List[OperationResult]:
        """Format, mkdir, mount and persist one disk."""
        if self.ops.is_mounted(mount_point):
            # Something already lives there; formatting again would destroy it
            formatted = OperationResult.ok(
                f"{mount_point} already mounted, not formatting {disk.path}", skipped=True,
            )
        else:
            formatted = self.ops.format_disk(disk.path, fs_type, label, dry_run)

        return [
            formatted,
            self.ops.create_mount_point(mount_point, dry_run),
            self.ops.mount_disk(disk.path, mount_point, dry_run),
            self.ops.add_fstab_entry(disk.path, mount_point, fs_type.value, dry_run),
        ]

    def _numbered(self, prefix: str, n: int) -> str:
        return os.path.join(self.mount_root, f"{prefix}{n}")


def apply_strategy(strategy: Strategy, config: ConfigLike = None,
                   dry_run: bool = False) -> List[OperationResult]:
    """Apply ``strategy`` with a default DiskOperator."""
    return StrategyApplicator().apply(strategy, config, dry_run)
