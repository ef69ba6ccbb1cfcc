"""Storage strategy generation and scoring."""
from dataclasses import dataclass, replace
from typing import Callable, Iterable, List, Optional

from servctl.core.logger import get_logger
from servctl.discovery.classifier import (
    filter_available,
    is_hardware_raid,
    size_mismatch_large,
    sizes_similar,
    speed_class,
    total_capacity,
)
from servctl.models.disk import GIB, Disk, SystemInfo, format_bytes
from servctl.models.strategy import SpeedClass, Strategy, StrategyID

logger = get_logger(__name__)

ZFS_MIN_RAM = 8 * GIB
MIRROR_SIZE_THRESHOLD = 0.10
SCRATCH_MISMATCH_THRESHOLD = 0.50

DATA_MOUNT = "/mnt/data"


@dataclass
class DiskContext:
    """What the rules need to know about the available disks."""
    available: List[Disk]
    fast: List[Disk]
    slow: List[Disk]
    hardware_raid: bool
    system: SystemInfo

    @property
    def pair(self) -> bool:
        return len(self.available) == 2


Rule = Callable[[DiskContext], Optional[Strategy]]


def hardware_raid_rule(ctx: DiskContext) -> Optional[Strategy]:
    if not ctx.hardware_raid:
        return None
    return Strategy(
        id=StrategyID.PARTITION,
        name="Simple Format (ext4)",
        description="Format drives individually. Your RAID card handles redundancy.",
        capacity=total_capacity(ctx.available),
        protection="Hardware RAID",
        best_for="Enterprise servers with RAID controllers",
        warning="Hardware RAID detected. Avoid software RAID.",
        score=90,
        pros=["Controller handles redundancy", "No software RAID overhead"],
        cons=["Depends on the RAID card", "Controller failure needs identical hardware"],
        disks=tuple(ctx.available),
        mount_points=[DATA_MOUNT],
    )


def speed_tiered_rule(ctx: DiskContext) -> Optional[Strategy]:
    if not (ctx.fast and ctx.slow):
        return None
    return Strategy(
        id=StrategyID.SPEED_TIERED,
        name="Speed-Tiered Pools",
        description="Fast drives for active data, slow drives for archives",
        capacity=total_capacity(ctx.available),
        protection="None",
        best_for="Mixed workloads (databases + media)",
        score=85,
        pros=["Databases and apps on flash", "Bulk media on cheap spinning disks"],
        cons=["No redundancy", "Data placement is manual"],
        disks=tuple(ctx.available),
        mount_points=["/mnt/fast", DATA_MOUNT],
    )


def mirror_rule(ctx: DiskContext) -> Optional[Strategy]:
    if not ctx.pair or ctx.hardware_raid:
        return None
    first, second = ctx.available
    if not sizes_similar(first.size_bytes, second.size_bytes, MIRROR_SIZE_THRESHOLD):
        return None

    if ctx.system.total_ram >= ZFS_MIN_RAM:
        kind = "ZFS Mirror"
        detail = "Checksummed copy-on-write mirror with self-healing reads"
    else:
        kind = "MDADM RAID1"
        detail = "Block-level mirror, light on memory"

    return Strategy(
        id=StrategyID.MIRROR,
        name=f"Mirror ({kind})",
        description="Duplicate data across both drives for fault tolerance",
        capacity=format_bytes(min(first.size_bytes, second.size_bytes)),
        protection="1-disk fault tolerance",
        best_for="Critical data, Nextcloud, databases",
        score=80,
        pros=["Survives a single disk failure", detail],
        cons=["50% of raw capacity", "Not a backup: deletions are mirrored too"],
        disks=tuple(ctx.available),
        mount_points=[DATA_MOUNT],
    )


def backup_rule(ctx: DiskContext) -> Optional[Strategy]:
    if not ctx.pair:
        return None
    primary, backup = ctx.available
    if backup.size_bytes > primary.size_bytes:
        primary, backup = backup, primary
    return Strategy(
        id=StrategyID.BACKUP,
        name="Primary + Nightly Backup",
        description="One drive for data, one for automated backups",
        capacity=primary.size_human,
        protection="Hardware failure + user error protection",
        best_for="Home users wanting 'set and forget' safety",
        score=75,
        pros=["Recovers from accidental deletion", "Backup disk can be unplugged"],
        cons=["Changes since the last run can be lost", "Half the raw capacity"],
        disks=(primary, backup),
        mount_points=[DATA_MOUNT, "/mnt/backup"],
    )


def scratch_vault_rule(ctx: DiskContext) -> Optional[Strategy]:
    if not ctx.pair:
        return None
    large, small = ctx.available
    if not size_mismatch_large(large.size_bytes, small.size_bytes, SCRATCH_MISMATCH_THRESHOLD):
        return None
    if small.size_bytes > large.size_bytes:
        large, small = small, large
    return Strategy(
        id=StrategyID.SCRATCH_VAULT,
        name="Scratch + Vault",
        description="Large drive for permanent data, small drive for downloads/temp",
        capacity=f"{large.size_human} (vault) + {small.size_human} (scratch)",
        protection="None",
        best_for="Optimizing mismatched drives",
        score=70,
        pros=["Uses both drives fully", "Download churn stays off the vault"],
        cons=["No redundancy"],
        disks=(large, small),
        mount_points=[DATA_MOUNT, "/mnt/scratch"],
    )


def pool_rule(ctx: DiskContext) -> Optional[Strategy]:
    if ctx.hardware_raid:
        return None
    return Strategy(
        id=StrategyID.MERGERFS,
        name="Combined Pool (MergerFS)",
        description="Combine all drives into one large pool",
        capacity=f"{total_capacity(ctx.available)} (100% utilization)",
        protection="Partial (only affected drive's files lost)",
        best_for="Media libraries, maximum capacity",
        score=65,
        pros=["All capacity in one mount", "Drives of any size can be mixed"],
        cons=["No redundancy", "A failed drive loses the files on it"],
        disks=tuple(ctx.available),
        mount_points=[DATA_MOUNT],
    )


# Evaluated in order; each rule adds at most one candidate
RULES: List[Rule] = [
    hardware_raid_rule,
    speed_tiered_rule,
    mirror_rule,
    backup_rule,
    scratch_vault_rule,
    pool_rule,
]


def score_strategies(strategies: Iterable[Strategy]) -> List[Strategy]:
    """Mark the recommended strategy and sort by score, highest first.

    The first strategy (in input order) reaching the top score is the
    recommended one. Equal scores keep their input order. Inputs are not
    modified.
    """
    strategies = [replace(s, recommended=False) for s in strategies]
    if not strategies:
        return strategies

    top = max(s.score for s in strategies)
    for i, strategy in enumerate(strategies):
        if strategy.score == top:
            strategies[i] = replace(strategy, recommended=True)
            break

    return sorted(strategies, key=lambda s: s.score, reverse=True)


class StrategyGenerator:
    """Turn discovered disks into scored storage strategies."""

    def __init__(self, rules: Optional[List[Rule]] = None,
                 raid_detector: Callable[[Disk], bool] = is_hardware_raid):
        self.rules = list(RULES if rules is None else rules)
        self.raid_detector = raid_detector

    def generate(self, disks: Iterable[Disk], system: Optional[SystemInfo] = None) -> List[Strategy]:
        system = system or SystemInfo()
        available = filter_available(disks)

        if not available:
            strategies = [self._partition_os_drive()]
        elif len(available) == 1:
            strategies = [self._single_disk(available[0])]
        else:
            ctx = DiskContext(
                available=available,
                fast=[d for d in available if speed_class(d) == SpeedClass.FAST],
                slow=[d for d in available if speed_class(d) == SpeedClass.SLOW],
                hardware_raid=system.has_hardware_raid or any(self.raid_detector(d) for d in available),
                system=system,
            )
            strategies = [s for s in (rule(ctx) for rule in self.rules) if s is not None]

        logger.debug(f"Generated {len(strategies)} strategies for {len(available)} available disk(s)")
        return score_strategies(strategies)

    def _partition_os_drive(self) -> Strategy:
        return Strategy(
            id=StrategyID.PARTITION,
            name="Create Data Partition",
            description="Partition your OS drive to separate data from system",
            capacity="Depends on available space",
            protection="OS reinstall protection only",
            best_for="Single-drive systems (NUC, laptop)",
            warning="⚠️ No hardware redundancy!",
            score=50,
            pros=["Works without extra hardware"],
            cons=["Disk failure takes the OS and data"],
            mount_points=[DATA_MOUNT],
        )

    def _single_disk(self, disk: Disk) -> Strategy:
        return Strategy(
            id=StrategyID.PARTITION,
            name="Single Data Disk",
            description="Format and mount as data drive",
            capacity=disk.size_human,
            protection="None",
            best_for="Simple setup",
            warning="⚠️ No redundancy",
            score=60,
            pros=["Simple setup", "Data survives an OS reinstall"],
            cons=["Disk failure loses all data"],
            disks=(disk,),
            mount_points=[DATA_MOUNT],
        )


def generate_strategies(disks: Iterable[Disk], system: Optional[SystemInfo] = None) -> List[Strategy]:
    """Generate scored strategies with the default rule set."""
    return StrategyGenerator().generate(disks, system)
