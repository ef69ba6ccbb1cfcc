"""Storage strategy, strategy config and operation result models."""
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from servctl.models.disk import Disk


class StrategyID(Enum):
    """Storage layout a strategy applies."""
    PARTITION = "partition"          # Single drive (or drives formatted individually)
    MERGERFS = "mergerfs"            # Union filesystem pool
    MIRROR = "mirror"                # ZFS/mdadm mirror
    BACKUP = "backup"                # Primary + scheduled backup
    SCRATCH_VAULT = "scratch_vault"  # Permanent vault + temporary scratch
    SPEED_TIERED = "speed_tiered"    # Fast tier + slow tier

    @property
    def label(self) -> str:
        return {
            StrategyID.PARTITION: "Partition Plan",
            StrategyID.MERGERFS: "MergerFS Pool",
            StrategyID.MIRROR: "Mirror (Redundant)",
            StrategyID.BACKUP: "Primary + Backup",
            StrategyID.SCRATCH_VAULT: "Scratch + Vault",
            StrategyID.SPEED_TIERED: "Speed-Tiered Pools",
        }[self]


class SpeedClass(Enum):
    SLOW = "slow"  # HDD and anything unrecognised
    FAST = "fast"  # SSD, NVMe


@dataclass
class Strategy:
    """A candidate storage configuration."""
    id: StrategyID
    name: str
    description: str
    capacity: str = ""      # "3.64 TB usable"
    protection: str = ""    # "1-disk fault tolerance"
    best_for: str = ""      # "Media libraries"
    warning: str = ""
    score: int = 0          # Higher = more recommended
    recommended: bool = False
    pros: List[str] = field(default_factory=list)
    cons: List[str] = field(default_factory=list)
    disks: Tuple[Disk, ...] = ()
    mount_points: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id.value,
            "name": self.name,
            "description": self.description,
            "capacity": self.capacity,
            "protection": self.protection,
            "best_for": self.best_for,
            "warning": self.warning,
            "score": self.score,
            "recommended": self.recommended,
            "pros": list(self.pros),
            "cons": list(self.cons),
            "disks": [d.path for d in self.disks],
            "mount_points": list(self.mount_points),
        }


# token -> (cron expression, description)
BACKUP_SCHEDULES: Dict[str, Tuple[str, str]] = {
    "daily": ("0 3 * * *", "Daily at 3:00 AM"),
    "6h": ("0 */6 * * *", "Every 6 hours"),
    "12h": ("0 */12 * * *", "Every 12 hours"),
    "weekly": ("0 3 * * 0", "Weekly (Sunday 3 AM)"),
}

DEFAULT_SCHEDULE = "daily"

# mergerfs create policies
MERGERFS_POLICIES: Dict[str, str] = {
    "epmfs": "Existing path, most free space",
    "mfs": "Most free space",
    "lfs": "Least free space",
}


def cron_expression(schedule: str) -> str:
    """Five-field cron schedule for a backup token (unknown tokens run daily)."""
    return BACKUP_SCHEDULES.get(schedule, BACKUP_SCHEDULES[DEFAULT_SCHEDULE])[0]


def describe_schedule(schedule: str) -> str:
    entry = BACKUP_SCHEDULES.get(schedule)
    return entry[1] if entry else schedule


@dataclass
class StrategyConfig:
    """User-editable parameters for applying a strategy."""
    mountpoint: str = "/mnt/data"
    backup_mount: str = "/mnt/backup"
    scratch_mount: str = "/mnt/scratch"
    fast_mount: str = "/mnt/fast"
    filesystem: str = "ext4"
    label: str = "servctl_data"
    backup_schedule: str = DEFAULT_SCHEDULE
    mergerfs_policy: str = "epmfs"

    def to_map(self) -> Dict[str, str]:
        """String map handed to the applier and external generators."""
        return {key: str(value) for key, value in asdict(self).items()}

    @classmethod
    def from_map(cls, values: Optional[Mapping[str, object]]) -> "StrategyConfig":
        """Rebuild a config; missing or None keys keep their defaults."""
        config = cls()
        if not values:
            return config
        for f in fields(cls):
            value = values.get(f.name)
            if value is None:
                continue
            setattr(config, f.name, str(value))
        return config


@dataclass(frozen=True)
class LogEvent:
    """A progress record emitted while running an operation."""
    level: str  # debug, info, warning, error
    message: str


@dataclass
class OperationResult:
    """Outcome of one executed (or narrated) step."""
    success: bool
    message: str
    error: Optional[Exception] = None
    events: List[LogEvent] = field(default_factory=list)
    skipped: bool = False  # Already in place, nothing changed

    @classmethod
    def ok(cls, message: str, *events: LogEvent, skipped: bool = False) -> "OperationResult":
        return cls(
            success=True,
            message=message,
            events=list(events) or [LogEvent("info", message)],
            skipped=skipped,
        )

    @classmethod
    def failed(cls, error: Exception, *events: LogEvent) -> "OperationResult":
        return cls(
            success=False,
            message=str(error),
            error=error,
            events=list(events) or [LogEvent("error", str(error))],
        )

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "error": type(self.error).__name__ if self.error else None,
            "skipped": self.skipped,
            "events": [{"level": e.level, "message": e.message} for e in self.events],
        }
