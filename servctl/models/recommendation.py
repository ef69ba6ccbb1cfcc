"""Models for the "5 Ranks" storage recommendations."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from servctl.models.disk import Disk


class StorageRank(Enum):
    HYBRID = 1        # SSD (OS/Apps) + HDD (Bulk Data)
    SPEED_DEMON = 2   # SSD (OS) + SSD (Active DBs)
    MIRROR = 3        # 2x SSD RAID 1
    DATA_HOARDER = 4  # 2x HDD RAID 1
    KAMIKAZE = 5      # RAID 0

    @property
    def label(self) -> str:
        return {
            StorageRank.HYBRID: "Rank 1: Hybrid",
            StorageRank.SPEED_DEMON: "Rank 2: Speed Demon",
            StorageRank.MIRROR: "Rank 3: Mirror",
            StorageRank.DATA_HOARDER: "Rank 4: Data Hoarder",
            StorageRank.KAMIKAZE: "Rank 5: Kamikaze",
        }[self]


class DiskScenario(Enum):
    SINGLE_DISK = "single"
    TWO_DISK = "two"
    MULTI_DISK = "multi"

    @property
    def label(self) -> str:
        return {
            DiskScenario.SINGLE_DISK: "Single Disk",
            DiskScenario.TWO_DISK: "Two Disks",
            DiskScenario.MULTI_DISK: "Multi-Disk (3+)",
        }[self]


@dataclass(frozen=True)
class DiskAssignment:
    """How a disk is used by a recommendation. ``disk`` is a shared, read-only view."""
    disk: Disk
    role: str   # apps, data, backup, raid, raid0
    label: str  # Filesystem label
    mount: str  # Mount point


@dataclass
class StorageRecommendation:
    rank: StorageRank
    name: str
    description: str
    pros: List[str] = field(default_factory=list)
    cons: List[str] = field(default_factory=list)
    warning: str = ""
    is_default: bool = False
    assignments: List[DiskAssignment] = field(default_factory=list)

    def summary(self) -> str:
        lines = [f"{self.rank.label}: {self.name}", f"  {self.description}"]
        if self.assignments:
            lines.append("  Disk assignments:")
            for a in self.assignments:
                lines.append(
                    f"    • {a.disk.name} ({a.disk.disk_type.label} {a.disk.size_human})"
                    f" → {a.role} [{a.mount}]"
                )
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "rank": self.rank.value,
            "rank_name": self.rank.label,
            "name": self.name,
            "description": self.description,
            "pros": list(self.pros),
            "cons": list(self.cons),
            "warning": self.warning,
            "is_default": self.is_default,
            "assignments": [
                {"disk": a.disk.path, "role": a.role, "label": a.label, "mount": a.mount}
                for a in self.assignments
            ],
        }


@dataclass
class ClassificationResult:
    """Available disks bucketed by type plus the matching recommendations."""
    scenario: DiskScenario = DiskScenario.SINGLE_DISK
    os_disk: Optional[Disk] = None
    available: List[Disk] = field(default_factory=list)
    ssds: List[Disk] = field(default_factory=list)
    hdds: List[Disk] = field(default_factory=list)
    nvmes: List[Disk] = field(default_factory=list)
    recommendations: List[StorageRecommendation] = field(default_factory=list)

    @property
    def fast_disks(self) -> List[Disk]:
        """SSDs then NVMes, the order the rank builders consume them in."""
        return self.ssds + self.nvmes
