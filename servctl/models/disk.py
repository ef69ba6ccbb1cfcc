"""Physical disk models."""
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

KIB = 1024
MIB = 1024 * KIB
GIB = 1024 * MIB
TIB = 1024 * GIB


class DiskType(Enum):
    """Disk technology type."""
    NVME = "nvme"
    SSD = "ssd"
    HDD = "hdd"
    USB = "usb"
    UNKNOWN = "unknown"

    @property
    def label(self) -> str:
        return {
            DiskType.NVME: "NVMe",
            DiskType.SSD: "SSD",
            DiskType.HDD: "HDD",
            DiskType.USB: "USB",
        }.get(self, "Unknown")


class SizeCategory(Enum):
    """Coarse size bucket used for display and heuristics."""
    SMALL = "small"    # < 256GiB
    MEDIUM = "medium"  # < 1TiB
    LARGE = "large"    # >= 1TiB

    @property
    def label(self) -> str:
        return {
            SizeCategory.SMALL: "Small (<256GB)",
            SizeCategory.MEDIUM: "Medium (256GB-1TB)",
            SizeCategory.LARGE: "Large (>1TB)",
        }[self]


def format_bytes(size: int) -> str:
    """Human-readable size using binary (1024-based) units."""
    if size >= TIB:
        return f"{size / TIB:.2f} TB"
    if size >= GIB:
        return f"{size / GIB:.2f} GB"
    if size >= MIB:
        return f"{size / MIB:.2f} MB"
    if size >= KIB:
        return f"{size / KIB:.2f} KB"
    return f"{size} B"


def categorize_size(size: int) -> SizeCategory:
    if size < 256 * GIB:
        return SizeCategory.SMALL
    if size < TIB:
        return SizeCategory.MEDIUM
    return SizeCategory.LARGE


@dataclass(frozen=True)
class Partition:
    """A partition on a physical disk."""
    name: str
    size_bytes: int = 0
    filesystem: str = ""
    mountpoint: str = ""
    label: str = ""
    uuid: str = ""

    @property
    def size_human(self) -> str:
        return format_bytes(self.size_bytes)


@dataclass(frozen=True)
class Disk:
    """Represents a physical (or loopback) disk in the system.

    Instances are immutable so strategies and disk assignments can hold
    references to them without copying.
    """
    name: str                 # sda, nvme0n1
    path: str                 # /dev/sda
    size_bytes: int           # Total size
    disk_type: DiskType       # NVME/SSD/HDD/USB
    model: str = ""           # Manufacturer model
    serial: str = ""          # Serial number
    rotational: bool = False  # True for spinning disks
    removable: bool = False   # True for USB sticks and card readers
    transport: str = ""       # sata, nvme, usb, loop
    partitions: Tuple[Partition, ...] = ()
    is_os_disk: bool = False  # A partition mounts at /
    is_available: bool = False  # Blank and safe to claim

    @property
    def size_human(self) -> str:
        """Human-readable size."""
        return format_bytes(self.size_bytes)

    @property
    def size_category(self) -> SizeCategory:
        return categorize_size(self.size_bytes)

    @property
    def is_fast(self) -> bool:
        """True if disk is fast (NVMe or SSD)."""
        return self.disk_type in (DiskType.NVME, DiskType.SSD)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": self.path,
            "size": self.size_bytes,
            "size_human": self.size_human,
            "size_category": self.size_category.value,
            "type": self.disk_type.label,
            "model": self.model,
            "serial": self.serial,
            "rotational": self.rotational,
            "removable": self.removable,
            "transport": self.transport,
            "is_os_disk": self.is_os_disk,
            "is_available": self.is_available,
            "partitions": [
                {
                    "name": p.name,
                    "size": p.size_bytes,
                    "fstype": p.filesystem,
                    "mountpoint": p.mountpoint,
                    "label": p.label,
                    "uuid": p.uuid,
                }
                for p in self.partitions
            ],
        }


@dataclass(frozen=True)
class SystemInfo:
    """Host facts that feed the recommendation engine."""
    total_ram: int = 0              # Bytes
    has_hardware_raid: bool = False

    @property
    def total_ram_gb(self) -> float:
        return round(self.total_ram / GIB, 1)
