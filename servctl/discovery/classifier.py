"""Disk classification helpers.

Everything here is pure: functions take Disk records and return new lists
or flags without touching the host.
"""
from typing import Iterable, List, Optional

from servctl.discovery.ranks import build_recommendations
from servctl.models.disk import Disk, DiskType, format_bytes
from servctl.models.recommendation import ClassificationResult, DiskScenario
from servctl.models.strategy import SpeedClass

# Model substrings reported by RAID controllers for their virtual disks
HARDWARE_RAID_INDICATORS = (
    "virtual disk",
    "perc",
    "megaraid",
    "smartarray",
    "raid",
    "logical volume",
)


def filter_available(disks: Iterable[Disk]) -> List[Disk]:
    """Disks that may be claimed for data: not the OS disk, not removable."""
    return [d for d in disks if not d.is_os_disk and not d.removable]


def filter_by_type(disks: Iterable[Disk], disk_type: DiskType) -> List[Disk]:
    return [d for d in disks if d.disk_type == disk_type]


def is_hardware_raid(disk: Disk) -> bool:
    """Guess whether a disk is a RAID controller's virtual disk.

    Only used to keep software RAID off hardware that already mirrors.
    """
    model = disk.model.lower()
    return any(indicator in model for indicator in HARDWARE_RAID_INDICATORS)


def speed_class(disk: Disk) -> SpeedClass:
    return SpeedClass.FAST if disk.is_fast else SpeedClass.SLOW


def _size_difference(size_a: int, size_b: int) -> Optional[float]:
    if size_a <= 0 or size_b <= 0:
        return None
    larger, smaller = max(size_a, size_b), min(size_a, size_b)
    return (larger - smaller) / larger


def sizes_similar(size_a: int, size_b: int, threshold: float = 0.10) -> bool:
    """True if the sizes differ by at most ``threshold`` of the larger one."""
    diff = _size_difference(size_a, size_b)
    return diff is not None and diff <= threshold


def size_mismatch_large(size_a: int, size_b: int, threshold: float = 0.50) -> bool:
    """True if the sizes differ by more than ``threshold`` of the larger one."""
    diff = _size_difference(size_a, size_b)
    return diff is not None and diff > threshold


def get_os_disk(disks: Iterable[Disk]) -> Optional[Disk]:
    for disk in disks:
        if disk.is_os_disk:
            return disk
    return None


def sort_by_size(disks: Iterable[Disk]) -> List[Disk]:
    """Largest first; equal sizes keep their input order."""
    return sorted(disks, key=lambda d: d.size_bytes, reverse=True)


def total_capacity(disks: Iterable[Disk]) -> str:
    return format_bytes(sum(d.size_bytes for d in disks))


def classify_disks(disks: Iterable[Disk]) -> ClassificationResult:
    """Bucket the available disks and attach the 5 Ranks recommendations."""
    disks = list(disks)
    available = filter_available(disks)

    if len(available) >= 3:
        scenario = DiskScenario.MULTI_DISK
    elif len(available) == 2:
        scenario = DiskScenario.TWO_DISK
    else:
        scenario = DiskScenario.SINGLE_DISK

    result = ClassificationResult(
        scenario=scenario,
        os_disk=get_os_disk(disks),
        available=available,
        ssds=filter_by_type(available, DiskType.SSD),
        hdds=filter_by_type(available, DiskType.HDD),
        nvmes=filter_by_type(available, DiskType.NVME),
    )
    result.recommendations = build_recommendations(result)
    return result
