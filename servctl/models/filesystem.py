"""Filesystem choices offered for data disks."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class FilesystemType(Enum):
    EXT4 = "ext4"
    XFS = "xfs"
    BTRFS = "btrfs"
    ZFS = "zfs"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["FilesystemType"]:
        """Map a config string to a type, None if unknown."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


# Filesystems that can be created on a single block device with mkfs
FORMATTABLE = (FilesystemType.EXT4, FilesystemType.XFS, FilesystemType.BTRFS)


@dataclass
class FilesystemOption:
    """A filesystem choice with pros/cons for the selection UI."""
    fs_type: FilesystemType
    name: str
    description: str
    pros: List[str] = field(default_factory=list)
    cons: List[str] = field(default_factory=list)
    is_default: bool = False
    min_ram_gb_per_tb: int = 0

    @property
    def formattable(self) -> bool:
        """True if `servctl apply` can create it on a plain disk."""
        return self.fs_type in FORMATTABLE

    def to_dict(self) -> dict:
        return {
            "type": self.fs_type.value,
            "name": self.name,
            "description": self.description,
            "pros": list(self.pros),
            "cons": list(self.cons),
            "is_default": self.is_default,
            "min_ram_gb_per_tb": self.min_ram_gb_per_tb,
            "formattable": self.formattable,
        }

    def mkfs_command(self, device: str, label: str) -> List[str]:
        """Command that formats ``device`` with this filesystem."""
        if self.fs_type == FilesystemType.EXT4:
            return ["mkfs.ext4", "-F", "-L", label, device]
        if self.fs_type == FilesystemType.XFS:
            return ["mkfs.xfs", "-f", "-L", label, device]
        if self.fs_type == FilesystemType.BTRFS:
            return ["mkfs.btrfs", "-f", "-L", label, device]
        # ZFS builds a pool instead of a plain filesystem
        return ["zpool", "create", "-f", label, device]


FILESYSTEM_OPTIONS = [
    FilesystemOption(
        fs_type=FilesystemType.EXT4,
        name="ext4 (Recommended)",
        description="The most stable and widely-used Linux filesystem.",
        pros=[
            "Best stability & compatibility",
            "Native Linux, proven for 15+ years",
            "Excellent for SSDs and HDDs",
            "Fast fsck recovery",
        ],
        cons=["No built-in snapshots", "No compression"],
        is_default=True,
    ),
    FilesystemOption(
        fs_type=FilesystemType.XFS,
        name="XFS (High Performance)",
        description="High-performance filesystem, excellent for large files.",
        pros=[
            "Better for large files (media/video)",
            "Excellent parallel I/O",
            "Great for databases",
        ],
        cons=["Cannot shrink partitions", "Slower for small files"],
    ),
    FilesystemOption(
        fs_type=FilesystemType.BTRFS,
        name="Btrfs (Advanced Features)",
        description="Modern copy-on-write filesystem with advanced features.",
        pros=[
            "Snapshots & rollback",
            "Transparent compression",
            "Checksums for data integrity",
        ],
        cons=["More complex to manage", "RAID 5/6 still experimental"],
    ),
    FilesystemOption(
        fs_type=FilesystemType.ZFS,
        name="ZFS (Enterprise Grade)",
        description="Enterprise-grade filesystem with maximum data integrity.",
        pros=["Maximum data integrity", "Advanced caching (ARC/L2ARC)", "Best-in-class snapshots"],
        cons=["Requires more RAM (1GB per TB)", "Not in Linux kernel (license)"],
        min_ram_gb_per_tb=1,
    ),
]


def get_filesystem_option(fs_type: FilesystemType) -> FilesystemOption:
    for option in FILESYSTEM_OPTIONS:
        if option.fs_type == fs_type:
            return option
    raise KeyError(fs_type)
