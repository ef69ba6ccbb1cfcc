"""Block device scanner.

Turns ``lsblk`` JSON into immutable :class:`Disk` records. lsblk output
differs between versions (sizes as strings or numbers, booleans as
"0"/"1" or true/false, ``mountpoint`` vs ``mountpoints``), so every field
goes through a permissive coercion that falls back to a zero value.
"""
import json
import math
import subprocess
from typing import Any, Callable, Dict, List, Optional

from servctl.core.config import get_config, is_mock
from servctl.core.logger import get_logger
from servctl.models.disk import GIB, MIB, TIB, Disk, DiskType, Partition
from servctl.models.errors import EnumerationError

logger = get_logger(__name__)

LSBLK_COLUMNS = "NAME,SIZE,TYPE,MODEL,SERIAL,ROTA,RM,TRAN,MOUNTPOINT,FSTYPE,LABEL,UUID"

# Loop devices smaller than this are snap/squashfs images, not test disks
MIN_LOOP_SIZE = 100 * MIB

LOOP_MODEL = "Virtual Disk (loopback)"


def as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def as_bool(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true")
    return False


def as_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    if isinstance(value, (int, float)):
        return max(int(value), 0)
    if isinstance(value, str):
        text = value.strip()
        if text.isdecimal():
            return int(text)
    return 0


def _mountpoint(device: Dict[str, Any]) -> str:
    """Single mount point, accepting the newer ``mountpoints`` array."""
    if device.get("mountpoint") is not None:
        return as_str(device.get("mountpoint"))
    mountpoints = device.get("mountpoints")
    if isinstance(mountpoints, list):
        for mp in mountpoints:
            if mp:
                return as_str(mp)
    return ""


def _mounts_root(device: Dict[str, Any]) -> bool:
    """True if the device or anything stacked on it (LVM, crypt) mounts at /."""
    if _mountpoint(device) == "/":
        return True
    children = device.get("children")
    if isinstance(children, list):
        return any(isinstance(c, dict) and _mounts_root(c) for c in children)
    return False


def classify_disk_type(name: str, transport: str, rotational: bool, removable: bool) -> DiskType:
    """Detect disk type. First match wins, so removable NVMe enclosures count as USB."""
    if (name.startswith("nvme") or transport == "nvme") and not removable:
        return DiskType.NVME
    if transport == "usb" or removable:
        return DiskType.USB
    if rotational:
        return DiskType.HDD
    return DiskType.SSD


def parse_device(device: Dict[str, Any]) -> Disk:
    """Convert one lsblk device entry into a Disk."""
    name = as_str(device.get("name"))
    transport = as_str(device.get("tran"))
    rotational = as_bool(device.get("rota"))
    removable = as_bool(device.get("rm"))

    partitions = []
    is_os_disk = False
    children = device.get("children")
    for child in children if isinstance(children, list) else []:
        if not isinstance(child, dict) or as_str(child.get("type")) != "part":
            continue
        partitions.append(Partition(
            name=as_str(child.get("name")),
            size_bytes=as_int(child.get("size")),
            filesystem=as_str(child.get("fstype")),
            mountpoint=_mountpoint(child),
            label=as_str(child.get("label")),
            uuid=as_str(child.get("uuid")),
        ))
        if _mounts_root(child):
            is_os_disk = True

    is_loop = as_str(device.get("type")) == "loop"
    is_available = not is_os_disk and not removable and not partitions

    return Disk(
        name=name,
        path=f"/dev/{name}",
        size_bytes=as_int(device.get("size")),
        disk_type=classify_disk_type(name, transport, rotational, removable),
        model=LOOP_MODEL if is_loop else as_str(device.get("model")).strip(),
        serial=as_str(device.get("serial")).strip(),
        rotational=rotational,
        removable=removable,
        transport="loop" if is_loop else transport,
        partitions=tuple(partitions),
        is_os_disk=is_os_disk,
        is_available=True if is_loop else is_available,
    )


def parse_lsblk(payload: Any) -> List[Disk]:
    """Parse decoded ``lsblk -J`` output. Malformed entries are skipped."""
    if not isinstance(payload, dict) or not isinstance(payload.get("blockdevices"), list):
        raise EnumerationError("lsblk output has no 'blockdevices' list")

    disks = []
    for device in payload["blockdevices"]:
        if not isinstance(device, dict):
            logger.warning(f"Skipping malformed lsblk entry: {device!r}")
            continue

        device_type = as_str(device.get("type"))
        if device_type not in ("disk", "loop"):
            continue
        if device_type == "loop" and as_int(device.get("size")) < MIN_LOOP_SIZE:
            continue
        if not as_str(device.get("name")):
            logger.warning("Skipping lsblk entry without a name")
            continue

        try:
            disks.append(parse_device(device))
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Skipping unparseable device {device.get('name')}: {e}")

    return disks


class DiskInventory:
    """Discover the block devices on this host."""

    def __init__(self, mock: Optional[bool] = None, run_cmd: Optional[Callable] = None):
        self.mock = is_mock() if mock is None else mock
        self.run_cmd = run_cmd or subprocess.run

    def discover(self) -> List[Disk]:
        """Discover all disks. Read-only.

        Raises:
            EnumerationError: lsblk is missing, fails, or prints garbage
        """
        if self.mock:
            return self._mock_disks()

        cmd = ["lsblk", "-J", "-b", "-o", LSBLK_COLUMNS]
        try:
            result = self.run_cmd(
                cmd, capture_output=True, text=True, check=True,
                timeout=get_config().lsblk_timeout,
            )
        except FileNotFoundError as e:
            raise EnumerationError("lsblk not found; install util-linux") from e
        except subprocess.CalledProcessError as e:
            raise EnumerationError(f"Failed to run lsblk: {(e.stderr or '').strip() or e}") from e
        except subprocess.TimeoutExpired as e:
            raise EnumerationError(f"lsblk timed out after {e.timeout}s") from e

        try:
            payload = json.loads(result.stdout)
        except (TypeError, json.JSONDecodeError) as e:
            raise EnumerationError(f"Failed to parse lsblk output: {e}") from e

        disks = parse_lsblk(payload)
        logger.debug(f"Discovered {len(disks)} disk(s)")
        return disks

    def _mock_disks(self) -> List[Disk]:
        """Mock disk data for testing."""
        root = Partition(name="sda2", size_bytes=465 * GIB, filesystem="ext4", mountpoint="/")
        boot = Partition(name="sda1", size_bytes=512 * MIB, filesystem="vfat", mountpoint="/boot/efi")
        usb = Partition(name="sdd1", size_bytes=32 * GIB, filesystem="vfat", label="USBSTICK")
        return [
            Disk(
                name="sda", path="/dev/sda", size_bytes=466 * GIB, disk_type=DiskType.SSD,
                model="Samsung SSD 870 EVO", serial="S5Y1NX0", transport="sata",
                partitions=(boot, root), is_os_disk=True,
            ),
            Disk(
                name="nvme0n1", path="/dev/nvme0n1", size_bytes=2 * TIB, disk_type=DiskType.NVME,
                model="Samsung 990 PRO", serial="S123456", transport="nvme", is_available=True,
            ),
            Disk(
                name="sdb", path="/dev/sdb", size_bytes=8 * TIB, disk_type=DiskType.HDD,
                model="WD Red Plus", serial="WD123", rotational=True, transport="sata",
                is_available=True,
            ),
            Disk(
                name="sdc", path="/dev/sdc", size_bytes=8 * TIB, disk_type=DiskType.HDD,
                model="WD Red Plus", serial="WD124", rotational=True, transport="sata",
                is_available=True,
            ),
            Disk(
                name="sdd", path="/dev/sdd", size_bytes=32 * GIB, disk_type=DiskType.USB,
                model="SanDisk Ultra", serial="4C530001", removable=True, transport="usb",
                partitions=(usb,),
            ),
        ]


def discover() -> List[Disk]:
    """Discover disks with the default inventory."""
    return DiskInventory().discover()
