"""Host facts that feed the recommendation engine."""
from typing import Any, Callable, Dict, Iterable, Optional

import psutil

from servctl.core.config import is_mock
from servctl.core.logger import get_logger
from servctl.discovery.classifier import filter_available, is_hardware_raid
from servctl.models.disk import GIB, Disk, SystemInfo

logger = get_logger(__name__)

MOCK_RAM = 16 * GIB


class SystemDetector:
    """
    Collects memory and controller facts for the strategy generator.
    RAM comes from psutil, the hardware RAID flag from the disk models.
    """

    def __init__(self, mock: Optional[bool] = None,
                 memory_probe: Optional[Callable[[], int]] = None,
                 raid_detector: Callable[[Disk], bool] = is_hardware_raid):
        self.mock = is_mock() if mock is None else mock
        self.memory_probe = memory_probe or self._probe_memory
        self.raid_detector = raid_detector

    # -----------------------------
    #  Core detection entry point
    # -----------------------------
    def detect(self, disks: Iterable[Disk]) -> SystemInfo:
        return SystemInfo(
            total_ram=self._detect_memory(),
            has_hardware_raid=self._detect_hardware_raid(disks),
        )

    def detect_all(self, disks: Iterable[Disk]) -> Dict[str, Any]:
        info = self.detect(disks)
        return {
            "memory": {"total_bytes": info.total_ram, "total_gb": info.total_ram_gb},
            "hardware_raid": info.has_hardware_raid,
        }

    # -----------------------------
    #  Individual detectors
    # -----------------------------
    def _detect_memory(self) -> int:
        if self.mock:
            return MOCK_RAM
        try:
            return max(int(self.memory_probe()), 0)
        except (OSError, ValueError, TypeError) as e:
            # Unknown RAM leaves the generator on the low-memory mirror
            logger.warning(f"Could not read total memory: {e}")
            return 0

    def _detect_hardware_raid(self, disks: Iterable[Disk]) -> bool:
        return any(self.raid_detector(d) for d in filter_available(disks))

    def _probe_memory(self) -> int:
        return psutil.virtual_memory().total


def detect_system_info(disks: Iterable[Disk]) -> SystemInfo:
    """Detect RAM and hardware RAID with the default detector."""
    return SystemDetector().detect(disks)
