"""Tests for host fact detection."""
from servctl.discovery.hwdetect import MOCK_RAM, SystemDetector, detect_system_info
from servctl.models.disk import GIB

from conftest import make_disk


class TestSystemDetector:
    def test_memory_from_probe(self):
        detector = SystemDetector(mock=False, memory_probe=lambda: 32 * GIB)
        info = detector.detect([])
        assert info.total_ram == 32 * GIB
        assert info.total_ram_gb == 32

    def test_mock_memory(self):
        detector = SystemDetector(mock=True, memory_probe=lambda: 1)
        assert detector.detect([]).total_ram == MOCK_RAM

    def test_mock_from_env(self, monkeypatch):
        monkeypatch.setenv("SERVCTL_MOCK", "1")
        assert detect_system_info([]).total_ram == MOCK_RAM

    def test_probe_failure_reports_zero(self):
        def broken():
            raise OSError("no /proc/meminfo")

        info = SystemDetector(mock=False, memory_probe=broken).detect([])
        assert info.total_ram == 0

    def test_psutil_probe(self):
        """The real probe should return something positive on any host."""
        assert SystemDetector(mock=False).detect([]).total_ram > 0

    def test_hardware_raid_from_models(self):
        disks = [make_disk("sdb", model="LSI MegaRAID SAS"), make_disk("sdc")]
        info = SystemDetector(mock=False, memory_probe=lambda: GIB).detect(disks)
        assert info.has_hardware_raid

    def test_os_disk_ignored_for_raid(self):
        os_disk = make_disk("sda", model="PERC H730", is_os_disk=True)
        info = SystemDetector(mock=False, memory_probe=lambda: GIB).detect([os_disk])
        assert not info.has_hardware_raid

    def test_custom_raid_detector(self):
        detector = SystemDetector(mock=False, memory_probe=lambda: GIB, raid_detector=lambda d: True)
        assert detector.detect([make_disk("sdb")]).has_hardware_raid

    def test_detect_all(self):
        detector = SystemDetector(mock=False, memory_probe=lambda: 8 * GIB)
        facts = detector.detect_all([make_disk("sdb")])
        assert facts == {
            "memory": {"total_bytes": 8 * GIB, "total_gb": 8},
            "hardware_raid": False,
        }
