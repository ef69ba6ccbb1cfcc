"""HDD power management (spindown and APM) via hdparm."""
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from servctl.core.disk_ops import DRY_RUN, REMEDIATION, DiskOperator
from servctl.core.logger import get_logger
from servctl.models.disk import Disk, DiskType
from servctl.models.errors import ServctlError, StepFailure, ToolUnavailable
from servctl.models.strategy import LogEvent, OperationResult

logger = get_logger(__name__)


@dataclass
class HDDPowerConfig:
    """hdparm settings for one disk.

    Attributes:
        disk_path: Device path, e.g. /dev/sdb
        spindown_time: ``hdparm -S`` value (241 = 30 minutes, 0 = never)
        apm_level: ``hdparm -B`` value (1-127 allows spindown)
    """
    disk_path: str
    spindown_time: int = 241
    apm_level: int = 127


@dataclass(frozen=True)
class SpindownPreset:
    name: str
    value: int    # hdparm -S value
    minutes: int


def spindown_presets() -> List[SpindownPreset]:
    return [
        SpindownPreset("5 minutes", 60, 5),
        SpindownPreset("10 minutes", 120, 10),
        SpindownPreset("20 minutes", 240, 20),
        SpindownPreset("30 minutes (Recommended)", 241, 30),
        SpindownPreset("1 hour", 242, 60),
        SpindownPreset("2 hours", 244, 120),
        SpindownPreset("Disabled", 0, 0),
    ]


class PowerManager:
    """Configure spindown for data HDDs and persist it in hdparm.conf."""

    def __init__(self, operator: Optional[DiskOperator] = None):
        self.ops = operator or DiskOperator()

    @property
    def hdparm_conf(self) -> Path:
        return Path(self.ops.config.hdparm_conf)

    def configure_spindown(self, config: HDDPowerConfig, dry_run: bool = False) -> OperationResult:
        """Apply spindown and APM settings to the running disk."""
        if dry_run:
            message = (f"{DRY_RUN} Would set {config.disk_path} spindown "
                       f"-S {config.spindown_time}, APM -B {config.apm_level}")
            return OperationResult.ok(message)

        if not self.ops.which("hdparm"):
            return OperationResult.failed(ToolUnavailable("hdparm", REMEDIATION["hdparm"]))

        try:
            self.ops.run(["hdparm", "-S", str(config.spindown_time), config.disk_path])
        except ServctlError as e:
            return OperationResult.failed(e)

        events = [LogEvent("info", f"Set spindown {config.spindown_time} on {config.disk_path}")]
        try:
            self.ops.run(["hdparm", "-B", str(config.apm_level), config.disk_path])
            events.append(LogEvent("info", f"Set APM {config.apm_level} on {config.disk_path}"))
        except ServctlError as e:
            # Many drives lack APM; spindown alone is still useful
            events.append(LogEvent("warning", f"APM not supported on {config.disk_path}: {e}"))

        return OperationResult.ok(f"Configured power management for {config.disk_path}", *events)

    def persist(self, config: HDDPowerConfig, dry_run: bool = False) -> OperationResult:
        """Add a hdparm.conf block for the disk unless one exists."""
        try:
            content = self.hdparm_conf.read_text()
        except FileNotFoundError:
            content = ""
        except OSError as e:
            return OperationResult.failed(StepFailure(f"Failed to read {self.hdparm_conf}", str(e)))

        if re.search(rf"^\s*{re.escape(config.disk_path)}\s*\{{", content, re.MULTILINE):
            return OperationResult.ok(
                f"hdparm.conf entry for {config.disk_path} already present", skipped=True,
            )

        block = (f"\n{config.disk_path} {{\n"
                 f"\tspindown_time = {config.spindown_time}\n"
                 f"\tapm = {config.apm_level}\n"
                 f"}}\n")
        if dry_run:
            return OperationResult.ok(f"{DRY_RUN} Would add {config.disk_path} to {self.hdparm_conf}")

        try:
            self.hdparm_conf.parent.mkdir(parents=True, exist_ok=True)
            with open(self.hdparm_conf, "a") as f:
                f.write(block)
        except OSError as e:
            return OperationResult.failed(StepFailure(f"Failed to update {self.hdparm_conf}", str(e)))
        return OperationResult.ok(f"Added {config.disk_path} to {self.hdparm_conf}")

    def configure_all(self, disks: Iterable[Disk], dry_run: bool = False) -> List[OperationResult]:
        """Configure every non-OS HDD with the default settings."""
        results = []
        for disk in disks:
            if disk.disk_type != DiskType.HDD or disk.is_os_disk:
                continue
            config = HDDPowerConfig(disk.path)
            applied = self.configure_spindown(config, dry_run)
            results.append(applied)
            if not applied.success:
                logger.warning(f"Failed to configure {disk.path}: {applied.message}")
                continue
            results.append(self.persist(config, dry_run))
        return results

    def power_status(self, disk_path: str) -> str:
        """Current power state reported by ``hdparm -C``."""
        try:
            output = self.ops.run(["hdparm", "-C", disk_path]).stdout or ""
        except ServctlError as e:
            logger.debug(f"hdparm -C {disk_path} failed: {e}")
            return "unknown"
        if "standby" in output:
            return "standby (spun down)"
        if "active/idle" in output:
            return "active/idle (spinning)"
        return "unknown"
