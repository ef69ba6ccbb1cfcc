"""Single-step disk operations.

Each public method performs one OS action (or narrates it in dry run) and
returns an OperationResult instead of raising, so the applicator can keep
going after a failed step and report everything at the end.
"""
import os
import shutil
import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from servctl.core.config import ServctlConfig, get_config
from servctl.core.logger import get_logger
from servctl.models.disk import Disk
from servctl.models.errors import (
    ServctlError,
    StepFailure,
    ToolUnavailable,
    UnsupportedConfiguration,
)
from servctl.models.filesystem import FilesystemType, get_filesystem_option
from servctl.models.strategy import (
    BACKUP_SCHEDULES,
    DEFAULT_SCHEDULE,
    LogEvent,
    OperationResult,
    cron_expression,
    describe_schedule,
)

logger = get_logger(__name__)

DRY_RUN = "[Dry Run]"

FSTAB_OPTIONS = "defaults,noatime"
MERGERFS_OPTIONS = "defaults,allow_other,use_ino,cache.files=partial,dropcacheonclose=true"

MIRROR_POOL = "servctl_pool"
MDADM_DEVICE = "/dev/md0"
BACKUP_JOB = "servctl-backup"

# Package that provides each external tool (Debian/Ubuntu names)
REMEDIATION = {
    "mkfs.ext4": "sudo apt install e2fsprogs",
    "mkfs.xfs": "sudo apt install xfsprogs",
    "mkfs.btrfs": "sudo apt install btrfs-progs",
    "zpool": "sudo apt install zfsutils-linux",
    "mdadm": "sudo apt install mdadm",
    "mergerfs": "sudo apt install mergerfs",
    "mount": "sudo apt install mount",
    "hdparm": "sudo apt install hdparm",
}


class DiskOperator:
    """Runs format, mount and persistence steps against the host."""

    def __init__(self, config: Optional[ServctlConfig] = None,
                 run_cmd: Optional[Callable] = None,
                 which: Callable[[str], Optional[str]] = shutil.which,
                 ismount: Callable[[str], bool] = os.path.ismount):
        self.config = config or get_config()
        self.run_cmd = run_cmd or subprocess.run
        self.which = which
        self.ismount = ismount

    @property
    def fstab(self) -> Path:
        return Path(self.config.fstab_path)

    # -----------------------------
    #  Steps
    # -----------------------------
    def format_disk(self, device: str, fs_type: FilesystemType, label: str,
                    dry_run: bool = False) -> OperationResult:
        """Create a filesystem on ``device``. Destroys existing data."""
        cmd = get_filesystem_option(fs_type).mkfs_command(device, label)
        if dry_run:
            return OperationResult.ok(f"{DRY_RUN} Would run: {' '.join(cmd)}")

        try:
            self.run(cmd, timeout=self.config.command_timeout)
        except ServctlError as e:
            return OperationResult.failed(e)

        logger.info(f"Formatted {device} as {fs_type.value}")
        return OperationResult.ok(
            f"Formatted {device} as {fs_type.value} (label {label})",
            LogEvent("debug", f"Ran: {' '.join(cmd)}"),
            LogEvent("info", f"Formatted {device} as {fs_type.value} (label {label})"),
        )

    def create_mount_point(self, path: str, dry_run: bool = False) -> OperationResult:
        if os.path.isdir(path):
            return OperationResult.ok(f"Mount point {path} already exists", skipped=True)
        if dry_run:
            return OperationResult.ok(f"{DRY_RUN} Would create: {path}")

        try:
            os.makedirs(path, mode=0o755, exist_ok=True)
        except OSError as e:
            return OperationResult.failed(StepFailure(f"Failed to create {path}", str(e)))
        return OperationResult.ok(f"Created: {path}")

    def mount_disk(self, device: str, mount_point: str, dry_run: bool = False) -> OperationResult:
        if self.is_mounted(mount_point):
            return OperationResult.ok(f"{mount_point} is already mounted", skipped=True)
        if dry_run:
            return OperationResult.ok(f"{DRY_RUN} Would mount {device} at {mount_point}")

        try:
            self.run(["mount", device, mount_point])
        except ServctlError as e:
            return OperationResult.failed(e)
        return OperationResult.ok(f"Mounted {device} at {mount_point}")

    def add_fstab_entry(self, device: str, mount_point: str, filesystem: str,
                        dry_run: bool = False) -> OperationResult:
        """Persist a mount, keyed by mount point so re-runs add nothing."""
        try:
            present = self.fstab_has(mount_point)
        except OSError as e:
            if not dry_run:
                return OperationResult.failed(StepFailure(f"Failed to read {self.fstab}", str(e)))
            present = False

        if present:
            return OperationResult.ok(
                f"fstab entry for {mount_point} already present", skipped=True,
            )

        if dry_run:
            line = self._fstab_line(device, mount_point, filesystem)
            return OperationResult.ok(f"{DRY_RUN} Would add to {self.fstab}: {line}")

        source = self.resolve_uuid(device)
        line = self._fstab_line(source, mount_point, filesystem)
        try:
            self._append_fstab(line)
        except OSError as e:
            return OperationResult.failed(StepFailure(f"Failed to update {self.fstab}", str(e)))

        return OperationResult.ok(
            f"Added {mount_point} to {self.fstab}",
            LogEvent("debug", f"fstab: {line}"),
            LogEvent("info", f"Added {mount_point} to {self.fstab}"),
        )

    def setup_mergerfs(self, sources: Sequence[str], mount_point: str, policy: str,
                       dry_run: bool = False) -> OperationResult:
        """Add (and mount) a mergerfs pool over ``sources``."""
        if not sources:
            return OperationResult.failed(UnsupportedConfiguration(
                f"MergerFS pool {mount_point} needs at least one branch"
            ))
        line =(f"{':'.join(sources)} {mount_point} fuse.mergerfs "
                f"{MERGERFS_OPTIONS},category.create={policy} 0 0")

        try:
            present = self.fstab_has(mount_point)
        except OSError as e:
            if not dry_run:
                return OperationResult.failed(StepFailure(f"Failed to read {self.fstab}", str(e)))
            present = False

        if present:
            return OperationResult.ok(f"MergerFS entry for {mount_point} already present", skipped=True)

        if dry_run:
            events = [LogEvent("info", f"{DRY_RUN} Would add MergerFS entry: {line}")]
            if not self.which("mergerfs"):
                events.append(LogEvent("warning", str(ToolUnavailable("mergerfs", REMEDIATION["mergerfs"]))))
            return OperationResult.ok(events[0].message, *events)

        if not self.which("mergerfs"):
            return OperationResult.failed(ToolUnavailable("mergerfs", REMEDIATION["mergerfs"]))

        try:
            self._append_fstab(line)
        except OSError as e:
            return OperationResult.failed(StepFailure(f"Failed to update {self.fstab}", str(e)))

        events = [LogEvent("debug", f"fstab: {line}")]
        if not self.is_mounted(mount_point):
            try:
                self.run(["mount", mount_point])
            except ServctlError as e:
                return OperationResult.failed(e, *events, LogEvent("error", str(e)))

        message = f"MergerFS: {':'.join(sources)} → {mount_point}"
        return OperationResult.ok(message, *events, LogEvent("info", message))

    def setup_mirror(self, disks: Sequence[Disk], mount_point: str,
                     fs_type: FilesystemType = FilesystemType.EXT4, label: str = "servctl_data",
                     dry_run: bool = False) -> OperationResult:
        """Build a two-way mirror, preferring ZFS over mdadm."""
        if len(disks) < 2:
            return OperationResult.failed(
                UnsupportedConfiguration(f"Mirror requires at least 2 disks, got {len(disks)}")
            )
        if self.is_mounted(mount_point):
            return OperationResult.ok(f"{mount_point} is already mounted", skipped=True)

        paths = [d.path for d in disks]
        if self.which("zpool"):
            return self._zfs_mirror(paths, mount_point, dry_run)
        if self.which("mdadm"):
            return self._mdadm_mirror(paths, mount_point, fs_type, label, dry_run)

        error = ToolUnavailable("zpool or mdadm", f"{REMEDIATION['zpool']} (or {REMEDIATION['mdadm']})")
        if dry_run:
            message = f"{DRY_RUN} Would build a mirror of {'+'.join(paths)} at {mount_point}"
            return OperationResult.ok(message, LogEvent("info", message), LogEvent("warning", str(error)))
        return OperationResult.failed(error)

    def setup_backup_job(self, source: str, dest: str, schedule: str = DEFAULT_SCHEDULE,
                         dry_run: bool = False) -> OperationResult:
        """Write the rsync script and its cron entry, keyed by job name."""
        events = []
        if schedule not in BACKUP_SCHEDULES:
            events.append(LogEvent(
                "warning", f"Unknown backup schedule {schedule!r}, using {DEFAULT_SCHEDULE}",
            ))
            schedule = DEFAULT_SCHEDULE

        script_path = Path(self.config.script_dir) / f"{BACKUP_JOB}.sh"
        cron_path = Path(self.config.cron_dir) / BACKUP_JOB
        script = self._backup_script(source, dest)
        cron_line = f"{cron_expression(schedule)} root {script_path}\n"

        if _read_text(cron_path) == cron_line and _read_text(script_path) == script:
            message = f"Backup job {BACKUP_JOB} already present"
            return OperationResult.ok(message, *events, LogEvent("info", message), skipped=True)

        if dry_run:
            message = (f"{DRY_RUN} Would create backup job {BACKUP_JOB} "
                       f"({describe_schedule(schedule)}): {source} → {dest}")
            return OperationResult.ok(message, *events, LogEvent("info", message))

        try:
            script_path.parent.mkdir(parents=True, exist_ok=True)
            script_path.write_text(script)
            os.chmod(script_path, 0o755)
            cron_path.parent.mkdir(parents=True, exist_ok=True)
            cron_path.write_text(cron_line)
        except OSError as e:
            error = StepFailure(f"Failed to write backup job {BACKUP_JOB}", str(e))
            return OperationResult.failed(error, *events, LogEvent("error", str(error)))

        message = f"Backup cron: {source} → {dest} ({schedule})"
        return OperationResult.ok(
            message, *events,
            LogEvent("debug", f"Wrote {script_path} and {cron_path}"),
            LogEvent("info", message),
        )

    # -----------------------------
    #  Queries
    # -----------------------------
    def is_mounted(self, mount_point: str) -> bool:
        return self.ismount(mount_point)

    def fstab_has(self, mount_point: str) -> bool:
        """True if an active fstab line mounts at ``mount_point``.

        Raises:
            OSError: the mount table cannot be read
        """
        with open(self.fstab) as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                parts = line.split()
                if len(parts) >= 2 and parts[1] == mount_point:
                    return True
        return False

    def resolve_uuid(self, device: str) -> str:
        """``UUID=<uuid>`` for ``device``, or the device path if blkid has none."""
        try:
            result = self.run(["blkid", "-s", "UUID", "-o", "value", device])
        except ServctlError as e:
            logger.debug(f"No UUID for {device}: {e}")
            return device
        uuid = (result.stdout or "").strip()
        return f"UUID={uuid}" if uuid else device

    # -----------------------------
    #  Internals
    # -----------------------------
    def _zfs_mirror(self, paths: List[str], mount_point: str, dry_run: bool) -> OperationResult:
        cmd = ["zpool", "create", "-f", "-m", mount_point, MIRROR_POOL, "mirror", *paths]
        if dry_run:
            return OperationResult.ok(f"{DRY_RUN} Would run: {' '.join(cmd)}")
        try:
            self.run(cmd, timeout=self.config.command_timeout)
        except ServctlError as e:
            return OperationResult.failed(e)
        return OperationResult.ok(f"ZFS mirror: {'+'.join(paths)} → {mount_point}")

    def _mdadm_mirror(self, paths: List[str], mount_point: str, fs_type: FilesystemType,
                      label: str, dry_run: bool) -> OperationResult:
        cmd = ["mdadm", "--create", MDADM_DEVICE, "--run", "--level=1",
               f"--raid-devices={len(paths)}", *paths]
        if dry_run:
            return OperationResult.ok(
                f"{DRY_RUN} Would run: {' '.join(cmd)}",
                LogEvent("info", f"{DRY_RUN} Would run: {' '.join(cmd)}"),
                LogEvent("info", f"{DRY_RUN} Would format {MDADM_DEVICE} and mount it at {mount_point}"),
            )

        try:
            self.run(cmd, timeout=self.config.command_timeout)
        except ServctlError as e:
            return OperationResult.failed(e)

        events = [LogEvent("info", f"Created {MDADM_DEVICE} from {'+'.join(paths)}")]
        for step in (
            lambda: self.format_disk(MDADM_DEVICE, fs_type, label),
            lambda: self.create_mount_point(mount_point),
            lambda: self.mount_disk(MDADM_DEVICE, mount_point),
            lambda: self.add_fstab_entry(MDADM_DEVICE, mount_point, fs_type.value),
        ):
            result = step()
            events.extend(result.events)
            if not result.success:
                return OperationResult.failed(result.error, *events)

        message = f"MDADM RAID1: {'+'.join(paths)} → {mount_point}"
        return OperationResult.ok(message, *events, LogEvent("info", message))

    def run(self, cmd: List[str], timeout: Optional[int] = None) -> subprocess.CompletedProcess:
        """Run one external tool, translating failures to servctl errors."""
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            return self.run_cmd(cmd, capture_output=True, text=True, check=True, timeout=timeout)
        except FileNotFoundError as e:
            raise ToolUnavailable(cmd[0], REMEDIATION.get(cmd[0], f"install {cmd[0]}")) from e
        except subprocess.CalledProcessError as e:
            output = e.stderr or e.stdout or ""
            raise StepFailure(f"{cmd[0]} failed (exit {e.returncode})", output) from e
        except subprocess.TimeoutExpired as e:
            raise StepFailure(f"{cmd[0]} timed out after {e.timeout}s") from e

    def _append_fstab(self, line: str):
        if self.fstab.exists():
            shutil.copy2(self.fstab, f"{self.fstab}.bak")
        with open(self.fstab, "a") as f:
            f.write(line + "\n")

    @staticmethod
    def _fstab_line(source: str, mount_point: str, filesystem: str) -> str:
        return f"{source}  {mount_point}  {filesystem}  {FSTAB_OPTIONS}  0  2"

    def _backup_script(self, source: str, dest: str) -> str:
        return (
            "#!/bin/bash\n"
            "# servctl automated backup\n"
            f"rsync -av --delete {source}/ {dest}/\n"
            f'echo "$(date): Backup completed" >> {self.config.backup_log}\n'
        )


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text()
    except OSError:
        return None
