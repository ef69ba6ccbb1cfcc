"""servctl runtime configuration and settings."""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import yaml

from servctl.models.errors import UnsupportedConfiguration
from servctl.models.strategy import StrategyConfig


@dataclass
class ServctlConfig:
    """Host paths and timeouts used by the storage engine.

    Attributes:
        fstab_path: Mount table the applier appends to
        cron_dir: Directory holding scheduled job files
        script_dir: Where generated job scripts are written
        backup_log: Log file the backup script appends to
        hdparm_conf: Persistent HDD power settings
        mount_root: Parent directory for numbered per-disk mounts
        lock_file: Lock held while `servctl apply` runs
        lsblk_timeout: Timeout in seconds for disk enumeration (default: 10)
        command_timeout: Timeout in seconds for format/mirror commands (default: 600)
    """

    fstab_path: str = "/etc/fstab"
    cron_dir: str = "/etc/cron.d"
    script_dir: str = "/usr/local/bin"
    backup_log: str = "/var/log/servctl-backup.log"
    hdparm_conf: str = "/etc/hdparm.conf"
    mount_root: str = "/mnt"
    lock_file: str = "/var/run/servctl/apply.lock"

    lsblk_timeout: int = 10
    command_timeout: int = 600  # mkfs on a large HDD can take minutes

    @classmethod
    def from_env(cls) -> "ServctlConfig":
        """Create config from environment variables.

        Environment variables:
            SERVCTL_FSTAB, SERVCTL_CRON_DIR, SERVCTL_SCRIPT_DIR,
            SERVCTL_BACKUP_LOG, SERVCTL_HDPARM_CONF, SERVCTL_MOUNT_ROOT,
            SERVCTL_LOCK_FILE,
            SERVCTL_LSBLK_TIMEOUT, SERVCTL_COMMAND_TIMEOUT
        """
        return cls(
            fstab_path=os.getenv("SERVCTL_FSTAB", cls.fstab_path),
            cron_dir=os.getenv("SERVCTL_CRON_DIR", cls.cron_dir),
            script_dir=os.getenv("SERVCTL_SCRIPT_DIR", cls.script_dir),
            backup_log=os.getenv("SERVCTL_BACKUP_LOG", cls.backup_log),
            hdparm_conf=os.getenv("SERVCTL_HDPARM_CONF", cls.hdparm_conf),
            mount_root=os.getenv("SERVCTL_MOUNT_ROOT", cls.mount_root),
            lock_file=os.getenv("SERVCTL_LOCK_FILE", cls.lock_file),
            lsblk_timeout=int(os.getenv("SERVCTL_LSBLK_TIMEOUT", cls.lsblk_timeout)),
            command_timeout=int(os.getenv("SERVCTL_COMMAND_TIMEOUT", cls.command_timeout)),
        )


# Global config instance (can be overridden)
_config: Optional[ServctlConfig] = None


def get_config() -> ServctlConfig:
    """Get the global servctl configuration (created from the environment on first use)."""
    global _config
    if _config is None:
        _config = ServctlConfig.from_env()
    return _config


def set_config(config: Optional[ServctlConfig]):
    """Set the global servctl configuration. ``None`` resets to the environment."""
    global _config
    _config = config


def is_mock() -> bool:
    """Return True when discovery should use the built-in mock inventory."""
    return os.environ.get("SERVCTL_MOCK", "").lower() in ("1", "true")


def load_strategy_config(path: Union[str, Path]) -> StrategyConfig:
    """Load a StrategyConfig from a YAML file.

    The file may hold the keys at top level or under a ``storage`` section.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise UnsupportedConfiguration(f"{config_path}: expected a mapping, got {type(raw).__name__}")

    section = raw.get("storage", raw)
    if not isinstance(section, dict):
        raise UnsupportedConfiguration(f"{config_path}: 'storage' must be a mapping")

    return StrategyConfig.from_map(section)
