"""Single-instance locking for servctl apply runs.

Formatting disks from two processes at once would interleave destructive
operations, so `servctl apply` holds this lock for the whole run.
"""
import fcntl
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from servctl.core.config import get_config
from servctl.core.logger import get_logger

logger = get_logger(__name__)


class LockError(Exception):
    """Raised when unable to acquire lock."""
    pass


class ServctlLock:
    """File-based lock for preventing concurrent apply operations."""

    def __init__(self, lock_file: Optional[Path] = None, timeout: int = 0):
        """Initialize lock.

        Args:
            lock_file: Path to lock file (default: ServctlConfig.lock_file)
            timeout: Seconds to wait for lock (0 = fail immediately)
        """
        self.lock_file = Path(lock_file or get_config().lock_file)
        self.timeout = timeout
        self.lock_fd = None

    def acquire(self) -> bool:
        """Acquire the lock.

        Raises:
            LockError: If unable to acquire lock
        """
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)

        # Append mode keeps the holder's PID readable until we own the lock
        self.lock_fd = open(self.lock_file, 'a+')

        start_time = time.time()
        while True:
            try:
                fcntl.flock(self.lock_fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)

                self.lock_fd.seek(0)
                self.lock_fd.truncate()
                self.lock_fd.write(f"{os.getpid()}\n")
                self.lock_fd.write(f"{time.strftime('%Y-%m-%d %H:%M:%S')}\n")
                self.lock_fd.flush()

                logger.debug(f"Acquired lock: {self.lock_file}")
                return True

            except OSError:
                if self.timeout == 0 or time.time() - start_time >= self.timeout:
                    lock_info = self._read_lock_info()
                    self.lock_fd.close()
                    self.lock_fd = None
                    if self.timeout == 0:
                        raise LockError(
                            f"Another servctl operation is in progress.\n"
                            f"Lock held by PID {lock_info['pid']} since {lock_info['time']}\n"
                            f"Wait for the other operation to complete, or remove {self.lock_file} if stale."
                        )
                    raise LockError(
                        f"Timeout waiting for lock after {self.timeout}s.\n"
                        f"Lock held by PID {lock_info['pid']} since {lock_info['time']}"
                    )

                time.sleep(0.5)

    def release(self):
        """Release the lock and remove the lock file."""
        if self.lock_fd is None:
            return

        try:
            fcntl.flock(self.lock_fd.fileno(), fcntl.LOCK_UN)
            self.lock_fd.close()
            logger.debug(f"Released lock: {self.lock_file}")
        except OSError as e:
            logger.warning(f"Error releasing lock: {e}")
        finally:
            self.lock_fd = None

        try:
            if self.lock_file.exists():
                self.lock_file.unlink()
        except OSError as e:
            logger.warning(f"Error removing lock file: {e}")

    def _read_lock_info(self) -> dict:
        """Read info from lock file about who holds it."""
        try:
            with open(self.lock_file) as f:
                lines = f.readlines()
        except OSError:
            lines = []

        if len(lines) >= 2:
            return {'pid': lines[0].strip(), 'time': lines[1].strip()}
        return {'pid': 'unknown', 'time': 'unknown'}

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


@contextmanager
def apply_lock(timeout: int = 0, lock_file: Optional[Path] = None):
    """Context manager for apply operation locking.

    Usage:
        with apply_lock():
            applicator.apply(strategy, config, dry_run=False)

    Raises:
        LockError: If unable to acquire lock
    """
    lock = ServctlLock(lock_file=lock_file, timeout=timeout)
    lock.acquire()
    try:
        yield lock
    finally:
        lock.release()
