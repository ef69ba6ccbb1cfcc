"""Unified logging for servctl with console and file output."""
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from servctl.models.strategy import OperationResult

console = Console()

# Log file configuration
LOG_DIR = Path("/var/log/servctl")
LOG_FILE = LOG_DIR / "servctl.log"

# Track if file logging has been set up
_file_logging_configured = False


def setup_file_logging(log_file: Optional[str] = None, verbose: bool = False) -> Path:
    """Set up file logging for servctl operations.

    Args:
        log_file: Path to log file (defaults to /var/log/servctl/servctl.log)
        verbose: Enable debug-level logging

    Returns:
        The log file actually in use

    Note:
        Falls back to /tmp if /var/log/servctl is not writable.
    """
    global _file_logging_configured

    target_log_file = Path(log_file) if log_file else LOG_FILE
    if _file_logging_configured:
        return target_log_file

    try:
        target_log_file.parent.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        target_log_file = Path("/tmp/servctl.log")
        target_log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger("servctl")
    file_handler = logging.FileHandler(target_log_file)
    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    root_logger.addHandler(file_handler)
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    _file_logging_configured = True
    root_logger.info(f"servctl logging initialized: {target_log_file}")
    return target_log_file


def get_logger(name: str) -> logging.Logger:
    """Get a configured logger instance with console output.

    File logging must be enabled separately via setup_file_logging().
    """
    logger = logging.getLogger(name)

    # Only add console handler if not already present
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

    return logger


# Per-step events from the applier. No console handler: the CLI prints
# results itself, so these reach only the file log.
STEP_LOGGER = "servctl.steps"

_EVENT_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def get_step_logger() -> logging.Logger:
    """Logger that records OperationResult events without console output."""
    logger = logging.getLogger(STEP_LOGGER)
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return logger


def log_result(result: "OperationResult", logger: Optional[logging.Logger] = None) -> None:
    """Forward each event of ``result`` at its own level."""
    logger = logger or get_step_logger()
    for event in result.events:
        logger.log(_EVENT_LEVELS.get(event.level, logging.INFO), event.message)
