"""Exception types shared by the storage engine."""
from typing import Optional


class ServctlError(Exception):
    """Base class for servctl errors."""
    pass


class EnumerationError(ServctlError):
    """Raised when the disk or system probe fails or returns garbage."""
    pass


class UnsupportedConfiguration(ServctlError):
    """A strategy/config combination the engine refuses to execute."""
    pass


class ToolUnavailable(ServctlError):
    """A required external tool is not installed."""

    def __init__(self, tool: str, remediation: str = ""):
        self.tool = tool
        self.remediation = remediation
        message = f"{tool} not installed"
        if remediation:
            message += f". Run: {remediation}"
        super().__init__(message)


class StepFailure(ServctlError):
    """An individual OS call failed. Keeps the raw tool output."""

    def __init__(self, message: str, output: Optional[str] = None):
        self.output = (output or "").strip()
        if self.output:
            message = f"{message} - {self.output}"
        super().__init__(message)
