"""Data models for servctl."""
from servctl.models.disk import Disk, DiskType, Partition, SizeCategory, SystemInfo
from servctl.models.errors import (
    EnumerationError,
    ServctlError,
    StepFailure,
    ToolUnavailable,
    UnsupportedConfiguration,
)
from servctl.models.filesystem import FilesystemOption, FilesystemType
from servctl.models.recommendation import (
    ClassificationResult,
    DiskAssignment,
    DiskScenario,
    StorageRank,
    StorageRecommendation,
)
from servctl.models.strategy import (
    LogEvent,
    OperationResult,
    SpeedClass,
    Strategy,
    StrategyConfig,
    StrategyID,
)

__all__ = [
    'Disk',
    'DiskType',
    'Partition',
    'SizeCategory',
    'SystemInfo',
    'ServctlError',
    'EnumerationError',
    'UnsupportedConfiguration',
    'ToolUnavailable',
    'StepFailure',
    'FilesystemOption',
    'FilesystemType',
    'ClassificationResult',
    'DiskAssignment',
    'DiskScenario',
    'StorageRank',
    'StorageRecommendation',
    'LogEvent',
    'OperationResult',
    'SpeedClass',
    'Strategy',
    'StrategyConfig',
    'StrategyID',
]
