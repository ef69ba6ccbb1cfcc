"""Disk discovery, classification and strategy recommendation."""
from servctl.discovery.classifier import classify_disks, filter_available
from servctl.discovery.hwdetect import SystemDetector, detect_system_info
from servctl.discovery.ranks import default_recommendation
from servctl.discovery.recommender import StrategyGenerator, generate_strategies, score_strategies
from servctl.discovery.scanner import DiskInventory, discover

__all__ = [
    'DiskInventory',
    'discover',
    'SystemDetector',
    'detect_system_info',
    'classify_disks',
    'filter_available',
    'default_recommendation',
    'StrategyGenerator',
    'generate_strategies',
    'score_strategies',
]
