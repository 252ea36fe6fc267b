"""
Utility modules for TaleForge
"""

from .locks import KeyedLock
from .logger import get_logger, setup_logging

__all__ = [
    "KeyedLock",
    "get_logger",
    "setup_logging",
]
