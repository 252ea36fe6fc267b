"""
Database package for TaleForge.

This package provides SQLite-based persistence for users, adventures, turns
and anonymous rate-limit counters.
"""

from .manager import DatabaseManager, StaleWriteError

__all__ = ["DatabaseManager", "StaleWriteError"]
