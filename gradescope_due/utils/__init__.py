"""Utility modules for logging and storage."""

from .logger import setup_logger
from .database import Database, PersistenceError

__all__ = ["setup_logger", "Database", "PersistenceError"]
