"""
Database Layer
Alert history persistence.
"""

from .sqlite import SQLiteAlertStore

__all__ = ["SQLiteAlertStore"]
