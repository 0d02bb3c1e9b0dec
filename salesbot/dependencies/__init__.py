"""
FastAPI dependencies for dependency injection.

This module contains reusable dependencies for FastAPI endpoints
including authentication, database access, and service initialization.
"""

from salesbot.dependencies.auth import CurrentUserDep
from salesbot.dependencies.common import DatabasePoolDep, SettingsDep

__all__ = [
    "CurrentUserDep",
    "DatabasePoolDep",
    "SettingsDep",
]
