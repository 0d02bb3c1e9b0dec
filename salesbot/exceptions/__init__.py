"""
Exceptions module for custom application exceptions.

This module contains all custom exception classes that extend from AppException
and are used throughout the application for error handling.
"""

from salesbot.exceptions.app import (
    AppException,
    ErrorTypes,
    UnauthorizedException,
    UnknownAppException,
)

__all__ = [
    "AppException",
    "ErrorTypes",
    "UnauthorizedException",
    "UnknownAppException",
]
