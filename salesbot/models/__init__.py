"""
Models module for Pydantic data models.

This module contains all Pydantic models used for request/response validation,
tool argument schemas and data exchanged between the layers.
"""

from salesbot.models.base import ArgumentsModel, ListResponseModel, ResponseModel
from salesbot.models.errors import HTTPDetail, HTTPException

__all__ = [
    "ArgumentsModel",
    "ResponseModel",
    "ListResponseModel",
    "HTTPDetail",
    "HTTPException",
]
