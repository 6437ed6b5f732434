"""Pydantic schemas for API requests and responses."""

from app.schemas.common import ApiResponse, ErrorResponse

__all__ = [
    "ApiResponse",
    "ErrorResponse",
]
