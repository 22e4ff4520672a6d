"""
Response envelope shared by every endpoint.

Successful responses carry ``{"success": true, "message": ..., "data": ...}``;
failures carry ``{"success": false, "error": ...}``.
"""

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Successful response envelope."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class ErrorResponse(BaseModel):
    """Error response envelope."""

    success: bool = False
    error: str = Field(..., description="Human readable error message")
    details: Optional[Any] = Field(None, description="Field level validation errors")
