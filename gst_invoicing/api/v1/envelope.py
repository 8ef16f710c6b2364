# gst_invoicing/api/v1/envelope.py
"""
Standardized API response envelope used by all v1 JSON endpoints.

    {
        "status": "ok" | "error",
        "data": <payload>,
        "message": <optional string>,
        "errors": <optional list of detail dicts>
    }

PDF endpoints return the document itself; their failures still use the
error envelope.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    status: str = "ok"
    data: T | None = None
    message: str | None = None
    errors: list[dict[str, Any]] | None = None


def ok(data: Any = None, message: str | None = None) -> dict:
    """Build a success response dict."""
    return ApiResponse(status="ok", data=data, message=message).model_dump(mode="json")


def error(message: str, errors: list[dict[str, Any]] | None = None, status: str = "error") -> dict:
    """Build an error response dict."""
    return ApiResponse(status=status, message=message, errors=errors).model_dump(mode="json")
