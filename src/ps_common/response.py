"""Unified API response wrapper.

All API endpoints return this format:
{
    "code": 0,           // 0=success, non-0=error code
    "message": "success",
    "data": { ... },     // null on error
    "warnings": [],      // non-fatal collaborator problems (payment gateway down, ...)
    "timestamp": "...",
    "request_id": "..."
}

The sync client relies on ``timestamp`` being the server clock at response time.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from pydantic import BaseModel, Field


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    warnings: list[str] = Field(default_factory=list)
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: str = Field(default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}")


def success_response(data: Any = None, warnings: list[str] | None = None) -> ApiResponse:
    return ApiResponse(code=0, message="success", data=data, warnings=warnings or [])


def error_response(code: int, message: str) -> ApiResponse:
    return ApiResponse(code=code, message=message, data=None)


def respond(request: Request, data: Any = None, warnings: list[str] | None = None) -> ApiResponse:
    """Wrap ``data`` and carry over the request_id injected by RequestLogMiddleware."""
    resp = success_response(data, warnings)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
