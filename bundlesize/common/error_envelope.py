"""Canonical error envelope used to surface a single failure message.

Structure:
{
  "error": {
    "code": "string",
    "message": "string",
    "details": {}
  }
}
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from bundlesize.common.errors import HistoryError


class ErrorDetail(BaseModel):
    """Canonical error detail structure."""
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ErrorEnvelope(BaseModel):
    error: ErrorDetail


def build_error_envelope(
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> ErrorEnvelope:
    """Construct an ErrorEnvelope (without raising)."""
    return ErrorEnvelope(error=ErrorDetail(code=code, message=message, details=details or {}))


def envelope_for(exc: BaseException) -> ErrorEnvelope:
    """Map any exception onto the envelope; unknown errors keep their class name as code."""
    if isinstance(exc, HistoryError):
        return build_error_envelope(exc.code, exc.message, exc.details)
    return build_error_envelope(
        code=f"unexpected.{exc.__class__.__name__}",
        message=str(exc) or exc.__class__.__name__,
    )


def format_error(exc: BaseException) -> str:
    """Single human-readable line for the process boundary."""
    detail = envelope_for(exc).error
    return f"[{detail.code}] {detail.message}"
