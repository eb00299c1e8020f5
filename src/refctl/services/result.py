"""ServiceResult and ServiceError — the outward contract of every service.

INVARIANT: Failures a user can cause (missing tools, closed bodies, nothing
under point) come back as ``ok=False`` results, never as exceptions, so an
activation can never crash the host.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(StrEnum):
    COLLABORATOR_MISSING = "COLLABORATOR_MISSING"
    MARKER_STALE = "MARKER_STALE"
    NO_MARKER = "NO_MARKER"
    INELIGIBLE_BODY = "INELIGIBLE_BODY"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Universal return type for service operations.

    Attributes:
        ok: Whether the operation succeeded.
        op: Operation name (``"scan"``, ``"activate"``, ...).
        data: Operation-specific payload.
        warnings: Non-fatal issues (timeouts, plugin failures).
        error: Set when ``ok`` is False.
        meta: Optional telemetry.
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None


def failure(op: str, code: ErrorCode, message: str, **detail: Any) -> ServiceResult:
    """Shorthand for an ``ok=False`` result."""
    return ServiceResult(
        ok=False,
        op=op,
        error=ServiceError(code=str(code), message=message, detail=detail),
    )
