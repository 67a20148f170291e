# ============================================================================
# Contract Runtime - API Response Models
# ============================================================================
"""
Pydantic models for the envelopes the runtime itself defines.

Resource records are served as plain JSON objects (their shape comes from the
loaded specifications), so only the shared envelopes live here:
- ErrorResponse: every non-2xx response
- ListResponse: every list endpoint
- HealthResponse / ManifestResponse: system endpoints
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standard error body.

    Attributes:
        code: Machine-readable error code (BAD_REQUEST, VALIDATION_ERROR, ...)
        message: Human-readable summary
        details: Field-level problems, when there are any
        failedGuard: Name of the guard that rejected a trigger call
        reason: Why that guard failed
    """
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[List[Dict[str, Any]]] = Field(default=None, description="Field-level error details")
    failedGuard: Optional[str] = Field(default=None, description="Guard that rejected the trigger")
    reason: Optional[str] = Field(default=None, description="Why the guard failed")


class ListResponse(BaseModel):
    """Pagination envelope returned by every list endpoint."""
    items: List[Dict[str, Any]] = Field(default_factory=list)
    total: int = Field(..., description="Records matching the query, across all pages")
    limit: int
    offset: int
    hasNext: bool

    @classmethod
    def page(cls, items: List[Dict[str, Any]], total: int, limit: int, offset: int) -> "ListResponse":
        return cls(items=items, total=total, limit=limit, offset=offset, hasNext=offset + limit < total)


class HealthResponse(BaseModel):
    status: str = Field(..., description="ok when every store answers, degraded otherwise")
    apis: List[str] = Field(default_factory=list)
    stores: Dict[str, Any] = Field(default_factory=dict)


class ManifestResponse(BaseModel):
    apis: List[Dict[str, Any]] = Field(default_factory=list)
