# contract_runtime/core/errors.py
"""
Error taxonomy for the contract runtime.

Every error raised by the engine derives from ContractRuntimeError and carries
the HTTP status and machine-readable code it maps to, so the API layer can
render any of them without knowing which component raised it.

Request-time errors:
    MalformedRequestError   400  body is not a JSON object, bad pagination
    QueryParseError         400  search expression cannot be parsed
    NotFoundError           404  unknown id
    UnknownTriggerError     404  trigger is not declared by the contract
    ConflictError           409  duplicate id on insert
    InvalidTransitionError  409  trigger exists but not from the current state
    GuardFailedError        409  a transition guard rejected the call
    ValidationFailedError   422  body does not match the schema

Startup errors (raised while loading contracts, never while serving):
    SchemaResolutionError, SpecificationLoadError, ContractDefinitionError

Usage:
    from contract_runtime.core.errors import NotFoundError

    raise NotFoundError("Task not found")
"""

from typing import Any, Dict, List, Optional


class ContractRuntimeError(Exception):
    """Base class for all contract runtime errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


# =============================================================================
# Request errors
# =============================================================================


class MalformedRequestError(ContractRuntimeError):
    status_code = 400
    code = "BAD_REQUEST"


class QueryParseError(MalformedRequestError):
    """Raised when a search expression does not follow the query grammar."""

    code = "INVALID_QUERY"

    def __init__(self, message: str, token: Optional[str] = None):
        details = [{"field": "q", "message": message, "value": token}] if token is not None else None
        super().__init__(message, details)
        self.token = token


class ValidationFailedError(ContractRuntimeError):
    status_code = 422
    code = "VALIDATION_ERROR"

    def __init__(self, details: List[Dict[str, Any]], message: str = "The request contains invalid data"):
        super().__init__(message, details)


class NotFoundError(ContractRuntimeError):
    status_code = 404
    code = "NOT_FOUND"


class UnknownTriggerError(NotFoundError):
    code = "UNKNOWN_TRIGGER"

    def __init__(self, trigger: str):
        super().__init__(f"Unknown trigger: {trigger}")
        self.trigger = trigger


class ConflictError(ContractRuntimeError):
    status_code = 409
    code = "CONFLICT"


class InvalidTransitionError(ConflictError):
    code = "INVALID_TRANSITION"

    def __init__(self, trigger: str, current_state: Optional[str]):
        super().__init__(f"Cannot {trigger}: currently {current_state}")
        self.trigger = trigger
        self.current_state = current_state


class GuardFailedError(ConflictError):
    """A transition guard rejected the trigger call. Expected, user-facing."""

    code = "GUARD_FAILED"

    def __init__(self, failed_guard: str, reason: str):
        super().__init__(reason)
        self.failed_guard = failed_guard
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["failedGuard"] = self.failed_guard
        body["reason"] = self.reason
        return body


# =============================================================================
# Startup errors
# =============================================================================


class SchemaResolutionError(ContractRuntimeError):
    """A $ref could not be resolved, or resolving it would loop forever."""

    def __init__(self, message: str, ref: Optional[str] = None, source: Optional[str] = None):
        super().__init__(message)
        self.ref = ref
        self.source = source


class SpecificationLoadError(ContractRuntimeError):
    """A resource specification file could not be read or interpreted."""


class ContractDefinitionError(ContractRuntimeError):
    """A behavioral contract declares something the engine cannot execute."""
