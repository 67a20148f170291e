# contract_runtime/core/validation/__init__.py
from .validator import SchemaValidator, ValidationError, ValidationErrorCode, ValidationResult

__all__ = ["SchemaValidator", "ValidationError", "ValidationErrorCode", "ValidationResult"]
