# contract_runtime/core/validation/validator.py
"""
Schema Validator - validate request bodies against resolved JSON Schema.

Collects every error (not just the first) and renders each as a field path
plus a human-readable reason, e.g.:

    {"field": "email", "code": "FORMAT_MISMATCH", "message": 'must match format "email"'}
    {"field": "body", "code": "TYPE_MISMATCH", "message": "must be object"}

Before validating, the schema is adapted for write requests:
- readOnly properties are dropped from `required` (clients never send them)
- OpenAPI 3.0 `nullable: true` becomes a "null" alternative in `type`
- partial=True (PATCH) drops the top-level `required` list

Validation never touches the store; callers only write after a valid result.

Usage:
    from contract_runtime.core.validation import SchemaValidator

    result = SchemaValidator().validate(body, endpoint.request_schema)
    if not result.valid:
        raise ValidationFailedError([e.to_dict() for e in result.errors])
"""

import copy
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from jsonschema import Draft202012Validator, FormatChecker
from jsonschema.exceptions import SchemaError

logger = logging.getLogger("contract_runtime.validation")

# Values longer than this (as JSON) are left out of error details
MAX_VALUE_LENGTH = 100
SENSITIVE_FIELD = re.compile(r"password|token|secret", re.IGNORECASE)


class ValidationErrorCode(str, Enum):
    """Reason codes for body validation failures."""
    REQUIRED_MISSING = "REQUIRED_MISSING"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    ADDITIONAL_PROPERTY = "ADDITIONAL_PROPERTY"
    PATTERN_MISMATCH = "PATTERN_MISMATCH"
    ENUM_MISMATCH = "ENUM_MISMATCH"
    FORMAT_MISMATCH = "FORMAT_MISMATCH"
    CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"


_UNSET = object()


@dataclass
class ValidationError:
    """A single field-level validation error."""
    code: ValidationErrorCode
    message: str
    field: str  # dot path to the offending value, "body" for the root
    value: Any = _UNSET

    def to_dict(self) -> Dict[str, Any]:
        data = {"field": self.field, "code": self.code.value, "message": self.message}
        if self.value is not _UNSET:
            data["value"] = self.value
        return data


@dataclass
class ValidationResult:
    """Result of validating one body."""
    valid: bool
    errors: List[ValidationError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "error_count": len(self.errors),
        }


class SchemaValidator:
    """Validates bodies against JSON Schema 2020-12 with format checking."""

    def __init__(self):
        self._format_checker = FormatChecker()

    def validate(self, body: Any, schema: Optional[Dict[str, Any]], partial: bool = False) -> ValidationResult:
        if not schema:
            return ValidationResult(valid=True)

        prepared = prepare_schema(schema, partial=partial)
        validator = Draft202012Validator(prepared, format_checker=self._format_checker)
        raw_errors = sorted(validator.iter_errors(body), key=lambda e: list(e.absolute_path))

        errors: List[ValidationError] = []
        seen = set()
        for raw in raw_errors:
            for error in _render(raw):
                key = (error.field, error.code, error.message)
                if key not in seen:
                    seen.add(key)
                    errors.append(error)

        return ValidationResult(valid=not errors, errors=errors)

    @staticmethod
    def check_schema(schema: Optional[Dict[str, Any]]) -> Optional[str]:
        """
        Why a schema cannot be used for validation, or None if it can.

        Checked against the 2020-12 metaschema, including `format: regex`,
        so a bad `pattern` is reported here instead of failing a request.
        """
        if not schema:
            return None
        try:
            Draft202012Validator.check_schema(prepare_schema(schema))
        except SchemaError as e:
            location = ".".join(str(p) for p in e.absolute_path) or "schema"
            return f"{location}: {e.message}"
        return None


# =============================================================================
# Schema preparation
# =============================================================================


def prepare_schema(schema: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    prepared = _adapt(copy.deepcopy(schema))
    if partial and isinstance(prepared, dict):
        prepared.pop("required", None)
    return prepared


def _adapt(node: Any) -> Any:
    if isinstance(node, list):
        return [_adapt(item) for item in node]
    if not isinstance(node, dict):
        return node

    node = {key: _adapt(value) for key, value in node.items()}

    if node.pop("nullable", False) is True and "type" in node:
        types = node["type"] if isinstance(node["type"], list) else [node["type"]]
        if "null" not in types:
            node["type"] = types + ["null"]

    properties = node.get("properties")
    if isinstance(properties, dict) and isinstance(node.get("required"), list):
        read_only = {
            name for name, prop in properties.items()
            if isinstance(prop, dict) and prop.get("readOnly")
        }
        required = [name for name in node["required"] if name not in read_only]
        if required:
            node["required"] = required
        else:
            node.pop("required")
    return node


# =============================================================================
# Error rendering
# =============================================================================


def _join(path: List[Any], extra: Optional[str] = None) -> str:
    parts = [str(p) for p in path]
    if extra is not None:
        parts.append(extra)
    return ".".join(parts) or "body"


def _with_value(error: ValidationError, value: Any) -> ValidationError:
    if SENSITIVE_FIELD.search(error.field):
        return error
    try:
        if len(json.dumps(value)) <= MAX_VALUE_LENGTH:
            error.value = value
    except (TypeError, ValueError):
        pass
    return error


def _render(raw) -> List[ValidationError]:
    path = list(raw.absolute_path)
    keyword = raw.validator

    if keyword == "required":
        instance = raw.instance if isinstance(raw.instance, dict) else {}
        return [
            ValidationError(ValidationErrorCode.REQUIRED_MISSING, "is required", _join(path, name))
            for name in raw.validator_value
            if name not in instance
        ]

    if keyword == "additionalProperties":
        instance = raw.instance if isinstance(raw.instance, dict) else {}
        declared = raw.schema.get("properties") or {}
        patterns = [re.compile(p) for p in raw.schema.get("patternProperties") or {}]
        extras = [
            name for name in instance
            if name not in declared and not any(p.search(name) for p in patterns)
        ]
        return [
            ValidationError(
                ValidationErrorCode.ADDITIONAL_PROPERTY,
                "is not allowed (additional property)",
                _join(path, name),
            )
            for name in extras
        ]

    field_path = _join(path)
    if keyword == "type":
        expected = raw.validator_value
        expected = " or ".join(expected) if isinstance(expected, list) else expected
        error = ValidationError(ValidationErrorCode.TYPE_MISMATCH, f"must be {expected}", field_path)
    elif keyword == "enum":
        allowed = ", ".join(str(v) for v in raw.validator_value)
        error = ValidationError(ValidationErrorCode.ENUM_MISMATCH, f"must be one of: {allowed}", field_path)
    elif keyword == "const":
        error = ValidationError(ValidationErrorCode.ENUM_MISMATCH, f"must be {raw.validator_value}", field_path)
    elif keyword == "pattern":
        error = ValidationError(
            ValidationErrorCode.PATTERN_MISMATCH, f'must match pattern "{raw.validator_value}"', field_path
        )
    elif keyword == "format":
        error = ValidationError(
            ValidationErrorCode.FORMAT_MISMATCH, f'must match format "{raw.validator_value}"', field_path
        )
    else:
        error = ValidationError(ValidationErrorCode.CONSTRAINT_VIOLATION, raw.message, field_path)
    return [_with_value(error, raw.instance)]
