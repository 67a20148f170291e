"""
Tests for request body validation.
"""

import pytest

from contract_runtime.core.validation import SchemaValidator, ValidationErrorCode
from contract_runtime.core.validation.validator import prepare_schema

PERSON_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "readOnly": True},
        "firstName": {"type": "string", "minLength": 1},
        "email": {"type": "string", "format": "email"},
        "phone": {"type": "string", "pattern": "^[0-9]+$"},
        "status": {"type": "string", "enum": ["active", "inactive"]},
        "income": {"type": "number", "minimum": 0},
        "password": {"type": "string", "minLength": 8},
        "nickname": {"type": "string", "nullable": True},
        "address": {
            "type": "object",
            "properties": {"city": {"type": "string"}},
            "required": ["city"],
            "additionalProperties": False,
        },
    },
    "required": ["id", "firstName", "email"],
    "additionalProperties": False,
}


@pytest.fixture
def validator():
    return SchemaValidator()


def _errors(result):
    return {(e.field, e.code) for e in result.errors}


class TestSchemaValidator:
    def test_valid_body(self, validator):
        result = validator.validate({"firstName": "Ada", "email": "ada@example.com"}, PERSON_SCHEMA)
        assert result.valid
        assert result.errors == []

    def test_no_schema_accepts_anything(self, validator):
        assert validator.validate({"anything": 1}, None).valid

    def test_required_missing(self, validator):
        result = validator.validate({}, PERSON_SCHEMA)

        assert not result.valid
        assert _errors(result) == {
            ("firstName", ValidationErrorCode.REQUIRED_MISSING),
            ("email", ValidationErrorCode.REQUIRED_MISSING),
        }
        assert result.errors[0].message == "is required"

    def test_read_only_fields_not_required(self, validator):
        result = validator.validate({}, PERSON_SCHEMA)
        assert "id" not in {e.field for e in result.errors}

    def test_type_mismatch(self, validator):
        result = validator.validate({"firstName": 5, "email": "a@b.co"}, PERSON_SCHEMA)
        error = result.errors[0]
        assert (error.field, error.code, error.message) == ("firstName", ValidationErrorCode.TYPE_MISMATCH, "must be string")
        assert error.to_dict()["value"] == 5

    def test_additional_property(self, validator):
        result = validator.validate({"firstName": "A", "email": "a@b.co", "shoeSize": 42}, PERSON_SCHEMA)
        assert _errors(result) == {("shoeSize", ValidationErrorCode.ADDITIONAL_PROPERTY)}
        assert result.errors[0].message == "is not allowed (additional property)"

    def test_pattern_enum_and_format(self, validator):
        body = {"firstName": "A", "email": "not-an-email", "phone": "12ab", "status": "gone"}

        result = validator.validate(body, PERSON_SCHEMA)

        messages = {e.field: e.message for e in result.errors}
        assert messages == {
            "email": 'must match format "email"',
            "phone": 'must match pattern "^[0-9]+$"',
            "status": "must be one of: active, inactive",
        }

    def test_constraint_violation(self, validator):
        result = validator.validate({"firstName": "A", "email": "a@b.co", "income": -1}, PERSON_SCHEMA)
        assert _errors(result) == {("income", ValidationErrorCode.CONSTRAINT_VIOLATION)}

    def test_nested_paths(self, validator):
        body = {"firstName": "A", "email": "a@b.co", "address": {"zip": "1"}}

        result = validator.validate(body, PERSON_SCHEMA)

        assert _errors(result) == {
            ("address.city", ValidationErrorCode.REQUIRED_MISSING),
            ("address.zip", ValidationErrorCode.ADDITIONAL_PROPERTY),
        }

    def test_body_must_be_object(self, validator):
        result = validator.validate(["not", "an", "object"], PERSON_SCHEMA)
        assert result.errors[0].field == "body"
        assert result.errors[0].message == "must be object"

    def test_nullable(self, validator):
        result = validator.validate({"firstName": "A", "email": "a@b.co", "nickname": None}, PERSON_SCHEMA)
        assert result.valid

    def test_partial_skips_required(self, validator):
        assert validator.validate({"status": "active"}, PERSON_SCHEMA, partial=True).valid
        assert not validator.validate({"status": "gone"}, PERSON_SCHEMA, partial=True).valid

    def test_sensitive_values_are_not_echoed(self, validator):
        result = validator.validate({"firstName": "A", "email": "a@b.co", "password": "short"}, PERSON_SCHEMA)
        assert "value" not in result.errors[0].to_dict()

    def test_long_values_are_not_echoed(self, validator):
        result = validator.validate({"firstName": "A", "email": "a@b.co", "phone": "x" * 200}, PERSON_SCHEMA)
        assert "value" not in result.errors[0].to_dict()

    def test_result_to_dict(self, validator):
        data = validator.validate({}, PERSON_SCHEMA).to_dict()
        assert data["valid"] is False
        assert data["error_count"] == 2


class TestPrepareSchema:
    def test_does_not_mutate_input(self):
        prepare_schema(PERSON_SCHEMA, partial=True)
        assert PERSON_SCHEMA["required"] == ["id", "firstName", "email"]
        assert PERSON_SCHEMA["properties"]["nickname"]["nullable"] is True

    def test_nullable_becomes_null_type(self):
        prepared = prepare_schema({"type": "string", "nullable": True})
        assert prepared == {"type": ["string", "null"]}

    def test_all_read_only_required_dropped(self):
        prepared = prepare_schema({"properties": {"id": {"readOnly": True}}, "required": ["id"]})
        assert "required" not in prepared


class TestCheckSchema:
    def test_usable_schema(self):
        assert SchemaValidator.check_schema(PERSON_SCHEMA) is None
        assert SchemaValidator.check_schema(None) is None

    def test_invalid_pattern_is_reported(self):
        schema = {"type": "object", "properties": {"phone": {"type": "string", "pattern": "^[0-9"}}}
        reason = SchemaValidator.check_schema(schema)
        assert reason is not None
        assert reason.startswith("properties.phone.pattern")

    def test_invalid_keyword_value_is_reported(self):
        assert SchemaValidator.check_schema({"type": "object", "required": "name"}) is not None
