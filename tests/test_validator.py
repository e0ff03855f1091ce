"""Tests for resource model validation."""

import pytest

from provocation.validator import JsonSchemaValidator, Violation, build_validation_message


@pytest.fixture
def validator():
    return JsonSchemaValidator()


class TestJsonSchemaValidator:
    """Tests for JsonSchemaValidator.validate()."""

    def test_valid_model(self, validator, schema):
        assert validator.validate({"BucketName": "b", "Tags": {"a": "b"}}, schema) == []

    def test_extraneous_key(self, validator, schema):
        violations = validator.validate({"BucketName": "b", "Color": "red"}, schema)

        assert violations == [Violation(
            pointer="#",
            message="#: extraneous key [Color] is not permitted",
            keyword="additionalProperties",
        )]

    def test_extraneous_key_reported_once(self, validator, schema):
        violations = validator.validate({"BucketName": "b", "Color": "red"}, schema)
        assert len(violations) == 1

    def test_extraneous_keys_flagged_without_additional_properties_keyword(self, validator, schema):
        del schema["additionalProperties"]
        violations = validator.validate({"BucketName": "b", "Color": "red"}, schema)
        assert [v.keyword for v in violations] == ["additionalProperties"]

    def test_additional_properties_allowed(self, validator, schema):
        schema["additionalProperties"] = True
        assert validator.validate({"BucketName": "b", "Color": "red"}, schema) == []

    def test_type_error_has_pointer(self, validator, schema):
        violations = validator.validate({"BucketName": 42}, schema)

        assert len(violations) == 1
        assert violations[0].pointer == "#/BucketName"
        assert violations[0].keyword == "type"

    def test_missing_required(self, validator, schema):
        violations = validator.validate({}, schema)

        assert violations[0].keyword == "required"
        assert "'BucketName' is a required property" in violations[0].message

    def test_all_violations_reported(self, validator, schema):
        violations = validator.validate({"BucketName": 1, "Arn": 2, "Extra": 3}, schema)
        assert len(violations) == 3

    def test_does_not_mutate_schema(self, validator, schema):
        before = dict(schema)
        validator.validate({"BucketName": "b", "Color": "red"}, schema)
        assert schema == before


@pytest.fixture
def nested_schema(schema):
    schema["properties"]["Encryption"] = {
        "type": "object",
        "properties": {"Algorithm": {"type": "string"}},
    }
    schema["properties"]["Rules"] = {
        "type": "array",
        "items": {"$ref": "#/definitions/Rule"},
    }
    schema["definitions"] = {
        "Rule": {
            "type": "object",
            "properties": {"Prefix": {"type": "string"}},
            "additionalProperties": False,
        }
    }
    return schema


class TestNestedExtraneousKeys:
    """Extraneous keys are detected at every depth of the model."""

    def test_valid_nested_model(self, validator, nested_schema):
        payload = {
            "BucketName": "b",
            "Encryption": {"Algorithm": "AES256"},
            "Rules": [{"Prefix": "logs/"}],
        }
        assert validator.validate(payload, nested_schema) == []

    def test_nested_object(self, validator, nested_schema):
        payload = {"BucketName": "b", "Encryption": {"Algorithm": "AES256", "Bogus": 1}}

        violations = validator.validate(payload, nested_schema)

        assert violations == [Violation(
            pointer="#/Encryption",
            message="#/Encryption: extraneous key [Bogus] is not permitted",
            keyword="additionalProperties",
        )]

    def test_array_items_through_ref(self, validator, nested_schema):
        payload = {"BucketName": "b", "Rules": [{"Prefix": "a"}, {"Prefix": "b", "Days": 3}]}

        violations = validator.validate(payload, nested_schema)

        # Reported once even though the subschema sets additionalProperties: false
        assert [v.message for v in violations] == [
            "#/Rules/1: extraneous key [Days] is not permitted"
        ]

    def test_nested_additional_properties_allowed(self, validator, nested_schema):
        nested_schema["properties"]["Encryption"]["additionalProperties"] = True
        payload = {"BucketName": "b", "Encryption": {"Algorithm": "AES256", "KeyId": "k"}}

        assert validator.validate(payload, nested_schema) == []

    def test_free_form_object_is_not_checked(self, validator, nested_schema):
        payload = {"BucketName": "b", "Tags": {"anything": "goes"}}
        assert validator.validate(payload, nested_schema) == []


class TestBuildValidationMessage:

    def test_no_violations(self):
        assert build_validation_message([]) == "Model validation failed with unknown cause."

    def test_single_violation_is_inline(self):
        message = build_validation_message([
            Violation("#", "#: extraneous key [Color] is not permitted"),
        ])

        assert message == "Model validation failed (#: extraneous key [Color] is not permitted)"

    def test_one_line_per_violation(self):
        message = build_validation_message([
            Violation("#", "#: extraneous key [Color] is not permitted"),
            Violation("#/BucketName", "42 is not of type 'string'"),
        ])

        assert message.splitlines() == [
            "Model validation failed (2 schema violations found)",
            "#: extraneous key [Color] is not permitted (#)",
            "42 is not of type 'string' (#/BucketName)",
        ]
