"""Tests for schema node to validator conversion."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from openapi_adapter.schema import to_validator, to_validator_from_alternatives


@pytest.mark.parametrize(
    "node",
    [
        {"type": "string"},
        {"type": "number"},
        {"type": "integer"},
        {"type": "boolean"},
        {"type": "null"},
        {"type": "file"},
        {"type": "any"},
        {"type": "array", "items": {"type": "string"}},
        {"type": "object", "properties": {"a": {"type": "string"}}},
        {"type": "enum<string>", "enum": ["a", "b"]},
        {"type": "enum<number>", "enum": [1, 2]},
        {},
    ],
)
def test_optional_nodes_accept_absence_and_required_nodes_reject_it(node):
    assert to_validator({**node, "required": False}).validate() is None

    with pytest.raises(ValidationError):
        to_validator({**node, "required": True}).validate()


class TestString:
    def test_length_bounds(self):
        validator = to_validator({"type": "string", "minLength": 2, "maxLength": 4, "required": True})

        assert validator.validate("abc") == "abc"
        with pytest.raises(ValidationError):
            validator.validate("a")
        with pytest.raises(ValidationError):
            validator.validate("abcde")

    def test_pattern(self):
        validator = to_validator({"type": "string", "pattern": "^[0-9]{6}$", "required": True})

        assert validator.validate("560001") == "560001"
        with pytest.raises(ValidationError):
            validator.validate("56OO01")

    def test_enum_restricts_to_closed_set(self):
        validator = to_validator({"type": "string", "enum": ["INR", "USD"], "minLength": 10, "required": True})

        assert validator.validate("INR") == "INR"
        with pytest.raises(ValidationError):
            validator.validate("EUR")

    @pytest.mark.parametrize(
        "fmt, good, bad",
        [
            ("email", "payouts@gmail.com", "not-an-email"),
            ("uri", "https://api.example.com/v1", "not a url"),
            ("url", "https://api.example.com/v1", "example.com/path"),
            ("uuid", "123e4567-e89b-12d3-a456-426614174000", "1234"),
        ],
    )
    def test_formats(self, fmt, good, bad):
        validator = to_validator({"type": "string", "format": fmt, "required": True})

        assert validator.validate(good) == good
        with pytest.raises(ValidationError):
            validator.validate(bad)

    def test_date_time_becomes_a_date_validator(self):
        validator = to_validator({"type": "string", "format": "date-time", "required": True})

        assert isinstance(validator.validate("2024-01-01T10:00:00Z"), datetime)

    def test_binary_becomes_a_file_validator(self):
        validator = to_validator({"type": "string", "format": "binary", "required": True})

        assert validator.annotation is bytes

    def test_default_fills_absent_value(self):
        assert to_validator({"type": "string", "default": "INR"}).validate() == "INR"
        assert to_validator({"type": "string", "default": "INR", "required": True}).validate() == "INR"

    def test_invalid_pattern_degrades_to_any(self):
        validator = to_validator({"type": "string", "pattern": "([", "required": True})

        assert validator.validate(12) == 12


class TestNumber:
    def test_integer_bounds(self):
        validator = to_validator({"type": "integer", "minimum": 0, "maximum": 10, "required": True})

        assert validator.validate(5) == 5
        for value in (-1, 11, 5.5):
            with pytest.raises(ValidationError):
                validator.validate(value)

    def test_exclusive_bounds(self):
        validator = to_validator(
            {"type": "number", "exclusiveMinimum": 0, "exclusiveMaximum": 1, "required": True}
        )

        assert validator.validate(0.5) == 0.5
        for value in (0, 1):
            with pytest.raises(ValidationError):
                validator.validate(value)

    def test_numeric_enum_coerces_to_numbers(self):
        validator = to_validator({"type": "enum<integer>", "enum": [1, 2, 3], "required": True})

        assert validator.validate("2") == 2
        assert validator.validate(3) == 3
        with pytest.raises(ValidationError):
            validator.validate(4)

    def test_number_with_enum_list(self):
        validator = to_validator({"type": "number", "enum": [0.5, 1.5], "required": True})

        assert validator.validate("1.5") == 1.5
        with pytest.raises(ValidationError):
            validator.validate(2)


class TestArray:
    def test_homogeneous_items_and_size(self):
        validator = to_validator(
            {"type": "array", "items": {"type": "integer", "required": True}, "minItems": 1, "maxItems": 2, "required": True}
        )

        assert validator.validate([1, 2]) == [1, 2]
        for value in ([], [1, 2, 3], ["x"]):
            with pytest.raises(ValidationError):
                validator.validate(value)

    def test_alternative_items_accept_any_listed_shape(self):
        validator = to_validator(
            {"type": "array", "items": [{"type": "string"}, {"type": "integer"}], "required": True}
        )

        assert validator.validate(["a", 1]) == ["a", 1]
        with pytest.raises(ValidationError):
            validator.validate([{"nested": True}])


class TestObject:
    def test_property_required_flag_makes_it_mandatory(self):
        validator = to_validator(
            {
                "type": "object",
                "properties": {"age": {"type": "integer", "minimum": 0, "required": True}},
                "required": True,
            }
        )

        assert validator.validate({"age": 5}).age == 5
        with pytest.raises(ValidationError):
            validator.validate({"age": -1})
        with pytest.raises(ValidationError):
            validator.validate({})

    def test_required_properties_list_makes_it_mandatory(self):
        validator = to_validator(
            {
                "type": "object",
                "properties": {"name": [{"type": "string"}], "nickname": [{"type": "string"}]},
                "requiredProperties": ["name"],
                "required": True,
            }
        )

        value = validator.validate({"name": "Asha"})
        assert value.name == "Asha"
        assert value.nickname is None
        with pytest.raises(ValidationError):
            validator.validate({"nickname": "A"})

    def test_non_identifier_property_names_keep_their_alias(self):
        validator = to_validator(
            {
                "type": "object",
                "properties": {"first-name": {"type": "string", "required": True}},
                "required": True,
            }
        )

        value = validator.validate({"first-name": "Asha"})
        assert value.model_dump(by_alias=True) == {"first-name": "Asha"}

    def test_free_form_object(self):
        assert to_validator({"type": "object", "required": False}).validate() == {}
        assert to_validator({"type": "object", "required": True}).validate({"k": 1}) == {"k": 1}


class TestFallbacks:
    def test_missing_type_accepts_anything(self):
        assert to_validator({"required": True}).validate([1, "a"]) == [1, "a"]

    def test_unknown_type_accepts_anything(self):
        assert to_validator({"type": "tuple", "required": True}).validate("x") == "x"

    def test_empty_enum_accepts_anything(self):
        assert to_validator({"type": "enum<string>", "enum": [], "required": True}).validate("x") == "x"

    def test_primitives(self):
        assert to_validator({"type": "null", "required": True}).validate(None) is None
        assert to_validator({"type": "boolean", "required": True}).validate(True) is True
        assert to_validator({"type": "file", "required": True}).validate(b"data") == b"data"
        with pytest.raises(ValidationError):
            to_validator({"type": "null", "required": True}).validate("x")


class TestAlternatives:
    def test_single_alternative_collapses(self):
        validator = to_validator_from_alternatives([{"type": "integer", "required": True}])

        assert validator.validate(3) == 3
        with pytest.raises(ValidationError):
            validator.validate([3])

    def test_union_accepts_any_matching_shape(self):
        validator = to_validator_from_alternatives(
            [{"type": "string", "required": True}, {"type": "integer", "required": True}]
        )

        assert validator.validate("a") == "a"
        assert validator.validate(3) == 3
        with pytest.raises(ValidationError):
            validator.validate({"a": 1})

    def test_empty_alternatives_fall_back_to_a_list(self):
        validator = to_validator_from_alternatives([])

        assert validator.validate([1, "a"]) == [1, "a"]
        with pytest.raises(ValidationError):
            validator.validate("x")
