"""Tests for validator rules and the validator engine."""

from datetime import date, datetime, timedelta, timezone
from types import MappingProxyType

import pytest

from docknobs import (
    CastError,
    FieldDefinition,
    FieldType,
    RequiredFieldError,
    Validator,
    ValidatorEngine,
    ValidatorFailureError,
    after_field,
    validator,
)


@pytest.fixture
def engine():
    return ValidatorEngine()


def positive(value, document):
    return value > 0


def below_hundred(value, document):
    return value < 100


class TestValidatorRules:

    def test_value_placeholder(self):
        rule = Validator(positive, "{VALUE} is not positive")
        assert rule.format_message("age", -3) == "-3 is not positive"

    def test_path_placeholder(self):
        rule = Validator(positive, "`{PATH}` must be positive, got {VALUE}")
        assert rule.format_message("age", -3) == "`age` must be positive, got -3"

    def test_default_message(self):
        rule = validator(positive)
        assert rule.format_message("age", -1) == "Validator failed for path `age` with value `-1`"

    def test_after_field(self):
        rule = after_field("start")
        start = datetime(2024, 1, 1)
        assert rule.predicate(start + timedelta(days=1), {"start": start}) is True
        assert rule.predicate(start - timedelta(days=1), {"start": start}) is False
        assert rule.predicate(start, {"start": None}) is True
        assert rule.format_message("end", "x") == "x must be after start"


class TestValidate:

    def test_validators_run_in_order_first_failure_wins(self, engine):
        field = FieldDefinition(
            name="score",
            field_type=FieldType.NUMBER,
            validators=(
                Validator(positive, "{VALUE} must be positive"),
                Validator(below_hundred, "{VALUE} must be below 100"),
            ),
        )
        error = engine.validate(field, -5, {})
        assert isinstance(error, ValidatorFailureError)
        assert error.message == "-5 must be positive"
        assert error.kind == "user defined"

        error = engine.validate(field, 150, {})
        assert error.message == "150 must be below 100"

        assert engine.validate(field, 50, {}) is None

    def test_absent_value_skips_validators(self, engine):
        field = FieldDefinition(name="score", validators=(Validator(positive),))
        assert engine.validate(field, None, {}) is None

    def test_document_context_is_passed(self, engine):
        seen = []

        def capture(value, document):
            seen.append(dict(document))
            return True

        field = FieldDefinition(name="b", validators=(Validator(capture),))
        engine.validate(field, 1, {"a": 0, "b": 1})
        assert seen == [{"a": 0, "b": 1}]

    def test_raising_predicate_is_reported(self, engine):
        def broken(value, document):
            raise RuntimeError("boom")

        field = FieldDefinition(name="x", validators=(Validator(broken),))
        error = engine.validate(field, 1, {})
        assert isinstance(error, ValidatorFailureError)
        assert error.message == 'Validator failed for path "x": boom'


class TestValidateDocument:

    @pytest.fixture
    def appointment_fields(self):
        return [
            FieldDefinition(name="label"),
            FieldDefinition(name="start", field_type=FieldType.TIMESTAMP),
            FieldDefinition(
                name="end",
                field_type=FieldType.TIMESTAMP,
                validators=(after_field("start", "{VALUE} must be after the start date"),),
            ),
        ]

    def test_cross_field_failure(self, engine, appointment_fields):
        start = datetime(2024, 3, 10, 9, 0)
        result = engine.validate_document(
            appointment_fields, {"start": start, "end": start - timedelta(days=1)}
        )
        assert not result.valid
        assert list(result.errors) == ["end"]
        assert "must be after the start date" in result.errors["end"].message

    def test_cross_field_sees_coerced_siblings(self, engine, appointment_fields):
        result = engine.validate_document(
            appointment_fields,
            {"start": "2024-03-10T09:00:00", "end": "2024-03-11T09:00:00"},
        )
        assert result.valid
        assert result.values["end"] == datetime(2024, 3, 11, 9, 0).astimezone(timezone.utc)

    @pytest.mark.parametrize("start, end", [
        ("2024-03-10T09:00:00Z", "2024-03-11T09:00:00"),
        ("2024-03-10T09:00:00", "2024-03-11T09:00:00+02:00"),
        (datetime(2024, 3, 10, 9, 0), "2024-03-11T09:00:00Z"),
        (date(2024, 3, 10), 1710237600),
    ])
    def test_mixed_timestamp_forms_compare(self, engine, appointment_fields, start, end):
        result = engine.validate_document(appointment_fields, {"start": start, "end": end})
        assert result.valid, result.errors

    def test_mixed_timestamp_forms_still_ordered(self, engine, appointment_fields):
        result = engine.validate_document(
            appointment_fields,
            {"start": "2024-03-10T09:00:00Z", "end": "2024-03-10T12:00:00+05:00"},
        )
        assert list(result.errors) == ["end"]
        assert "must be after the start date" in result.errors["end"].message

    def test_cast_error_takes_precedence(self, engine):
        calls = []

        def track(value, document):
            calls.append(value)
            return False

        fields = [
            FieldDefinition(name="age", field_type=FieldType.NUMBER, validators=(Validator(track),)),
        ]
        result = engine.validate_document(fields, {"age": "old"})
        assert isinstance(result.errors["age"], CastError)
        assert calls == []

    def test_collects_all_errors_in_declaration_order(self, engine):
        fields = [
            FieldDefinition(name="a", field_type=FieldType.NUMBER, validators=(Validator(positive),)),
            FieldDefinition(name="b", field_type=FieldType.NUMBER),
            FieldDefinition(name="c", required=True),
        ]
        result = engine.validate_document(fields, {"a": -1, "b": "x"})
        assert list(result.errors) == ["a", "b", "c"]
        assert isinstance(result.errors["a"], ValidatorFailureError)
        assert isinstance(result.errors["b"], CastError)
        assert isinstance(result.errors["c"], RequiredFieldError)

    def test_required_field_with_none_default(self, engine):
        fields = [FieldDefinition(name="owner", required=True, default=lambda: None)]
        result = engine.validate_document(fields, {}, defaults={"owner": None})
        assert isinstance(result.errors["owner"], RequiredFieldError)

    def test_defaults_mapping_is_used_for_unset_fields(self, engine):
        fields = [FieldDefinition(name="date", field_type=FieldType.TIMESTAMP, default=datetime.now)]
        produced = datetime(2020, 1, 1)
        result = engine.validate_document(fields, {}, defaults={"date": produced})
        assert result.values["date"] is produced

    def test_context_is_read_only(self, engine):
        captured = []

        def capture(value, document):
            captured.append(document)
            return True

        fields = [FieldDefinition(name="x", validators=(Validator(capture),))]
        engine.validate_document(fields, {"x": "1"})
        assert isinstance(captured[0], MappingProxyType)
        with pytest.raises(TypeError):
            captured[0]["x"] = "changed"
