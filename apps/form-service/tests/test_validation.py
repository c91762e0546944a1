import sys
import unittest
from pathlib import Path

FORM_SERVICE_ROOT = Path(__file__).resolve().parents[1]
if str(FORM_SERVICE_ROOT) not in sys.path:
    sys.path.insert(0, str(FORM_SERVICE_ROOT))

from dynform.models import (  # noqa: E402
    CheckboxValue,
    ChoiceValue,
    DateValue,
    FormSchema,
    NumberValue,
    TextValue,
    build_form_data,
)
from dynform.validation import validate_form  # noqa: E402


def _schema(*fields):
    return FormSchema.model_validate(
        {"title": "Test", "fields": list(fields), "submitButton": {"text": "Go", "loadingText": "..."}}
    )


class RequiredRuleTests(unittest.TestCase):
    def test_empty_text_is_reported(self):
        schema = _schema(
            {"id": "email", "label": "Email", "type": "text", "validation": [{"type": "required", "message": "Required"}]}
        )
        errors = validate_form(schema, {"email": TextValue(value="")})
        self.assertEqual(errors, {"email": "Required"})

    def test_falsy_values_count_as_missing(self):
        schema = _schema(
            {"id": "age", "label": "Age", "type": "number", "validation": [{"type": "required", "message": "Age?"}]},
            {"id": "agree", "label": "Agree", "type": "checkbox", "validation": [{"type": "required", "message": "Agree?"}]},
            {"id": "start", "label": "Start", "type": "date", "validation": [{"type": "required", "message": "When?"}]},
            {"id": "lang", "label": "Language", "type": "select", "options": [{"value": "go", "label": "Go"}],
             "validation": [{"type": "required", "message": "Pick one"}]},
        )
        data = {
            "age": NumberValue(value=0),
            "agree": CheckboxValue(value=False),
            "start": DateValue(),
            "lang": ChoiceValue(value=""),
        }
        self.assertEqual(
            validate_form(schema, data),
            {"age": "Age?", "agree": "Agree?", "start": "When?", "lang": "Pick one"},
        )

    def test_missing_key_counts_as_missing(self):
        schema = _schema(
            {"id": "email", "label": "Email", "validation": [{"type": "required", "message": "Required"}]}
        )
        self.assertEqual(validate_form(schema, {}), {"email": "Required"})

    def test_filled_value_passes(self):
        schema = _schema(
            {"id": "email", "label": "Email", "validation": [{"type": "required", "message": "Required"}]}
        )
        self.assertEqual(validate_form(schema, {"email": TextValue(value="a@b.c")}), {})


class MinLengthRuleTests(unittest.TestCase):
    def setUp(self):
        self.schema = _schema(
            {"id": "username", "label": "User", "validation": [{"type": "minLength", "value": 5, "message": "Too short"}]}
        )

    def test_short_value_is_reported(self):
        self.assertEqual(validate_form(self.schema, {"username": TextValue(value="abc")}), {"username": "Too short"})

    def test_exact_and_longer_values_pass(self):
        self.assertEqual(validate_form(self.schema, {"username": TextValue(value="abcde")}), {})
        self.assertEqual(validate_form(self.schema, {"username": TextValue(value="abcdef")}), {})

    def test_skipped_for_non_string_values(self):
        schema = _schema(
            {"id": "agree", "label": "Agree", "type": "checkbox",
             "validation": [{"type": "minLength", "value": 5, "message": "Too short"}]}
        )
        self.assertEqual(validate_form(schema, {"agree": CheckboxValue(value=True)}), {})

    def test_applies_to_number_input_text(self):
        schema = _schema(
            {"id": "pin", "label": "PIN", "type": "number",
             "validation": [{"type": "minLength", "value": 4, "message": "Four digits"}]}
        )
        short = build_form_data(schema, {"pin": "123"})
        self.assertEqual(validate_form(schema, short), {"pin": "Four digits"})
        padded = build_form_data(schema, {"pin": "0123"})
        self.assertEqual(validate_form(schema, padded), {})
        self.assertEqual(validate_form(schema, {"pin": NumberValue(value=1234)}), {})

    def test_skipped_for_non_numeric_threshold(self):
        schema = _schema(
            {"id": "username", "label": "User", "validation": [{"type": "minLength", "value": "5", "message": "Too short"}]}
        )
        self.assertEqual(validate_form(schema, {"username": TextValue(value="abc")}), {})


class ValidatorBehaviourTests(unittest.TestCase):
    def test_last_failing_rule_wins(self):
        schema = _schema(
            {
                "id": "username",
                "label": "User",
                "validation": [
                    {"type": "required", "message": "Required"},
                    {"type": "minLength", "value": 3, "message": "Too short"},
                ],
            }
        )
        self.assertEqual(validate_form(schema, {"username": TextValue(value="")}), {"username": "Too short"})

    def test_unknown_rule_is_ignored(self):
        schema = _schema(
            {"id": "username", "label": "User", "validation": [{"type": "pattern", "value": "^a", "message": "Bad"}]}
        )
        self.assertEqual(validate_form(schema, {"username": TextValue(value="zzz")}), {})

    def test_hidden_fields_are_validated(self):
        schema = _schema(
            {"id": "remote", "label": "Remote", "type": "checkbox"},
            {
                "id": "city",
                "label": "City",
                "dependsOn": {"fieldId": "remote", "condition": "equals", "value": False},
                "validation": [{"type": "required", "message": "City?"}],
            },
        )
        data = build_form_data(schema, {"remote": True})
        self.assertEqual(validate_form(schema, data), {"city": "City?"})

    def test_validation_is_idempotent(self):
        schema = _schema(
            {"id": "email", "label": "Email", "validation": [{"type": "required", "message": "Required"}]},
            {"id": "username", "label": "User", "validation": [{"type": "minLength", "value": 5, "message": "Short"}]},
        )
        data = build_form_data(schema, {"username": "ab"})
        first = validate_form(schema, data)
        second = validate_form(schema, data)
        self.assertEqual(first, second)
        self.assertIsNot(first, second)


if __name__ == "__main__":
    unittest.main()
