import logging
from typing import Callable, Dict, Mapping, Optional

from dynform.models import ErrorMap, FieldValue, FormSchema, ValidationRule

logger = logging.getLogger(__name__)

RuleCheck = Callable[[ValidationRule, Optional[FieldValue]], bool]


def _fails_required(rule: ValidationRule, value: Optional[FieldValue]) -> bool:
    return value is None or value.is_empty()


def _fails_min_length(rule: ValidationRule, value: Optional[FieldValue]) -> bool:
    if value is None:
        return False
    text = value.text()
    threshold = rule.value
    if text is None or isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        return False
    return len(text) < threshold


RULE_CHECKS: Dict[str, RuleCheck] = {
    "required": _fails_required,
    "minLength": _fails_min_length,
}


def validate_form(schema: FormSchema, data: Mapping[str, FieldValue]) -> ErrorMap:
    """Run every field's rules in schema order and return a fresh error map.

    Hidden fields are validated too. When several rules fail for one field
    the message of the last failing rule is kept.
    """
    errors: ErrorMap = {}
    for form_field in schema.fields:
        value = data.get(form_field.id)
        for rule in form_field.validation:
            check = RULE_CHECKS.get(rule.type)
            if check is None:
                logger.debug("Ignoring unknown validation rule %r on %s", rule.type, form_field.id)
                continue
            if check(rule, value):
                errors[form_field.id] = rule.message
    return errors
