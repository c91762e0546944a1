"""Field visibility driven by ``dependsOn`` clauses.

A dependent field is shown when its :class:`Condition` holds between the
current value of the referenced field and the value named in the clause.
In ``legacy`` mode every clause is evaluated as equality, whatever its
``condition`` string says; ``evaluate`` mode dispatches on that string.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from dynform.models import FieldValue, FormField, FormSchema

logger = logging.getLogger(__name__)

CONDITION_MODE_LEGACY = "legacy"
CONDITION_MODE_EVALUATE = "evaluate"
CONDITION_MODES = (CONDITION_MODE_LEGACY, CONDITION_MODE_EVALUATE)

_MISSING = object()


def strict_equals(actual: Any, expected: Any) -> bool:
    """Equality that never mixes booleans, numbers and strings."""
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    if isinstance(actual, (int, float)) and isinstance(expected, (int, float)):
        return actual == expected
    return type(actual) is type(expected) and actual == expected


class Condition:
    name = ""

    def matches(self, actual: Any, expected: Any) -> bool:
        raise NotImplementedError


class EqualsCondition(Condition):
    name = "equals"

    def matches(self, actual: Any, expected: Any) -> bool:
        if actual is _MISSING:
            return False
        return strict_equals(actual, expected)


class NotEqualsCondition(Condition):
    name = "notEquals"

    def matches(self, actual: Any, expected: Any) -> bool:
        if actual is _MISSING:
            return False
        return not strict_equals(actual, expected)


EQUALS = EqualsCondition()
NOT_EQUALS = NotEqualsCondition()

CONDITIONS: Dict[str, Condition] = {
    "equals": EQUALS,
    "eq": EQUALS,
    "==": EQUALS,
    "===": EQUALS,
    "notequals": NOT_EQUALS,
    "not_equals": NOT_EQUALS,
    "neq": NOT_EQUALS,
    "!=": NOT_EQUALS,
    "!==": NOT_EQUALS,
}


def resolve_condition(name: Optional[str], mode: str = CONDITION_MODE_LEGACY) -> Condition:
    if mode != CONDITION_MODE_EVALUATE:
        return EQUALS
    condition = CONDITIONS.get((name or "").strip().lower())
    if condition is None:
        logger.warning("Unknown dependency condition %r; comparing with equality", name)
        return EQUALS
    return condition


def should_show_field(
    form_field: FormField,
    data: Mapping[str, FieldValue],
    mode: str = CONDITION_MODE_LEGACY,
) -> bool:
    clause = form_field.depends_on
    if clause is None:
        return True
    current = data.get(clause.field_id)
    actual = current.raw if current is not None else _MISSING
    return resolve_condition(clause.condition, mode).matches(actual, clause.value)


def visible_fields(
    schema: FormSchema,
    data: Mapping[str, FieldValue],
    mode: str = CONDITION_MODE_LEGACY,
) -> List[FormField]:
    return [form_field for form_field in schema.fields if should_show_field(form_field, data, mode)]
