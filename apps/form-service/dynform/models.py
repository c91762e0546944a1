import math
from datetime import date
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr, model_validator

from dynform.errors import FieldValueError

RENDERED_FIELD_TYPES = ("text", "number", "date", "select", "checkbox")

ScalarValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr]


class Option(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    label: str


class ValidationRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    message: str
    value: Optional[ScalarValue] = None


class DependsOn(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    field_id: str = Field(alias="fieldId")
    condition: str = "equals"
    value: Optional[ScalarValue] = None


class FormField(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    label: str
    type: str = "text"
    required: bool = False
    options: Optional[List[Option]] = None
    depends_on: Optional[DependsOn] = Field(default=None, alias="dependsOn")
    validation: List[ValidationRule] = Field(default_factory=list)
    placeholder: Optional[str] = None


class SubmitButton(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    text: str = "Submit"
    loading_text: Optional[str] = Field(default=None, alias="loadingText")


class FormSchema(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str
    fields: List[FormField]
    submit_button: SubmitButton = Field(default_factory=SubmitButton, alias="submitButton")

    @model_validator(mode="after")
    def _check_unique_ids(self) -> "FormSchema":
        seen: set[str] = set()
        for form_field in self.fields:
            if form_field.id in seen:
                raise ValueError(f"duplicate field id: {form_field.id}")
            seen.add(form_field.id)
        return self

    def field_by_id(self, field_id: str) -> Optional[FormField]:
        for form_field in self.fields:
            if form_field.id == field_id:
                return form_field
        return None


# Stored values, one kind per declared field type.


class TextValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    value: str = ""

    @property
    def raw(self) -> Any:
        return self.value

    def is_empty(self) -> bool:
        return not self.value

    def text(self) -> Optional[str]:
        return self.value

    def display(self) -> str:
        return self.value


class ChoiceValue(TextValue):
    kind: Literal["select"] = "select"


class NumberValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["number"] = "number"
    value: Optional[Union[StrictInt, StrictFloat]] = None
    # text as typed into the control
    entered: str = ""

    @property
    def raw(self) -> Any:
        return self.display()

    def is_empty(self) -> bool:
        return self.value is None or self.value == 0

    def text(self) -> Optional[str]:
        return self.display()

    def display(self) -> str:
        if self.entered:
            return self.entered
        if self.value is None:
            return ""
        return str(self.value)


class DateValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["date"] = "date"
    value: Optional[date] = None

    @property
    def raw(self) -> Any:
        return self.display()

    def is_empty(self) -> bool:
        return self.value is None

    def text(self) -> Optional[str]:
        return self.display()

    def display(self) -> str:
        return self.value.isoformat() if self.value else ""


class CheckboxValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["checkbox"] = "checkbox"
    value: bool = False

    @property
    def raw(self) -> Any:
        return self.value

    def is_empty(self) -> bool:
        return not self.value

    def text(self) -> Optional[str]:
        return None

    def display(self) -> str:
        return "on" if self.value else ""


FieldValue = Annotated[
    Union[TextValue, ChoiceValue, NumberValue, DateValue, CheckboxValue],
    Field(discriminator="kind"),
]

FormData = Dict[str, FieldValue]
ErrorMap = Dict[str, str]

_TRUE_STRINGS = {"true", "on", "1", "yes"}
_FALSE_STRINGS = {"", "false", "off", "0", "no"}


def empty_value(form_field: FormField) -> FieldValue:
    if form_field.type == "number":
        return NumberValue()
    if form_field.type == "date":
        return DateValue()
    if form_field.type == "checkbox":
        return CheckboxValue()
    if form_field.type == "select":
        return ChoiceValue()
    return TextValue()


def _coerce_number(form_field: FormField, raw: Any) -> NumberValue:
    if raw is None:
        return NumberValue()
    if isinstance(raw, bool):
        raise FieldValueError(form_field.id, "expected a number")
    text = ""
    if isinstance(raw, (int, float)):
        number = raw
    elif isinstance(raw, str):
        text = raw.strip()
        if not text:
            return NumberValue()
        try:
            number = int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                raise FieldValueError(form_field.id, f"not a number: {raw!r}") from None
    else:
        raise FieldValueError(form_field.id, "expected a number")
    if isinstance(number, float) and not math.isfinite(number):
        raise FieldValueError(form_field.id, "number must be finite")
    return NumberValue(value=number, entered=text)


def _coerce_date(form_field: FormField, raw: Any) -> DateValue:
    if raw is None or raw == "":
        return DateValue()
    if isinstance(raw, date):
        return DateValue(value=raw)
    if not isinstance(raw, str):
        raise FieldValueError(form_field.id, "expected an ISO date")
    try:
        return DateValue(value=date.fromisoformat(raw.strip()))
    except ValueError:
        raise FieldValueError(form_field.id, f"not an ISO date: {raw!r}") from None


def _coerce_checkbox(form_field: FormField, raw: Any) -> CheckboxValue:
    if raw is None:
        return CheckboxValue()
    if isinstance(raw, bool):
        return CheckboxValue(value=raw)
    if isinstance(raw, int) and raw in (0, 1):
        return CheckboxValue(value=bool(raw))
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUE_STRINGS:
            return CheckboxValue(value=True)
        if lowered in _FALSE_STRINGS:
            return CheckboxValue(value=False)
    raise FieldValueError(form_field.id, f"not a checkbox state: {raw!r}")


def coerce_value(form_field: FormField, raw: Any) -> FieldValue:
    """Convert user input for ``form_field`` into its stored value kind.

    Browser controls deliver strings; JSON edits may deliver native types.
    ``None`` always maps to the empty value of the field's kind.
    """
    if form_field.type == "number":
        return _coerce_number(form_field, raw)
    if form_field.type == "date":
        return _coerce_date(form_field, raw)
    if form_field.type == "checkbox":
        return _coerce_checkbox(form_field, raw)

    if raw is None:
        text = ""
    elif isinstance(raw, str):
        text = raw
    elif isinstance(raw, (int, float)) and not isinstance(raw, bool):
        text = str(raw)
    else:
        raise FieldValueError(form_field.id, "expected a string")

    if form_field.type == "select":
        return ChoiceValue(value=text)
    return TextValue(value=text)


def build_form_data(schema: FormSchema, initial_values: Optional[Mapping[str, Any]] = None) -> FormData:
    """Create the value store for ``schema`` with one empty value per field."""
    data: FormData = {form_field.id: empty_value(form_field) for form_field in schema.fields}
    for field_id, raw in (initial_values or {}).items():
        form_field = schema.field_by_id(field_id)
        if form_field is None:
            continue
        data[field_id] = coerce_value(form_field, raw)
    return data


def form_data_snapshot(data: Mapping[str, FieldValue]) -> Dict[str, Any]:
    return {field_id: value.raw for field_id, value in data.items()}
