import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from dynform.conditions import CONDITION_MODE_LEGACY, visible_fields
from dynform.errors import FormNotReadyError, SchemaFetchError, SchemaInvalidError, UnknownFieldError
from dynform.models import (
    RENDERED_FIELD_TYPES,
    ErrorMap,
    FieldValue,
    FormData,
    FormField,
    FormSchema,
    build_form_data,
    coerce_value,
    form_data_snapshot,
)
from dynform.schema_client import FETCH_TIMEOUT_DEFAULT, load_schema
from dynform.validation import validate_form

logger = logging.getLogger(__name__)

SUBMITTED_MESSAGE = "Form Submitted!"

SchemaLoader = Callable[[str, float], FormSchema]
SubmitListener = Callable[[Dict[str, Any]], None]


class FormStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"
    INVALID = "invalid"


@dataclass
class FormState:
    status: FormStatus = FormStatus.LOADING
    schema: Optional[FormSchema] = None
    values: FormData = field(default_factory=dict)
    errors: ErrorMap = field(default_factory=dict)
    message: Optional[str] = None
    acknowledgement: Optional[str] = None
    submitted: Optional[Dict[str, Any]] = None


class FormComponent:
    """Holds one form's state and the task that loads its schema.

    ``mount`` starts the one-off schema fetch; ``unmount`` cancels it and
    disposes the component so a late result is dropped.
    """

    def __init__(
        self,
        schema_url: str,
        *,
        fetch_timeout: float = FETCH_TIMEOUT_DEFAULT,
        condition_mode: str = CONDITION_MODE_LEGACY,
        initial_values: Optional[Mapping[str, Any]] = None,
        loader: Optional[SchemaLoader] = None,
    ):
        self.schema_url = schema_url
        self.fetch_timeout = fetch_timeout
        self.condition_mode = condition_mode
        self.initial_values = dict(initial_values or {})
        self.state = FormState()
        self._loader = loader
        self._task: Optional[asyncio.Task] = None
        self._disposed = False
        self._listeners: List[SubmitListener] = []

    @property
    def disposed(self) -> bool:
        return self._disposed

    # Lifecycle

    def mount(self) -> Optional[asyncio.Task]:
        if self._disposed or self._task is not None:
            return self._task
        return self._start_fetch()

    def retry(self) -> bool:
        if self._disposed or self.state.status not in (FormStatus.FAILED, FormStatus.INVALID):
            return False
        logger.info("Retrying schema fetch from %s", self.schema_url)
        self.state.status = FormStatus.LOADING
        self.state.message = None
        self._start_fetch()
        return True

    async def unmount(self) -> None:
        self._disposed = True
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def wait_loaded(self) -> FormStatus:
        if self._task is not None:
            await asyncio.shield(self._task)
        return self.state.status

    def _start_fetch(self) -> asyncio.Task:
        self._task = asyncio.create_task(self._fetch())
        return self._task

    async def _fetch(self) -> None:
        task = asyncio.current_task()
        loader = self._loader or load_schema
        try:
            schema = await asyncio.to_thread(loader, self.schema_url, self.fetch_timeout)
        except SchemaInvalidError as exc:
            logger.error("Fetched schema is invalid: %s", exc)
            self._settle(task, FormStatus.INVALID, str(exc))
        except SchemaFetchError as exc:
            logger.error("Error fetching schema: %s", exc)
            self._settle(task, FormStatus.FAILED, str(exc))
        except Exception as exc:  # pragma: no cover - unexpected loader errors
            logger.exception("Unexpected error loading schema from %s", self.schema_url)
            self._settle(task, FormStatus.FAILED, str(exc))
        else:
            if self._is_current(task):
                self.apply_schema(schema)

    def _is_current(self, task: Optional[asyncio.Task]) -> bool:
        return not self._disposed and self._task is task

    def _settle(self, task: Optional[asyncio.Task], status: FormStatus, message: str) -> None:
        if not self._is_current(task):
            logger.info("Dropping schema result for a superseded or disposed form")
            return
        self.state.status = status
        self.state.message = message

    def apply_schema(self, schema: FormSchema) -> None:
        """Make ``schema`` the current form and reset values and errors."""
        self.state.schema = schema
        self.state.values = build_form_data(schema, self.initial_values)
        self.state.errors = {}
        self.state.message = None
        self.state.acknowledgement = None
        self.state.submitted = None
        self.state.status = FormStatus.READY

    # Editing and submission

    def _require_schema(self) -> FormSchema:
        if self.state.status is not FormStatus.READY or self.state.schema is None:
            raise FormNotReadyError(f"form is {self.state.status.value}")
        return self.state.schema

    def _field(self, field_id: str) -> FormField:
        form_field = self._require_schema().field_by_id(field_id)
        if form_field is None:
            raise UnknownFieldError(field_id)
        return form_field

    def visible_fields(self) -> List[FormField]:
        if self.state.schema is None:
            return []
        return visible_fields(self.state.schema, self.state.values, self.condition_mode)

    def change(self, field_id: str, raw: Any) -> FieldValue:
        value = coerce_value(self._field(field_id), raw)
        self.state.values[field_id] = value
        self.state.acknowledgement = None
        self.state.submitted = None
        return value

    def validate(self) -> bool:
        self.state.errors = validate_form(self._require_schema(), self.state.values)
        return not self.state.errors

    def add_submit_listener(self, listener: SubmitListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def snapshot(self) -> Dict[str, Any]:
        return form_data_snapshot(self.state.values)

    def submit(self, posted: Optional[Mapping[str, Any]] = None) -> bool:
        """Store posted control values, validate, and report the data on success.

        Only controls that were shown take part: a shown checkbox missing from
        ``posted`` is unchecked, and hidden fields keep their stored values.
        """
        self._require_schema()
        if posted is not None:
            updates: Dict[str, FieldValue] = {}
            for form_field in self.visible_fields():
                if form_field.type not in RENDERED_FIELD_TYPES:
                    continue
                if form_field.type == "checkbox":
                    updates[form_field.id] = coerce_value(form_field, posted.get(form_field.id, False))
                elif form_field.id in posted:
                    updates[form_field.id] = coerce_value(form_field, posted[form_field.id])
            self.state.values.update(updates)

        if not self.validate():
            self.state.acknowledgement = None
            self.state.submitted = None
            logger.info("Submission blocked by %d validation errors", len(self.state.errors))
            return False

        data = self.snapshot()
        logger.info("Submitted Data: %s", data)
        self.state.acknowledgement = SUBMITTED_MESSAGE
        self.state.submitted = dict(data)
        for listener in list(self._listeners):
            listener(dict(data))
        return True
