import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import BaseModel

from dynform.component import FormComponent, FormStatus
from dynform.conditions import CONDITION_MODE_LEGACY, CONDITION_MODES
from dynform.errors import FieldValueError, FormNotReadyError, UnknownFieldError
from dynform.render_html import render_page, visible_field_ids
from dynform.schema_client import FETCH_TIMEOUT_DEFAULT, SCHEMA_URL_DEFAULT

load_dotenv()

logger = logging.getLogger(__name__)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number; using %s", name, raw, default)
        return default


def _json_env(name: str) -> Dict[str, Any]:
    raw = os.getenv(name)
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("%s is not valid JSON; ignoring it", name)
        return {}
    if not isinstance(parsed, dict):
        logger.warning("%s must be a JSON object; ignoring it", name)
        return {}
    return parsed


SCHEMA_URL = os.getenv("DYNFORM_SCHEMA_URL", SCHEMA_URL_DEFAULT)
FETCH_TIMEOUT = _float_env("DYNFORM_FETCH_TIMEOUT", FETCH_TIMEOUT_DEFAULT)
CONDITION_MODE = os.getenv("DYNFORM_CONDITION_MODE", CONDITION_MODE_LEGACY).strip().lower()
if CONDITION_MODE not in CONDITION_MODES:
    logger.warning("Unknown DYNFORM_CONDITION_MODE %r; using %s", CONDITION_MODE, CONDITION_MODE_LEGACY)
    CONDITION_MODE = CONDITION_MODE_LEGACY

logger.info("Form schema URL: %s (condition mode: %s)", SCHEMA_URL, CONDITION_MODE)

component = FormComponent(
    SCHEMA_URL,
    fetch_timeout=FETCH_TIMEOUT,
    condition_mode=CONDITION_MODE,
    initial_values=_json_env("DYNFORM_INITIAL_VALUES"),
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    component.mount()
    try:
        yield
    finally:
        await component.unmount()


app = FastAPI(title="Dynamic Form Service", lifespan=lifespan)


class ValueUpdate(BaseModel):
    value: Optional[Any] = None


def _state_payload() -> Dict[str, Any]:
    state = component.state
    return {
        "status": state.status.value,
        "title": state.schema.title if state.schema else None,
        "values": component.snapshot(),
        "errors": dict(state.errors),
        "visible": visible_field_ids(state, component.condition_mode),
        "message": state.message,
        "acknowledgement": state.acknowledgement,
        "submitted": state.submitted,
    }


@app.get("/health")
async def health():
    return {"ok": True, "service": "form-service"}


@app.get("/", response_class=HTMLResponse)
async def form_page():
    return HTMLResponse(render_page(component.state, component.condition_mode))


@app.post("/submit", response_class=HTMLResponse)
async def submit_form(request: Request):
    posted = dict(await request.form())
    try:
        accepted = component.submit(posted)
    except FormNotReadyError as exc:
        logger.warning("Submission rejected: %s", exc)
        raise HTTPException(status_code=409, detail="form_not_ready") from exc
    except FieldValueError as exc:
        logger.warning("Submission has an invalid value: %s", exc)
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    status_code = 200 if accepted else 422
    return HTMLResponse(render_page(component.state, component.condition_mode), status_code=status_code)


@app.post("/retry")
async def retry_fetch():
    if not component.retry():
        logger.info("Retry ignored while form is %s", component.state.status.value)
    return RedirectResponse(url="/", status_code=303)


@app.get("/state")
async def form_state():
    return _state_payload()


@app.get("/schema")
async def form_schema():
    schema = component.state.schema
    if component.state.status is not FormStatus.READY or schema is None:
        raise HTTPException(status_code=503, detail="schema_not_loaded")
    return schema.model_dump(by_alias=True, exclude_none=True)


@app.put("/values/{field_id}")
async def update_value(field_id: str, update: ValueUpdate):
    try:
        value = component.change(field_id, update.value)
    except FormNotReadyError as exc:
        raise HTTPException(status_code=409, detail="form_not_ready") from exc
    except UnknownFieldError as exc:
        logger.warning("Edit for unknown field %s", field_id)
        raise HTTPException(status_code=404, detail="unknown_field") from exc
    except FieldValueError as exc:
        logger.warning("Rejected value for %s: %s", field_id, exc)
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    return {
        "field_id": field_id,
        "value": value.raw,
        "visible": visible_field_ids(component.state, component.condition_mode),
    }


@app.get("/dev/state-dump")
def state_dump():
    if os.getenv("ENABLE_DEV_ROUTES", "false").lower() != "true":
        raise HTTPException(status_code=404, detail="Not found")
    schema = component.state.schema
    payload = _state_payload()
    payload["schema_url"] = component.schema_url
    payload["schema"] = schema.model_dump(by_alias=True) if schema else None
    payload["stored_values"] = {
        key: value.model_dump(mode="json") for key, value in component.state.values.items()
    }
    return payload
