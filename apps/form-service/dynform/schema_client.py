import logging
from typing import Any

import requests
from pydantic import ValidationError

from dynform.errors import SchemaFetchError, SchemaInvalidError
from dynform.models import FormSchema

log = logging.getLogger(__name__)

SCHEMA_URL_DEFAULT = "https://sharejson.com/api/v1/uzjxOUc_5VccqT-1XiEYf"
FETCH_TIMEOUT_DEFAULT = 10.0


def fetch_schema_payload(url: str, timeout: float = FETCH_TIMEOUT_DEFAULT) -> Any:
    """Download the form description and return the decoded JSON body."""
    try:
        response = requests.get(url, headers={"Accept": "application/json"}, timeout=timeout)
    except requests.RequestException as exc:
        raise SchemaFetchError(f"request to {url} failed: {exc}") from exc

    if response.status_code >= 400:
        raise SchemaFetchError(f"{response.status_code} {response.text[:400]}")

    try:
        return response.json()
    except ValueError as exc:
        log.error("Schema endpoint returned non-JSON body: %s", response.text[:400])
        raise SchemaFetchError("schema response is not JSON") from exc


def parse_schema(payload: Any) -> FormSchema:
    if not isinstance(payload, dict):
        raise SchemaInvalidError(f"expected a JSON object, got {type(payload).__name__}")
    try:
        return FormSchema.model_validate(payload)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'schema'}: {error['msg']}"
            for error in exc.errors()[:5]
        )
        raise SchemaInvalidError(f"invalid form schema: {problems}") from exc


def load_schema(url: str, timeout: float = FETCH_TIMEOUT_DEFAULT) -> FormSchema:
    payload = fetch_schema_payload(url, timeout)
    schema = parse_schema(payload)
    log.info("Loaded form schema %r with %d fields from %s", schema.title, len(schema.fields), url)
    return schema
