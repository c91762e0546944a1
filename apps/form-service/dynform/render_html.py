import html
from typing import Any, List, Mapping, Optional

from dynform.component import FormState, FormStatus
from dynform.conditions import CONDITION_MODE_LEGACY, should_show_field
from dynform.models import FieldValue, FormField, empty_value

LOADING_MESSAGE = "Loading form..."
FAILED_MESSAGE = "The form could not be loaded."
INVALID_MESSAGE = "The form description is not valid."

PAGE_STYLES = """
<style>
body { background: #f7f7f8; color: #1f2023; font-family: 'Inter', sans-serif; margin: 0; padding: 1.5rem; }
.form-title { text-align: center; }
.form-container { max-width: 32rem; margin: 0 auto; display: flex; flex-direction: column; gap: 1rem; }
.form-group { display: flex; flex-direction: column; gap: 0.35rem; }
.form-group input[type="checkbox"] { align-self: flex-start; }
.error { color: #c0392b; font-size: 0.85rem; }
.required { color: #c0392b; }
.submitted { margin: 0.5rem 0 0; display: grid; grid-template-columns: auto 1fr; gap: 0.2rem 0.75rem; }
.submitted dd { margin: 0; }
.notice { max-width: 32rem; margin: 0 auto 1rem; padding: 0.75rem; border-radius: 4px; background: #e6f4ea; }
.notice.failure { background: #fdecea; }
.submit-btn { padding: 0.6rem; border: 0; border-radius: 4px; background: #5b3fa8; color: #fff; cursor: pointer; }
</style>
""".strip()

CHANGE_SCRIPT = """
<script>
document.querySelectorAll("[data-field-id]").forEach(function (control) {
  control.addEventListener("change", function () {
    var value = control.type === "checkbox" ? control.checked : control.value;
    fetch("values/" + encodeURIComponent(control.dataset.fieldId), {
      method: "PUT",
      headers: {"Content-Type": "application/json"},
      body: JSON.stringify({value: value})
    }).then(function () { window.location.reload(); });
  });
});
</script>
""".strip()


def _attr(value: str) -> str:
    return html.escape(value, quote=True)


def render_control(form_field: FormField, value: Optional[FieldValue]) -> str:
    """Return the HTML control for ``form_field``, or an empty string if it has none."""
    current = value if value is not None else empty_value(form_field)
    name = _attr(form_field.id)

    if form_field.type in ("text", "number", "date"):
        extra = ' onclick="this.showPicker &amp;&amp; this.showPicker()"' if form_field.type == "date" else ""
        return (
            f'<input type="{form_field.type}" id="{name}" name="{name}" data-field-id="{name}" '
            f'placeholder="{_attr(form_field.placeholder or "")}" '
            f'value="{_attr(current.display())}"{extra}>'
        )

    if form_field.type == "select" and form_field.options:
        selected_value = current.display()
        parts: List[str] = [
            f'<select id="{name}" name="{name}" data-field-id="{name}">',
            '<option value="">Select</option>',
        ]
        for option in form_field.options:
            selected = " selected" if option.value == selected_value and selected_value else ""
            parts.append(f'<option value="{_attr(option.value)}"{selected}>{html.escape(option.label)}</option>')
        parts.append("</select>")
        return "".join(parts)

    if form_field.type == "checkbox":
        checked = " checked" if not current.is_empty() else ""
        return f'<input type="checkbox" id="{name}" name="{name}" data-field-id="{name}"{checked}>'

    return ""


def render_field(form_field: FormField, value: Optional[FieldValue], error: Optional[str] = None) -> str:
    control = render_control(form_field, value)
    if not control:
        return ""
    marker = ' <span class="required">*</span>' if form_field.required else ""
    error_html = f'<span class="error">{html.escape(error)}</span>' if error else ""
    return (
        f'<div class="form-group">'
        f'<label for="{_attr(form_field.id)}">{html.escape(form_field.label)}{marker}</label>'
        f"{control}{error_html}</div>"
    )


def render_form(state: FormState, condition_mode: str = CONDITION_MODE_LEGACY) -> str:
    schema = state.schema
    if schema is None:
        return ""
    fields_html = [
        render_field(form_field, state.values.get(form_field.id), state.errors.get(form_field.id))
        for form_field in schema.fields
        if should_show_field(form_field, state.values, condition_mode)
    ]
    return (
        '<form method="post" action="submit" class="form-container">'
        f"{''.join(fields_html)}"
        f'<button type="submit" class="submit-btn">{html.escape(schema.submit_button.text)}</button>'
        "</form>"
    )


def _retry_block(headline: str, detail: Optional[str]) -> str:
    detail_html = f"<p>{html.escape(detail)}</p>" if detail else ""
    return (
        f'<div class="notice failure"><p>{html.escape(headline)}</p>{detail_html}'
        '<form method="post" action="retry"><button type="submit" class="submit-btn">Retry</button></form>'
        "</div>"
    )


def render_submitted(data: Optional[Mapping[str, Any]]) -> str:
    """List the submitted field values below the acknowledgement."""
    if not data:
        return ""
    rows = []
    for field_id, value in data.items():
        if isinstance(value, bool):
            shown = "yes" if value else "no"
        elif value is None or value == "":
            shown = "(empty)"
        else:
            shown = str(value)
        rows.append(f"<dt>{html.escape(field_id)}</dt><dd>{html.escape(shown)}</dd>")
    return f'<dl class="submitted">{"".join(rows)}</dl>'


def _page(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><head>"
        '<meta charset="utf-8">'
        f"<title>{html.escape(title)}</title>"
        f"{PAGE_STYLES}"
        f"</head><body>{body}</body></html>"
    )


def render_page(state: FormState, condition_mode: str = CONDITION_MODE_LEGACY) -> str:
    """Render the full HTML document for the component's current state."""
    if state.status is FormStatus.FAILED:
        return _page("Form unavailable", _retry_block(FAILED_MESSAGE, state.message))
    if state.status is FormStatus.INVALID:
        return _page("Form unavailable", _retry_block(INVALID_MESSAGE, state.message))
    if state.status is not FormStatus.READY or state.schema is None:
        return _page("Loading", f"<p>{LOADING_MESSAGE}</p>")

    notice = ""
    if state.acknowledgement:
        notice = (
            f'<div class="notice">{html.escape(state.acknowledgement)}'
            f"{render_submitted(state.submitted)}</div>"
        )
    body = (
        f'<h1 class="form-title">{html.escape(state.schema.title)}</h1>'
        f"{notice}"
        f"{render_form(state, condition_mode)}"
        f"{CHANGE_SCRIPT}"
    )
    return _page(state.schema.title, body)


def visible_field_ids(state: FormState, condition_mode: str = CONDITION_MODE_LEGACY) -> List[str]:
    """Ids of the fields that produce a control on the current page."""
    if state.schema is None:
        return []
    values: Mapping[str, FieldValue] = state.values
    return [
        form_field.id
        for form_field in state.schema.fields
        if should_show_field(form_field, values, condition_mode) and render_control(form_field, values.get(form_field.id))
    ]
