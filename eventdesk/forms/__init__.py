"""WTForms validation for JSON request bodies."""

from __future__ import annotations

import re
from typing import Any, TypeVar

from werkzeug.datastructures import MultiDict
from wtforms import Form

from eventdesk.errors import ValidationError

FormT = TypeVar('FormT', bound=Form)


def _coerce(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def snake_case(key: str) -> str:
    return re.sub(r'(?<!^)([A-Z])', r'_\1', key).lower()


def to_formdata(data: dict | None) -> MultiDict:
    """Flatten a JSON object into form data with snake_case keys; nested values are skipped."""
    items = []
    for key, value in (data or {}).items():
        if value is None or isinstance(value, (dict, list)):
            continue
        items.append((snake_case(str(key)), _coerce(value)))
    return MultiDict(items)


def field_errors(form: Form) -> dict[str, str]:
    return {name: messages[0] for name, messages in form.errors.items() if messages}


def validate_json(form_cls: type[FormT], data: dict | None) -> FormT:
    """Bind and validate; raise ValidationError with per-field messages."""
    form = form_cls(to_formdata(data))
    if not form.validate():
        raise ValidationError.for_fields(field_errors(form))
    return form


__all__ = ['snake_case', 'to_formdata', 'field_errors', 'validate_json']
