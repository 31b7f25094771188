"""Reads JSON or multipart/form-data request bodies for routes that accept both."""

import json
import re
from dataclasses import dataclass, field
from typing import Any

from fastapi import Request
from starlette.datastructures import UploadFile

from backend.errors import ApiError

# "standard[usesOffLabel]" or "standard.usesOffLabel"
_NESTED_KEY = re.compile(r"^([^\[\].]+)(?:\[([^\]]+)\]|\.(.+))$")


@dataclass
class ParsedBody:
    data: dict[str, Any]
    files: list[tuple[str, UploadFile]] = field(default_factory=list)


def _set_field(data: dict, key: str, value: Any) -> None:
    match = _NESTED_KEY.match(key)
    if match:
        parent, child = match.group(1), match.group(2) or match.group(3)
        nested = data.setdefault(parent, {})
        if isinstance(nested, dict):
            nested[child] = value
        return
    if isinstance(value, str) and value.lstrip().startswith("{"):
        # Nested objects may arrive as a JSON-encoded form field
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            pass
    data[key] = value


async def read_body(request: Request) -> ParsedBody:
    content_type = request.headers.get("content-type", "")
    if "multipart/form-data" in content_type or "application/x-www-form-urlencoded" in content_type:
        form = await request.form()
        parsed = ParsedBody(data={})
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if value.filename:
                    parsed.files.append((key, value))
                continue
            _set_field(parsed.data, key, value)
        return parsed

    raw = await request.body()
    if not raw.strip():
        return ParsedBody(data={})
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ApiError(400, "INVALID_PAYLOAD", "Request body is not valid JSON")
    if not isinstance(data, dict):
        raise ApiError(400, "INVALID_PAYLOAD", "Request body must be a JSON object")
    return ParsedBody(data=data)


def clean_text(value: Any):
    """Trim strings; blank strings become None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None
