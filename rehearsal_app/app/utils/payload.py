from __future__ import annotations
from typing import Any
from flask import request
from ..errors import ValidationError


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("request body must be a JSON object")
    return data


def require_fields(data: dict, *names: str) -> None:
    missing = [n for n in names if data.get(n) in (None, "")]
    if missing:
        raise ValidationError(f"missing required field(s): {', '.join(missing)}")


def pick(data: dict, allowed: tuple[str, ...]) -> dict[str, Any]:
    """Subset of ``data`` restricted to the writable ``allowed`` keys."""
    return {k: data[k] for k in allowed if k in data}
