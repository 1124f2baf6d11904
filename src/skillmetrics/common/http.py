from __future__ import annotations

from typing import Any, Optional

from flask import request, session
from werkzeug.exceptions import BadRequest, Unauthorized

from ..core.constants import DEFAULT_LIST_LIMIT
from .datetime_utils import parse_optional_date


def current_user_id() -> int:
    """Acting user as set in the session by the login flow."""
    if "user_id" not in session:
        raise Unauthorized("Login required")
    return int(session["user_id"])


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise BadRequest("Expected a JSON object body")
    return payload


def optional_int(payload: dict, key: str) -> Optional[int]:
    value = payload.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise BadRequest(f"'{key}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest(f"'{key}' must be an integer")


def required_int(payload: dict, key: str) -> int:
    value = optional_int(payload, key)
    if value is None:
        raise BadRequest(f"'{key}' is required")
    return value


def date_field(payload: dict, key: str) -> Any:
    try:
        return parse_optional_date(payload.get(key))
    except ValueError:
        raise BadRequest(f"'{key}' must be a date (YYYY-MM-DD)")


def list_limit() -> int:
    try:
        limit = int(request.args.get("limit", DEFAULT_LIST_LIMIT))
    except ValueError:
        raise BadRequest("'limit' must be an integer")
    return max(1, min(limit, DEFAULT_LIST_LIMIT))
