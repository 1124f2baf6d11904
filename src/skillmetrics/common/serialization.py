from __future__ import annotations

from dataclasses import fields, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    if isinstance(value, date):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return as_dto(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def as_dto(record) -> dict:
    """Convert a domain record into a JSON-ready dict."""
    return {f.name: _plain(getattr(record, f.name)) for f in fields(record)}


def as_dto_list(records: Iterable) -> list[dict]:
    return [as_dto(r) for r in records]
