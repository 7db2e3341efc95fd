"""JSON serialization utilities."""

from __future__ import annotations

import datetime
import decimal
import json


def json_default(obj: object) -> object:
    """JSON serializer for objects not serializable by default json code."""
    if isinstance(obj, (datetime.date, datetime.datetime)):
        return obj.isoformat()
    if isinstance(obj, decimal.Decimal):
        if obj == obj.to_integral_value():
            return int(obj)
        return str(obj)
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    return str(obj)


def dump_messages(messages: list[str]) -> str:
    return json.dumps(list(messages), ensure_ascii=False, default=json_default)


def load_messages(raw: str | bytes | list[str] | None) -> list[str]:
    """Decode an array-backed messages column."""
    if raw is None or raw == "":
        return []
    if isinstance(raw, list):
        return [str(item) for item in raw]
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    decoded = json.loads(raw)
    if isinstance(decoded, str):
        return [decoded]
    if not isinstance(decoded, list):
        raise ValueError(f"Expected a JSON array of messages, got {type(decoded).__name__}")
    return [str(item) for item in decoded]
