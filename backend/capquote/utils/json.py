from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

import orjson


def _default(o: Any):
    # Money is carried as Decimal internally; render as a plain string so
    # hashing and cache round-trips never lose precision.
    if isinstance(o, Decimal):
        return str(o)
    if isinstance(o, (datetime, date)):
        return o.isoformat()
    raise TypeError(f"Type is not JSON serializable: {type(o).__name__}")


def dumps_bytes(obj: Any, *, sort_keys: bool = False) -> bytes:
    option = orjson.OPT_NON_STR_KEYS
    if sort_keys:
        option |= orjson.OPT_SORT_KEYS
    return orjson.dumps(obj, option=option, default=_default)


def dumps(obj: Any, *, sort_keys: bool = False) -> str:
    return dumps_bytes(obj, sort_keys=sort_keys).decode("utf-8")


def loads(data: str | bytes) -> Any:
    return orjson.loads(data)
