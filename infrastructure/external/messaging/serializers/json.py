from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from ..exceptions import SerializationError


def _default(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat().replace("+00:00", "Z")
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class JsonSerializer:
    def dumps(self, obj: Any) -> bytes:
        try:
            return json.dumps(
                obj, separators=(",", ":"), ensure_ascii=False, default=_default
            ).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(str(e)) from e

    def loads(self, data: bytes) -> Any:
        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise SerializationError(str(e)) from e
