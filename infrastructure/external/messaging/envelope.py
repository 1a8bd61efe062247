from __future__ import annotations

from typing import Dict, Optional


H_ATTEMPTS = "x-attempts"
H_ORIGINAL_TOPIC = "x-original-topic"
H_CORR_ID = "x-corr-id"
H_EVENT_TYPE = "x-event-type"
H_ERROR_CLASS = "x-error-class"
H_ERROR_MSG = "x-error-msg"

_MAX_ERROR_MSG = 2048


def _to_bytes_int(n: int) -> bytes:
    return str(n).encode("ascii")


def _to_int(b: Optional[bytes]) -> Optional[int]:
    if b is None:
        return None
    try:
        return int(b.decode("ascii"))
    except (UnicodeDecodeError, ValueError):
        return None


def get_header(headers: Dict[str, bytes], key: str) -> Optional[str]:
    v = headers.get(key)
    return v.decode("utf-8", errors="replace") if v is not None else None


def get_attempts(headers: Dict[str, bytes]) -> int:
    return _to_int(headers.get(H_ATTEMPTS)) or 0


def set_attempts(headers: Dict[str, bytes], n: int) -> None:
    headers[H_ATTEMPTS] = _to_bytes_int(n)


def ensure_original_topic(headers: Dict[str, bytes], topic: str) -> None:
    if H_ORIGINAL_TOPIC not in headers:
        headers[H_ORIGINAL_TOPIC] = topic.encode("utf-8")


def set_error(headers: Dict[str, bytes], error_class: str, message: str) -> None:
    headers[H_ERROR_CLASS] = error_class.encode("utf-8")
    headers[H_ERROR_MSG] = message.encode("utf-8")[:_MAX_ERROR_MSG]
