from __future__ import annotations

import time
import uuid
from datetime import datetime

_TIMESTAMP_FORMATS = {
    "en": "%m/%d/%Y, %I:%M:%S %p",
    "zh": "%Y/%m/%d %H:%M:%S",
}


def now_ms() -> int:
    return int(time.time() * 1000)


def format_timestamp(ts_ms: int, language: str = "en") -> str:
    fmt = _TIMESTAMP_FORMATS.get(language, _TIMESTAMP_FORMATS["en"])
    return datetime.fromtimestamp(ts_ms / 1000).strftime(fmt)


def parse_timestamp(text: str | None) -> int | None:
    """Milliseconds for a stored `last_modified` string, or None when unparseable."""
    value = (text or "").strip()
    if not value:
        return None
    for fmt in _TIMESTAMP_FORMATS.values():
        try:
            return int(datetime.strptime(value, fmt).timestamp() * 1000)
        except ValueError:
            continue
    try:
        return int(datetime.fromisoformat(value).timestamp() * 1000)
    except ValueError:
        return None


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def snippet(text: str, length: int = 60) -> str:
    clean = " ".join(part for part in text.split("\n") if part).strip()
    return clean[:length] + "..." if len(clean) > length else clean
