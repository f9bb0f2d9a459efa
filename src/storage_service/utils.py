from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from .errors import ParseError

SCHEMA_VERSION = 1
_ENVELOPE_KEYS = frozenset({"schema_version", "data"})


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def wrap_record(data: Any) -> dict[str, Any]:
    return {"schema_version": SCHEMA_VERSION, "data": data}


def unwrap_record(payload: Any) -> Any:
    """Return the data held by a stored record.

    Payloads written before records were versioned are returned as-is.
    Raises ParseError for records written by a newer schema.
    """
    if isinstance(payload, dict) and _ENVELOPE_KEYS <= payload.keys():
        version = payload["schema_version"]
        if not isinstance(version, int):
            raise ParseError(f"invalid schema_version {version!r}")
        if version > SCHEMA_VERSION:
            raise ParseError(f"unsupported schema_version {version} (max {SCHEMA_VERSION})")
        return payload["data"]
    return payload
