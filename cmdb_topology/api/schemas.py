"""Response envelopes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict


def iso(dt: datetime | None = None) -> str:
    dt = dt or datetime.now(timezone.utc)
    return dt.replace(microsecond=0, tzinfo=None).isoformat() + "Z"


@dataclass
class Envelope:
    ok: bool
    payload: Dict[str, Any]
    error: str | None = None
    code: str | None = None
    rid: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "payload": self.payload,
            "error": self.error,
            "code": self.code,
            "rid": self.rid,
            "timestamp": iso(),
        }


def success(payload: Dict[str, Any], rid: str | None = None) -> Envelope:
    return Envelope(True, payload, rid=rid)


def failure(message: str, code: str | None = None, rid: str | None = None) -> Envelope:
    return Envelope(False, {}, message, code, rid)
