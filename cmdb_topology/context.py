"""Per-request context: request id, deadline and cancellation."""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field

from .errors import OperationCancelled


def new_request_id() -> str:
    return uuid.uuid4().hex


@dataclass
class RequestContext:
    rid: str = field(default_factory=new_request_id)
    deadline: float | None = None
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False)

    @classmethod
    def with_timeout(cls, seconds: float | None, rid: str | None = None) -> "RequestContext":
        deadline = time.monotonic() + seconds if seconds else None
        return cls(rid=rid or new_request_id(), deadline=deadline)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def done(self) -> bool:
        return self.cancelled or self.remaining() == 0.0

    def check(self) -> None:
        """Raise ``OperationCancelled`` once the context is done."""
        if self.cancelled:
            raise OperationCancelled(f"request {self.rid} cancelled")
        if self.remaining() == 0.0:
            raise OperationCancelled(f"request {self.rid} deadline exceeded")
