from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from bookloans.models.domain import Role
from bookloans.services.errors import Timeout


@dataclass(frozen=True)
class Identity:
    """The authenticated caller of one request."""
    user_id: str
    role: Role


@dataclass(frozen=True)
class RequestContext:
    """Per-request identity and deadline, passed explicitly into every service call.

    ``deadline`` is a ``time.monotonic()`` value; None means no deadline.
    """
    identity: Optional[Identity] = None
    deadline: Optional[float] = None

    @classmethod
    def with_timeout(cls, identity: Optional[Identity], timeout: Optional[float]) -> "RequestContext":
        deadline = time.monotonic() + timeout if timeout is not None else None
        return cls(identity=identity, deadline=deadline)

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def check_deadline(self) -> None:
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise Timeout()
