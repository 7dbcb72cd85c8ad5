from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

import requests.exceptions

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    delay: float
    retryable_exceptions: tuple[type[Exception], ...]


# One retry, and only when the connection was dropped (e.g. a pooled socket reset by CIS).
CIS_SUBMIT = RetryPolicy(
    max_attempts=2,
    delay=0.0,
    retryable_exceptions=(requests.exceptions.ConnectionError,),
)


def retry_call(
    func: Callable[[], T],
    policy: RetryPolicy,
    *,
    sleep_func: Callable[[float], object] = time.sleep,
) -> T:
    """Execute *func()* with retry per *policy*, re-raising on exhaustion."""
    last_exc: Exception | None = None
    for attempt in range(policy.max_attempts):
        try:
            return func()
        except policy.retryable_exceptions as exc:
            last_exc = exc
            if attempt < policy.max_attempts - 1:
                logger.warning(
                    "Retry %d/%d after %s",
                    attempt + 1,
                    policy.max_attempts - 1,
                    type(exc).__name__,
                )
                if policy.delay:
                    sleep_func(policy.delay)
    raise last_exc  # type: ignore[misc]
