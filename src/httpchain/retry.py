"""Retry policies and the per-call retry budget.

A :class:`RetryPolicy` decides, from a completed response alone, whether
the request should be resent. The pipeline only honours that decision
while the call's :class:`RetryState` still has attempts left; once the
budget reaches zero the last response is returned as-is.

Policies:

* :class:`NeverRetry` -- the default; retry is opt-in.
* :class:`StatusCodeRetryPolicy` -- retries a configurable set of status
  codes, optionally with exponential backoff between attempts.
* :class:`AlwaysRetry` -- retries every response until the budget runs out.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

import httpx

DEFAULT_RETRY_BUDGET = 5
"""Resend attempts allowed for a single logical call."""

RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


class RetryPolicy:
    """Base retry policy. Never retries; override :meth:`should_retry`."""

    def should_retry(self, response: httpx.Response) -> bool:
        """Return ``True`` if *response* should be resent.

        Must be a pure function of the response.
        """
        return False

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait before resend number *attempt* (1-based)."""
        return 0.0


class NeverRetry(RetryPolicy):
    """Explicit name for the default policy."""


class AlwaysRetry(RetryPolicy):
    """Resend every response while attempts remain."""

    def should_retry(self, response: httpx.Response) -> bool:
        return True


class StatusCodeRetryPolicy(RetryPolicy):
    """Retry when the raw status code is in a configured set.

    Args:
        status_codes: Codes that trigger a resend. Defaults to
            :data:`RETRYABLE_STATUS_CODES`.
        backoff_base: Delay before the first resend. Each further attempt
            doubles it (``base``, ``2*base``, ``4*base``...). ``0`` disables
            waiting.
        max_delay: Upper bound for a single delay.
    """

    def __init__(
        self,
        status_codes: Optional[Iterable[int]] = None,
        backoff_base: float = 0.0,
        max_delay: float = 30.0,
    ) -> None:
        codes = RETRYABLE_STATUS_CODES if status_codes is None else status_codes
        self.status_codes = frozenset(int(code) for code in codes)
        self.backoff_base = backoff_base
        self.max_delay = max_delay

    def should_retry(self, response: httpx.Response) -> bool:
        return response.status_code in self.status_codes

    def delay_for(self, attempt: int) -> float:
        if self.backoff_base <= 0:
            return 0.0
        return min(self.backoff_base * 2 ** (attempt - 1), self.max_delay)


@dataclass
class RetryState:
    """Attempt bookkeeping for one logical call.

    ``attempts_remaining`` only ever decreases within a call chain.
    """

    attempts_remaining: int = DEFAULT_RETRY_BUDGET
    retry_in_progress: bool = False

    @property
    def attempts_used(self) -> int:
        return self._budget - self.attempts_remaining

    def __post_init__(self) -> None:
        if self.attempts_remaining < 0:
            raise ValueError("retry budget cannot be negative")
        self._budget = self.attempts_remaining

    def can_retry(self) -> bool:
        return self.attempts_remaining > 0

    def consume(self) -> None:
        """Spend one attempt and mark the call as retrying."""
        if self.attempts_remaining <= 0:
            raise RuntimeError("retry budget exhausted")
        self.attempts_remaining -= 1
        self.retry_in_progress = True

    def finish(self) -> None:
        self.retry_in_progress = False
