"""Per-organization request rate limiting."""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

from .errors import RateLimitExceeded

logger = logging.getLogger(__name__)


class RateLimitPolicy(Protocol):
    def check(self, organization_id: str) -> None:
        """Raise ``RateLimitExceeded`` when the organization is over its limit."""


class UnlimitedRate:
    """Accept every request."""

    def check(self, organization_id: str) -> None:
        return None


class TokenBucketRateLimit:
    """Token bucket per organization, refilled continuously.

    Each organization starts with a full bucket of ``limit_per_minute``
    tokens and every request takes one.
    """

    def __init__(
        self,
        limit_per_minute: int,
        *,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if limit_per_minute < 1:
            raise ValueError("limit_per_minute must be at least 1")
        self.limit_per_minute = limit_per_minute
        self._clock = clock or time.monotonic
        self._buckets: Dict[str, Tuple[float, float]] = {}

    def check(self, organization_id: str) -> None:
        now = self._clock()
        tokens, updated_at = self._buckets.get(
            organization_id, (float(self.limit_per_minute), now)
        )
        refill = (now - updated_at) * self.limit_per_minute / 60.0
        tokens = min(float(self.limit_per_minute), tokens + refill)

        if tokens < 1:
            self._buckets[organization_id] = (tokens, now)
            logger.warning(f"Rate limit exceeded for organization {organization_id}")
            raise RateLimitExceeded(organization_id, self.limit_per_minute)
        self._buckets[organization_id] = (tokens - 1, now)
