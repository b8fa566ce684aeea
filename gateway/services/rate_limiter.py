"""Per-client sliding window limits for the public download routes."""

import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict

from common.logging_config import get_logger
from gateway.exceptions import RateLimitedError

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimit:
    """Rate limit configuration"""
    limit: int
    window_seconds: float

    def __post_init__(self):
        if self.limit <= 0 or self.window_seconds <= 0:
            raise ValueError("Rate limit and window must be positive")


@dataclass(frozen=True)
class RateLimitState:
    """Usage of one identifier within the current window"""
    requests_made: int
    requests_remaining: int
    retry_after_seconds: float

    @property
    def is_exceeded(self) -> bool:
        return self.requests_remaining == 0 and self.retry_after_seconds > 0


class SlidingWindowRateLimiter:
    """
    In-memory sliding window limiter keyed by client identifier.

    Each identifier keeps the timestamps of its requests inside the window;
    older timestamps are dropped on every check.
    """

    def __init__(self, rate_limit: RateLimit, clock: Callable[[], float] = time.monotonic):
        self.rate_limit = rate_limit
        self.clock = clock
        self._hits: Dict[str, Deque[float]] = {}

    def _prune(self, identifier: str, now: float) -> Deque[float]:
        hits = self._hits.setdefault(identifier, deque())
        cutoff = now - self.rate_limit.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        return hits

    def check(self, identifier: str) -> RateLimitState:
        """
        Usage of identifier without counting a request.
        """
        now = self.clock()
        hits = self._prune(identifier, now)
        remaining = max(0, self.rate_limit.limit - len(hits))
        retry_after = 0.0
        if remaining == 0:
            retry_after = hits[0] + self.rate_limit.window_seconds - now
        return RateLimitState(
            requests_made=len(hits),
            requests_remaining=remaining,
            retry_after_seconds=retry_after,
        )

    def hit(self, identifier: str) -> RateLimitState:
        """
        Count one request for identifier.

        Raises:
            RateLimitedError: If the identifier has used up its window
        """
        state = self.check(identifier)
        if state.is_exceeded:
            logger.warning(
                f"Rate limit exceeded [client={identifier}] "
                f"limit={self.rate_limit.limit}/{self.rate_limit.window_seconds}s"
            )
            raise RateLimitedError(
                "Too many download requests, please try again later",
                retry_after=int(state.retry_after_seconds) + 1,
            )

        now = self.clock()
        self._hits[identifier].append(now)
        return RateLimitState(
            requests_made=state.requests_made + 1,
            requests_remaining=state.requests_remaining - 1,
            retry_after_seconds=0.0,
        )

    def reset(self, identifier: str) -> None:
        self._hits.pop(identifier, None)
