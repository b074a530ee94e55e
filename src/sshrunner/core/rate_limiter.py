"""Sliding-window request-rate limiter.

Throttles the total throughput of the process. There is no per-caller
identity; every operation shares one window.
"""

import time
from collections import deque
from collections.abc import Callable

from sshrunner.core.config import SSHConfig
from sshrunner.core.exceptions import RateLimitExceededError


class RateLimiter:
    """Admission controller gating every operation before it reaches the network.

    Keeps the timestamps of admitted requests inside the trailing window.
    All mutation happens between suspension points on the event loop, so no
    lock is needed.
    """

    def __init__(
        self,
        enabled: bool = True,
        max_requests: int = 10,
        window_ms: int = 60000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize rate limiter.

        Args:
            enabled: If False, every check succeeds without bookkeeping
            max_requests: Requests admitted per window
            window_ms: Window length in milliseconds
            clock: Monotonic clock returning seconds
        """
        self.enabled = enabled
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._clock = clock
        self._requests: deque[float] = deque()

    @classmethod
    def from_config(cls, config: SSHConfig, **kwargs) -> "RateLimiter":
        return cls(
            enabled=config.rate_limit,
            max_requests=config.rate_limit_max,
            window_ms=config.rate_limit_window_ms,
            **kwargs,
        )

    def check_limit(self) -> None:
        """Admit one request or reject it.

        Raises:
            RateLimitExceededError: If max_requests were already admitted in the window
        """
        if not self.enabled:
            return

        now = self._clock()
        window_start = now - self.window_ms / 1000

        while self._requests and self._requests[0] <= window_start:
            self._requests.popleft()

        if len(self._requests) >= self.max_requests:
            raise RateLimitExceededError(
                f"Rate limit exceeded: {self.max_requests} requests per {self.window_ms}ms",
                max_requests=self.max_requests,
                window_ms=self.window_ms,
            )

        self._requests.append(now)

    @property
    def in_window(self) -> int:
        """Number of admitted requests currently recorded."""
        return len(self._requests)

    def reset(self) -> None:
        self._requests.clear()
