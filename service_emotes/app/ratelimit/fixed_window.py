"""
Fixed window rate limiter for the Emote service.
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, TYPE_CHECKING

from fastapi import Request

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_SECONDS = 60.0


@dataclass
class _Window:
    count: int
    reset_at: float


@dataclass(frozen=True)
class AdmissionDecision:
    """Outcome of one admission check."""
    allowed: bool
    limit: int
    count: int
    reset_in_seconds: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)

    def headers(self) -> Dict[str, str]:
        """``X-RateLimit-*`` response headers for this decision."""
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_in_seconds),
        }


class FixedWindowRateLimiter:
    """In-process fixed window limiter keyed by client identity.

    A client's first request opens a window of ``window_seconds``; at most
    ``max_requests`` are admitted inside it. Rejections neither count nor
    extend the window. Up to twice the limit can pass across a window
    boundary.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        *,
        clock: Callable[[], float] = time.time,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.metrics = metrics
        self.logger = get_logger("emotes.rate_limiter")
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[str, _Window] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def admit(self, client_id: str) -> AdmissionDecision:
        """Count a request from ``client_id`` and decide whether to let it through."""
        now = self._clock()
        with self._lock:
            window = self._windows.get(client_id)
            if window is None or now >= window.reset_at:
                window = _Window(count=1, reset_at=now + self.window_seconds)
                self._windows[client_id] = window
                allowed = True
            elif window.count < self.max_requests:
                window.count += 1
                allowed = True
            else:
                allowed = False

            decision = AdmissionDecision(
                allowed=allowed,
                limit=self.max_requests,
                count=window.count,
                reset_in_seconds=max(0, int(round(window.reset_at - now))),
            )

        if not allowed:
            self.logger.warning(
                "Rate limit exceeded",
                client_id=client_id,
                current_count=decision.count,
                limit=self.max_requests,
            )
            if self.metrics:
                self.metrics.increment_counter("rate_limit_rejections_total")
        return decision

    def sweep_expired(self, now: Optional[float] = None) -> int:
        """Drop windows that have already ended. Returns the number removed."""
        if now is None:
            now = self._clock()
        with self._lock:
            expired = [key for key, window in self._windows.items() if now >= window.reset_at]
            for key in expired:
                del self._windows[key]

        if expired:
            self.logger.debug("Swept expired rate limit windows", removed=len(expired))
        return len(expired)

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Sweep expired windows every ``interval_seconds`` until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            self.sweep_expired()


class RateLimitMiddleware:
    """Extracts the client identity from a request and applies the limiter."""

    def __init__(self, rate_limiter: FixedWindowRateLimiter):
        self.rate_limiter = rate_limiter

    def check_request(self, request: Request) -> AdmissionDecision:
        return self.rate_limiter.admit(self.get_client_id(request))

    def get_client_id(self, request: Request) -> str:
        """Extract client ID from request."""
        forwarded_for = request.headers.get('X-Forwarded-For')
        if isinstance(forwarded_for, str) and forwarded_for:
            return forwarded_for.split(',')[0].strip()

        real_ip = request.headers.get('X-Real-IP')
        if isinstance(real_ip, str) and real_ip:
            return real_ip

        return request.client.host if request.client else 'unknown'
