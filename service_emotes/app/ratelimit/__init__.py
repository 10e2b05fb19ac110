"""
Rate limiting package for the Emote service.

Holds the fixed-window limiter that bounds requests per client address,
plus the request adapter that derives the client identity.
"""

from .fixed_window import AdmissionDecision, FixedWindowRateLimiter, RateLimitMiddleware

__all__ = [
    "AdmissionDecision",
    "FixedWindowRateLimiter",
    "RateLimitMiddleware",
]
