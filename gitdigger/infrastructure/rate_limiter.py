"""
Per-provider rate limit tracking shared by every worker of a batch.
"""

import asyncio
import random
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Mapping, Optional, Tuple

from ..models import ProviderKind
from .logger import logger


@dataclass
class RateLimitInfo:
    """Last known quota for one provider."""

    limit: Optional[int] = None
    remaining: Optional[int] = None
    used: Optional[int] = None
    reset_time: Optional[datetime] = None
    threshold: int = 0      # Remaining calls at or below which the quota counts as spent

    @property
    def is_exhausted(self) -> bool:
        return self.remaining is not None and self.remaining <= self.threshold

    @property
    def reset_in_seconds(self) -> float:
        if self.reset_time is None:
            return 0.0
        return max((self.reset_time - datetime.now()).total_seconds(), 0.0)


def _int_header(headers: Mapping[str, str], *names: str) -> Optional[int]:
    lowered = {key.lower(): value for key, value in headers.items()}
    for name in names:
        value = lowered.get(name)
        if value is None:
            continue
        try:
            return int(float(value))
        except ValueError:
            continue
    return None


class RateLimiter:
    """
    Task-safe quota tracker and request pacer for one provider.

    Understands GitHub / Gitea (`X-RateLimit-*`) and GitLab (`RateLimit-*`)
    headers. When the quota is exhausted, `acquire()` waits for the reset.
    """

    def __init__(
        self,
        default_delay: float = 0.0,
        max_delay: float = 60.0,
        adaptive: bool = True,
        max_reset_wait: float = 3600.0,
        exhaustion_threshold: int = 0,
    ):
        self.default_delay = default_delay
        self.max_delay = max_delay
        self.adaptive = adaptive
        self.max_reset_wait = max_reset_wait
        self.exhaustion_threshold = exhaustion_threshold
        self.rate_limit_info = RateLimitInfo(threshold=exhaustion_threshold)
        self._lock = asyncio.Lock()
        self._last_request = 0.0
        self._consecutive_limits = 0

    async def acquire(self) -> None:
        """Wait until a request may be issued against this provider."""

        async with self._lock:
            info = self.rate_limit_info
            if info.is_exhausted:
                wait = min(info.reset_in_seconds, self.max_reset_wait)
                if wait > 0:
                    logger.warning(f"Rate limit exhausted, waiting {wait:.1f}s for reset")
                    await asyncio.sleep(wait)
                # Quota figures are stale once the reset time has passed
                self.rate_limit_info = RateLimitInfo(limit=info.limit, threshold=info.threshold)

            now = time.time()
            delay = self._calculate_delay(now)
            if delay > 0:
                await asyncio.sleep(delay)

            self._last_request = time.time()

    def _calculate_delay(self, now: float) -> float:
        delay = self.default_delay
        if self.adaptive and self._consecutive_limits:
            delay = max(delay, 1.0) * (2 ** self._consecutive_limits)
        delay = min(delay, self.max_delay)
        if delay <= 0:
            return 0.0

        # Jitter keeps concurrent workers from waking in lockstep
        delay *= random.uniform(0.9, 1.1)
        elapsed = now - self._last_request
        return max(delay - elapsed, 0.0)

    async def update_rate_limit_info(self, headers: Mapping[str, str]) -> None:
        """Refresh quota figures from response headers."""

        limit = _int_header(headers, "x-ratelimit-limit", "ratelimit-limit")
        remaining = _int_header(headers, "x-ratelimit-remaining", "ratelimit-remaining")
        used = _int_header(headers, "x-ratelimit-used", "ratelimit-observed")
        reset = _int_header(headers, "x-ratelimit-reset", "ratelimit-reset")

        async with self._lock:
            info = self.rate_limit_info
            if limit is not None:
                info.limit = limit
            if remaining is not None:
                info.remaining = remaining
            if used is not None:
                info.used = used
            if reset is not None:
                info.reset_time = datetime.fromtimestamp(reset)

            if remaining is not None:
                if info.is_exhausted:
                    self._consecutive_limits += 1
                else:
                    self._consecutive_limits = 0

    async def note_rate_limited(self, retry_after: Optional[float]) -> None:
        """Record an explicit rate limit rejection so every worker backs off."""

        async with self._lock:
            self.rate_limit_info.remaining = 0
            if retry_after is not None:
                self.rate_limit_info.reset_time = datetime.now() + timedelta(seconds=retry_after)
            self._consecutive_limits += 1


class RateLimitRegistry:
    """Hands out one RateLimiter per provider instance (kind + host)."""

    def __init__(self, **limiter_options):
        self._limiter_options = limiter_options
        self._limiters: Dict[Tuple[ProviderKind, Optional[str]], RateLimiter] = {}

    def for_provider(self, kind: ProviderKind, host: Optional[str] = None) -> RateLimiter:
        key = (kind, host)
        if key not in self._limiters:
            self._limiters[key] = RateLimiter(**self._limiter_options)
        return self._limiters[key]

    def snapshot(self) -> Dict[str, RateLimitInfo]:
        return {
            f"{kind.value}@{host or 'default'}": limiter.rate_limit_info
            for (kind, host), limiter in self._limiters.items()
        }


__all__ = ["RateLimitInfo", "RateLimiter", "RateLimitRegistry"]
