"""
Per-client token-bucket rate limiting.
"""

import asyncio
import contextlib
import threading
import time
from typing import Callable, Dict, Optional

import structlog
from fastapi import Request, status

from api.responses import error_response, server_error_response

logger = structlog.get_logger(__name__)


class TokenBucket:
    """Token bucket refilled at `rate` tokens per second up to `burst`."""

    def __init__(self, rate: float, burst: int, now: float):
        self.rate = rate
        self.burst = burst
        self.tokens = float(burst)
        self.updated_at = now
        self.last_seen = now

    def allow(self, now: float) -> bool:
        """Take one token if available."""
        elapsed = max(0.0, now - self.updated_at)
        self.tokens = min(float(self.burst), self.tokens + elapsed * self.rate)
        self.updated_at = now
        if self.tokens >= 1:
            self.tokens -= 1
            return True
        return False


class RateLimiter:
    """
    Tracks one token bucket per client and evicts idle clients.

    All buckets share the same fill rate and burst size. A background sweep,
    started with start() and stopped with stop(), removes clients not seen
    for longer than stale_after seconds.
    """

    def __init__(
        self,
        rate: float,
        burst: int,
        enabled: bool = True,
        sweep_interval: float = 60.0,
        stale_after: float = 180.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.rate = rate
        self.burst = burst
        self.enabled = enabled
        self.sweep_interval = sweep_interval
        self.stale_after = stale_after
        self.clock = clock
        self.clients: Dict[str, TokenBucket] = {}
        self._lock = threading.Lock()
        self._task: Optional[asyncio.Task] = None

    def allow(self, client_id: str) -> bool:
        """Record a request from client_id and report whether it is admitted."""
        with self._lock:
            now = self.clock()
            bucket = self.clients.get(client_id)
            if bucket is None:
                bucket = TokenBucket(self.rate, self.burst, now)
                self.clients[client_id] = bucket
            bucket.last_seen = now
            return bucket.allow(now)

    def sweep(self) -> int:
        """Remove clients idle for longer than stale_after. Returns the number removed."""
        with self._lock:
            now = self.clock()
            stale = [
                client_id for client_id, bucket in self.clients.items()
                if now - bucket.last_seen > self.stale_after
            ]
            for client_id in stale:
                del self.clients[client_id]
        if stale:
            logger.debug("Evicted idle rate limit clients", count=len(stale))
        return len(stale)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()

    def start(self) -> None:
        """Start the background sweep on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._sweep_forever())
            logger.info("Rate limiter started", rps=self.rate, burst=self.burst, enabled=self.enabled)

    async def stop(self) -> None:
        """Cancel the background sweep and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Rate limiter stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()


async def rate_limit_middleware(request: Request, call_next):
    """Reject requests from clients that have exhausted their bucket."""
    limiter: RateLimiter = request.app.state.limiter
    if not limiter.enabled:
        return await call_next(request)

    client = request.client
    if client is None or not client.host:
        return server_error_response(request, ValueError("unable to determine client address"))

    if not limiter.allow(client.host):
        logger.debug("Rate limit exceeded", client=client.host, path=request.url.path)
        return error_response(status.HTTP_429_TOO_MANY_REQUESTS, "rate limit exceeded")

    return await call_next(request)
