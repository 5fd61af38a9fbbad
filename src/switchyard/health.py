"""Cached liveness gate for self-hosted backends."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import TYPE_CHECKING

from switchyard._http import HEALTH_CACHE_TTL_S

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass
class HealthStatus:
    """Last probe outcome and when it was taken (monotonic seconds)."""

    healthy: bool = False
    last_checked: float | None = None


class HealthGate:
    """Gate calls on a probe whose result is reused for ``ttl_s`` seconds.

    A cached result younger than the TTL is returned as-is, healthy or not.
    Without a probe the gate is always open and never touches the network.
    """

    def __init__(
        self,
        probe: Callable[[], Awaitable[bool]] | None,
        *,
        ttl_s: float = HEALTH_CACHE_TTL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_s < 0:
            raise ValueError("HealthGate.ttl_s must be >= 0")
        self._probe = probe
        self._ttl_s = ttl_s
        self._clock = clock
        self.status = HealthStatus()

    @property
    def enabled(self) -> bool:
        return self._probe is not None

    def _is_fresh(self, now: float) -> bool:
        last = self.status.last_checked
        return last is not None and (now - last) < self._ttl_s

    async def is_healthy(self) -> bool:
        """Return the cached health flag, probing when the cache is stale."""
        if self._probe is None:
            return True

        now = self._clock()
        if self._is_fresh(now):
            return self.status.healthy

        healthy = bool(await self._probe())
        self.status = HealthStatus(healthy=healthy, last_checked=self._clock())
        if not healthy:
            logger.warning("Health probe reported backend unhealthy")
        return healthy

    def invalidate(self) -> None:
        """Forget the cached result so the next call probes again."""
        self.status = HealthStatus()
