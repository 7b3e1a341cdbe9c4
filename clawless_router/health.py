"""Short-lived cache of backend liveness probes."""

import time
from typing import Awaitable, Callable

from loguru import logger


class ProbeCache:
    """Remembers the last probe result per backend for ``ttl_s`` seconds.

    Probing the remote tier costs a real inference request, so repeated
    checks inside the TTL reuse the previous answer. Failures are cached
    as well. A TTL of zero disables caching.
    """

    def __init__(self, ttl_s: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self._ttl_s = ttl_s
        self._clock = clock
        self._states: dict[str, tuple[bool, float]] = {}  # name -> (alive, checked_at)

    def get(self, name: str) -> bool | None:
        """Cached result for ``name``, or None if absent or stale."""
        entry = self._states.get(name)
        if entry is None or self._ttl_s <= 0:
            return None
        alive, checked_at = entry
        if self._clock() - checked_at >= self._ttl_s:
            return None
        return alive

    def put(self, name: str, alive: bool) -> None:
        previous = self._states.get(name)
        if previous is not None and previous[0] != alive:
            state = "up" if alive else "down"
            logger.info(f"ProbeCache: {name} -> {state}")
        self._states[name] = (alive, self._clock())

    def invalidate(self, name: str | None = None) -> None:
        if name is None:
            self._states.clear()
        else:
            self._states.pop(name, None)

    async def check(self, name: str, probe: Callable[[], Awaitable[bool]]) -> bool:
        """Return the cached result or run ``probe`` and cache it."""
        cached = self.get(name)
        if cached is not None:
            return cached
        alive = await probe()
        self.put(name, alive)
        return alive
