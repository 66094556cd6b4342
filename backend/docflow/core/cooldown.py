"""Rate-limited fetch cache.

Wraps an expensive or flaky lookup: successful results are reused for
``ttl`` seconds, and after a failure the key is not re-fetched until
``cooldown`` seconds have passed. During a cooldown the last good value is
served if one exists; otherwise ``CooldownActive`` is raised.
"""
import logging
import threading
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


class CooldownActive(Exception):
    """A recent fetch failed and no cached value is available."""

    def __init__(self, key: Hashable, retry_in: float):
        super().__init__(f"Fetch for {key!r} is cooling down for {retry_in:.1f}s")
        self.key = key
        self.retry_in = retry_in


@dataclass
class _Entry:
    value: Any = None
    fetched_at: float | None = None
    failed_at: float | None = None


class CooldownCache:
    """Per-key fetch cache.

    ``None`` results are never stored. A value stays available as a stale
    fallback for ``cooldown`` seconds past its ``ttl``; after that, and once
    any cooldown has run out, the entry is swept. Sweeps run at most once per
    ``ttl``.
    """

    def __init__(
        self,
        ttl: float,
        cooldown: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.cooldown = cooldown
        self._clock = clock
        self._entries: dict[Hashable, _Entry] = {}
        self._lock = threading.Lock()
        self._last_pruned = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: Hashable, fetch: Callable[[], Any]) -> Any:
        now = self._clock()
        with self._lock:
            self._maybe_prune(now)
            entry = self._entries.get(key)
            if entry is not None:
                if entry.fetched_at is not None and now - entry.fetched_at < self.ttl:
                    return entry.value
                if entry.failed_at is not None and now - entry.failed_at < self.cooldown:
                    if entry.fetched_at is not None:
                        return entry.value
                    raise CooldownActive(key, self.cooldown - (now - entry.failed_at))

        try:
            value = fetch()
        except Exception:
            with self._lock:
                self._entries.setdefault(key, _Entry()).failed_at = self._clock()
            logger.warning(
                "Fetch for %r failed; suppressing retries for %.0fs", key, self.cooldown,
                exc_info=True,
            )
            raise

        with self._lock:
            if value is None:
                # a miss clears any cooldown but is looked up again next time
                self._entries.pop(key, None)
            else:
                self._entries[key] = _Entry(value=value, fetched_at=self._clock())
        return value

    def invalidate(self, key: Hashable | None = None) -> None:
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def _maybe_prune(self, now: float) -> None:
        # caller holds the lock
        if now - self._last_pruned < self.ttl:
            return
        self._last_pruned = now
        expired = [key for key, entry in self._entries.items() if self._expired(entry, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Pruned %d expired cache entries", len(expired))

    def _expired(self, entry: _Entry, now: float) -> bool:
        if entry.fetched_at is not None and now - entry.fetched_at < self.ttl + self.cooldown:
            return False
        if entry.failed_at is not None and now - entry.failed_at < self.cooldown:
            return False
        return True
