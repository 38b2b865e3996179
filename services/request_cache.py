# services/request_cache.py
import time
from typing import Any, Callable, Dict, Iterator, Optional

from config import DEFAULT_CACHE_TTL_SECONDS
from models import CacheEntry
from logger import get_logger

log = get_logger("request_cache")


class RequestCache:
    """
    TTL-keyed store of prior successful reads, one instance per authenticated
    session.

    get() treats an expired entry exactly like a missing one. Nothing is evicted
    in the background: an expired entry stays until the next set() for the key
    overwrites it, or until delete/delete_by_prefix/clear removes it.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = float(default_ttl)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def _fresh(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None or not entry.is_fresh(self._clock()):
            return None
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        """Cached value, or `default` when missing or expired. Use `in` to tell a cached None apart."""
        entry = self._fresh(key)
        return entry.value if entry is not None else default

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else float(ttl)
        self._entries[key] = CacheEntry(key=key, value=value, written_at=self._clock(), ttl=ttl)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def delete_by_prefix(self, prefix: str) -> int:
        doomed = [k for k in self._entries if k.startswith(prefix)]
        for k in doomed:
            del self._entries[k]
        if doomed:
            log.debug(f"Purged {len(doomed)} cache entr{'y' if len(doomed) == 1 else 'ies'} with prefix '{prefix}'")
        return len(doomed)

    def clear(self) -> None:
        n = len(self._entries)
        self._entries.clear()
        log.info(f"Request cache cleared ({n} entries)")

    def entry(self, key: str) -> Optional[CacheEntry]:
        """Raw entry regardless of freshness."""
        return self._entries.get(key)

    def keys(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __contains__(self, key: str) -> bool:
        return self._fresh(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
