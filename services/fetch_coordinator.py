# services/fetch_coordinator.py
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from api import decode_envelope
from config import FETCH_MIN_INTERVAL_SECONDS
from exceptions import FetchError
from models import ApiResponse, CancellationToken, FetchResult
from services.request_cache import RequestCache
from logger import get_logger

log = get_logger("fetch")

Loader = Callable[[], Awaitable[ApiResponse]]


class FetchCoordinator:
    """
    Wraps one read: cache lookup, per-key throttle, envelope normalization and
    cache refresh. Every outcome comes back as a FetchResult; FetchError
    subclasses are returned in `error`, never retried.
    """

    def __init__(
        self,
        cache: RequestCache,
        min_interval: float = FETCH_MIN_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cache = cache
        self.min_interval = float(min_interval)
        self._clock = clock
        self._last_call: Dict[str, float] = {}
        self._last_value: Dict[str, Any] = {}

    async def fetch(
        self,
        key: str,
        ttl: float,
        loader: Loader,
        token: Optional[CancellationToken] = None,
    ) -> FetchResult:
        if ttl > 0 and key in self.cache:
            log.debug(f"Cache hit: {key}")
            return FetchResult(ok=True, value=self.cache.get(key), from_cache=True)
        return await self._load(key, ttl, loader, token)

    async def refresh(
        self,
        key: str,
        loader: Loader,
        ttl: Optional[float] = None,
        token: Optional[CancellationToken] = None,
    ) -> FetchResult:
        """Skip the cache lookup (pull-to-refresh / retry) and re-populate on success."""
        if ttl is None:
            entry = self.cache.entry(key)
            ttl = entry.ttl if entry is not None else self.cache.default_ttl
        return await self._load(key, ttl, loader, token)

    def forget(self, prefix: str) -> None:
        """Drop throttle state for keys under `prefix` so the next read goes to the server."""
        for k in [k for k in self._last_call if k.startswith(prefix)]:
            del self._last_call[k]
        for k in [k for k in self._last_value if k.startswith(prefix)]:
            del self._last_value[k]

    def _release_slot(self, key: str, stamped_at: float) -> None:
        # a discarded call must not throttle the requester's replacement call
        if self._last_call.get(key) == stamped_at:
            del self._last_call[key]

    async def _load(
        self,
        key: str,
        ttl: float,
        loader: Loader,
        token: Optional[CancellationToken],
    ) -> FetchResult:
        now = self._clock()
        last = self._last_call.get(key)
        if last is not None and (now - last) < self.min_interval:
            log.debug(f"Throttled fetch for {key} ({(now - last) * 1000:.0f}ms since last call)")
            if key in self._last_value:
                return FetchResult(ok=True, value=self._last_value[key], throttled=True)
            return FetchResult(ok=False, throttled=True)

        self._last_call[key] = now

        try:
            resp = await loader()
            value = decode_envelope(resp)
        except FetchError as e:
            if token is not None and token.cancelled:
                log.debug(f"Discarding failed fetch for {key}: requester gone ({token.reason})")
                self._release_slot(key, now)
                return FetchResult(ok=False, error=e, cancelled=True)
            log.warning(f"Fetch {key} failed: {type(e).__name__}: {e}")
            return FetchResult(ok=False, error=e)

        if token is not None and token.cancelled:
            log.debug(f"Discarding fetch result for {key}: requester gone ({token.reason})")
            self._release_slot(key, now)
            return FetchResult(ok=False, cancelled=True)

        self._last_value[key] = value
        if ttl > 0:
            self.cache.set(key, value, ttl)
        return FetchResult(ok=True, value=value)
