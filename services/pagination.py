# services/pagination.py
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set
from urllib.parse import urlencode

from api import clean_params
from config import DEFAULT_PAGE_LIMIT
from exceptions import MalformedEnvelope
from models import ApiResponse, CancellationToken, Page
from services.fetch_coordinator import FetchCoordinator
from logger import get_logger

log = get_logger("pagination")

PageLoader = Callable[[int, int, Dict[str, Any]], Awaitable[ApiResponse]]


def page_cache_key(prefix: str, page: int, limit: int, filters: Optional[Dict[str, Any]] = None) -> str:
    params = clean_params(filters)
    params["page"] = str(page)
    params["limit"] = str(limit)
    return f"{prefix}?{urlencode(sorted(params.items()))}"


def identity_of(item: Any) -> Any:
    if isinstance(item, dict):
        return item.get("_id") or item.get("id")
    return getattr(item, "id", item)


def parse_page(
    value: Any,
    requested_page: int,
    entity_key: Optional[str] = None,
    parse_item: Optional[Callable[[Any], Any]] = None,
) -> Page:
    """
    Turn {<entity_key>: [...], "pagination": {page, pages, total}} into a Page.
    Without an entity_key the first list-valued field is used. Without
    pagination info the page is treated as the last one.
    """
    if not isinstance(value, dict):
        raise MalformedEnvelope("List response is not an object", raw_body=value)

    if entity_key is None:
        entity_key = next((k for k, v in value.items() if isinstance(v, list)), None)
    rows = value.get(entity_key) if entity_key else None
    if not isinstance(rows, list):
        raise MalformedEnvelope(
            f"List response has no '{entity_key or '<list>'}' array. Keys={list(value.keys())}",
            raw_body=value,
        )

    items = rows
    if parse_item is not None:
        try:
            items = [parse_item(r) for r in rows]
        except ValueError as e:
            raise MalformedEnvelope(f"Unusable item on page {requested_page}: {e}", raw_body=value) from e

    pg = value.get("pagination")
    if isinstance(pg, dict):
        page_number = int(pg.get("page") or requested_page)
        total_pages = int(pg.get("pages") or 0)
        total = pg.get("total")
        return Page(items=items, page_number=page_number, total_pages=total_pages,
                    total=int(total) if total is not None else None)

    return Page(items=items, page_number=requested_page, total_pages=requested_page, total=None)


class PaginationAccumulator:
    """
    Folds successive pages of a list resource into one ordered, de-duplicated
    sequence.

    State: items, has_more, is_loading, error, page (next page to request),
    total. Callers drive it with load_more(); reset() starts a new session
    (filters changed / pull-to-refresh) and must be followed by load_more().
    The first page loaded after a reset skips the cache, and reset() clears
    the fetch throttle for this list so that load is never dropped.
    """

    def __init__(
        self,
        fetcher: FetchCoordinator,
        loader: PageLoader,
        key_prefix: str,
        limit: int = DEFAULT_PAGE_LIMIT,
        filters: Optional[Dict[str, Any]] = None,
        ttl: float = 0,
        entity_key: Optional[str] = None,
        parse_item: Optional[Callable[[Any], Any]] = None,
        identity: Callable[[Any], Any] = identity_of,
    ):
        self.fetcher = fetcher
        self.loader = loader
        self.key_prefix = key_prefix
        self.limit = int(limit)
        self.filters: Dict[str, Any] = dict(filters or {})
        self.ttl = ttl
        self.entity_key = entity_key
        self.parse_item = parse_item
        self.identity = identity

        self.items: List[Any] = []
        self.has_more = True
        self.is_loading = False
        self.error: Optional[Exception] = None
        self.page = 1
        self.total: Optional[int] = None
        self._seen: Set[Any] = set()
        self._token = CancellationToken()
        self._bypass_cache = False

    def cache_key(self, page: int) -> str:
        return page_cache_key(self.key_prefix, page, self.limit, self.filters)

    async def load_more(self) -> None:
        if self.is_loading or not self.has_more:
            return

        token = self._token
        page = self.page
        filters = dict(self.filters)
        self.is_loading = True
        self.error = None

        key = self.cache_key(page)
        load = lambda: self.loader(page, self.limit, filters)
        try:
            if self._bypass_cache:
                result = await self.fetcher.refresh(key, load, ttl=self.ttl, token=token)
            else:
                result = await self.fetcher.fetch(key, self.ttl, load, token=token)
        finally:
            # reset() during the await already cleared the flag for a new session
            if token is self._token:
                self.is_loading = False

        if token.cancelled or result.cancelled:
            return
        if not result.ok:
            if result.error is not None:
                self.error = result.error
            return

        try:
            pg = parse_page(result.value, page, self.entity_key, self.parse_item)
        except MalformedEnvelope as e:
            log.error(f"{self.key_prefix} page {page}: {e}")
            self.error = e
            return

        added = 0
        for item in pg.items:
            ident = self.identity(item)
            if ident is not None and ident in self._seen:
                continue
            if ident is not None:
                self._seen.add(ident)
            self.items.append(item)
            added += 1

        self._bypass_cache = False
        self.has_more = pg.page_number < pg.total_pages
        self.page = pg.page_number + 1
        self.total = pg.total
        log.debug(
            f"{self.key_prefix} page {pg.page_number}/{pg.total_pages}: "
            f"+{added} ({len(pg.items) - added} duplicate), total held {len(self.items)}"
        )

    def reset(self) -> None:
        self._token.cancel("pagination reset")
        self._token = CancellationToken()
        self.items = []
        self._seen = set()
        self.page = 1
        self.has_more = True
        self.is_loading = False
        self.error = None
        self.total = None
        self._bypass_cache = True
        self.fetcher.forget(self.key_prefix)

    def set_filters(self, filters: Optional[Dict[str, Any]]) -> None:
        self.filters = dict(filters or {})
        self.reset()
