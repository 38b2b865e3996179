# services/cache_invalidator.py
from typing import Callable, Dict, List, Optional, Tuple

from services.request_cache import RequestCache
from logger import get_logger

log = get_logger("cache_invalidator")

# Statistics and the dashboard are derived from order state, so order
# mutations purge them too.
INVALIDATION_MAP: Dict[str, Tuple[str, ...]] = {
    "orders": ("orders-list", "order/{id}", "orders-stats", "dashboard"),
    "kitchens": ("kitchens-list", "kitchen/{id}", "dashboard"),
    "drivers": ("drivers-list", "driver/{id}"),
    "customers": ("customers-list", "customer/{id}"),
}


def invalidation_patterns(resource_family: str, resource_id: Optional[str] = None) -> List[str]:
    """
    Key prefixes to purge for a change in `resource_family`. Per-entity
    templates collapse to the family-wide prefix (e.g. "order/") when no id is
    given.
    """
    try:
        templates = INVALIDATION_MAP[resource_family]
    except KeyError:
        raise ValueError(
            f"Unknown resource family '{resource_family}'. "
            f"Known: {', '.join(sorted(INVALIDATION_MAP))}"
        ) from None

    out: List[str] = []
    for tpl in templates:
        if "{id}" in tpl:
            out.append(tpl.format(id=resource_id) if resource_id else tpl.split("{id}")[0])
        else:
            out.append(tpl)
    return out


class CacheInvalidator:
    """Purges RequestCache entries for a mutated resource family, synchronously."""

    def __init__(self, cache: RequestCache, on_purge: Optional[Callable[[str], None]] = None):
        self.cache = cache
        self._on_purge = on_purge

    def invalidate(self, resource_family: str, resource_id: Optional[str] = None) -> List[str]:
        patterns = invalidation_patterns(resource_family, resource_id)
        purged = 0
        for prefix in patterns:
            purged += self.cache.delete_by_prefix(prefix)
            if self._on_purge is not None:
                self._on_purge(prefix)
        log.info(
            f"Invalidated '{resource_family}'"
            f"{f' id={resource_id}' if resource_id else ''}: "
            f"{purged} entries across {patterns}"
        )
        return patterns
