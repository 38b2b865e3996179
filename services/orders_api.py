# services/orders_api.py
import asyncio
from typing import Any, Dict, Optional

from api import send_request
from models import ApiResponse, OrderStatus, Role
from logger import get_logger

log = get_logger("orders_api")

# ---- cache keys (prefixes must line up with services.cache_invalidator) ----
ORDERS_LIST_KEY = "orders-list"
ORDERS_STATS_KEY = "orders-stats"


def order_detail_key(order_id: str) -> str:
    return f"order/{order_id}"


# ---- endpoints ----
def list_path(role: Optional[Role]) -> str:
    # kitchen staff only see their own kitchen's queue
    return "/api/orders/kitchen" if role == Role.KITCHEN_STAFF else "/api/orders/admin/all"


def status_path(order_id: str, role: Optional[Role]) -> str:
    if role == Role.ADMIN:
        return f"/api/orders/admin/{order_id}/status"
    return f"/api/orders/{order_id}/status"


async def get_orders_page(
    page: int,
    limit: int,
    filters: Optional[Dict[str, Any]] = None,
    role: Optional[Role] = None,
) -> ApiResponse:
    params = dict(filters or {})
    params["page"] = page
    params["limit"] = limit
    return await asyncio.to_thread(send_request, "GET", list_path(role), params, None, log)


async def get_order(order_id: str) -> ApiResponse:
    return await asyncio.to_thread(send_request, "GET", f"/api/orders/{order_id}", None, None, log)


async def get_order_stats() -> ApiResponse:
    return await asyncio.to_thread(send_request, "GET", "/api/orders/admin/stats", None, None, log)


async def patch_order_status(
    order_id: str,
    status: OrderStatus,
    role: Role,
    notes: Optional[str] = None,
) -> ApiResponse:
    body: Dict[str, Any] = {"status": status.value}
    if notes:
        body["notes"] = notes
    return await asyncio.to_thread(send_request, "PATCH", status_path(order_id, role), None, body, log)


async def post_cancel_order(
    order_id: str,
    reason: str,
    issue_refund: bool,
    restore_vouchers: bool,
) -> ApiResponse:
    body = {
        "reason": reason,
        "issueRefund": bool(issue_refund),
        "restoreVouchers": bool(restore_vouchers),
    }
    return await asyncio.to_thread(send_request, "POST", f"/api/orders/{order_id}/cancel", None, body, log)


def summarize_stats(stats: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten the stats payload into per-status counts the console shows."""
    by_status = stats.get("byStatus") or {}
    out = {"total": int(stats.get("totalOrders") or 0)}
    for s in OrderStatus:
        out[s.value] = int(by_status.get(s.value) or 0)
    out["revenue"] = stats.get("totalRevenue") or 0
    out["avg_order_value"] = stats.get("avgOrderValue") or 0
    return out
