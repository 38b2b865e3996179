# app.py

import argparse
import asyncio
import sys
import time
from typing import Any, Callable, Dict, FrozenSet, Optional

# ---------------- CONFIG / CORE ----------------
from config import (
    ENV,
    utc_now_iso,
    DEFAULT_PAGE_LIMIT,
    ORDER_LIST_TTL_SECONDS,
    ORDER_DETAIL_TTL_SECONDS,
    ORDER_STATS_TTL_SECONDS,
)

from logger import get_logger, log_file_path
from db import get_acting_role
from exceptions import MalformedEnvelope
from models import CancellationToken, FetchResult, MutationResult, Order, OrderStatus, Role

# ---------------- DATA LAYER ----------------
from services.request_cache import RequestCache
from services.fetch_coordinator import FetchCoordinator
from services.cache_invalidator import CacheInvalidator
from services.order_store import LocalOrderStore
from services.pagination import PaginationAccumulator
from services.status_mutation import StatusMutationCoordinator

# ---------------- ORDERS ----------------
from services import orders_api
from services.orders_api import ORDERS_LIST_KEY, ORDERS_STATS_KEY, order_detail_key, summarize_stats
from services.transition_policy import next_allowed_statuses, can_cancel, parse_role
from services.order_provenance import classify, describe


log = get_logger("app")


class OpsSession:
    """
    Everything one authenticated operator session shares: the request cache,
    the coordinators built on it, and the local order copy.

    Create one at login and call close() at logout; nothing here is a module
    level singleton.
    """

    def __init__(
        self,
        role: Any = None,
        clock: Callable[[], float] = time.monotonic,
        api=orders_api,
    ):
        self.role: Optional[Role] = parse_role(role) if role is not None else get_acting_role()
        self.api = api
        self.cache = RequestCache(clock=clock)
        self.fetcher = FetchCoordinator(self.cache, clock=clock)
        self.invalidator = CacheInvalidator(self.cache, on_purge=self.fetcher.forget)
        self.orders = LocalOrderStore()
        self.mutations = StatusMutationCoordinator(
            self.orders,
            self.invalidator,
            status_writer=api.patch_order_status,
            cancel_writer=api.post_cancel_order,
            clock=clock,
        )
        log.info(f"Session opened | env={ENV} role={self.role.value if self.role else None}")

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------
    def remember(self, raw: Dict[str, Any]) -> Order:
        return self.orders.upsert(Order.from_api(raw))

    def order_list(
        self,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = DEFAULT_PAGE_LIMIT,
    ) -> PaginationAccumulator:
        role = self.role
        return PaginationAccumulator(
            self.fetcher,
            lambda page, lim, f: self.api.get_orders_page(page, lim, f, role),
            ORDERS_LIST_KEY,
            limit=limit,
            filters=filters,
            ttl=ORDER_LIST_TTL_SECONDS,
            entity_key="orders",
            parse_item=self.remember,
        )

    async def order_detail(
        self,
        order_id: str,
        token: Optional[CancellationToken] = None,
        refresh: bool = False,
    ) -> FetchResult:
        key = order_detail_key(order_id)
        loader = lambda: self.api.get_order(order_id)
        if refresh:
            result = await self.fetcher.refresh(key, loader, ORDER_DETAIL_TTL_SECONDS, token)
        else:
            result = await self.fetcher.fetch(key, ORDER_DETAIL_TTL_SECONDS, loader, token)
        if not result.ok:
            return result

        value = result.value
        raw = value.get("order") if isinstance(value, dict) and isinstance(value.get("order"), dict) else value
        try:
            result.value = self.remember(raw)
        except ValueError as e:
            err = MalformedEnvelope(f"Order {order_id} response unusable: {e}", raw_body=value)
            log.error(str(err))
            return FetchResult(ok=False, error=err)
        return result

    async def order_stats(self, token: Optional[CancellationToken] = None) -> FetchResult:
        result = await self.fetcher.fetch(
            ORDERS_STATS_KEY, ORDER_STATS_TTL_SECONDS, self.api.get_order_stats, token
        )
        if result.ok and isinstance(result.value, dict):
            result.value = summarize_stats(result.value)
        return result

    # ------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------
    def allowed_targets(self, order_id: str) -> FrozenSet[OrderStatus]:
        return next_allowed_statuses(self.orders.status_of(order_id), self.role)

    def can_cancel(self, order_id: str) -> bool:
        return can_cancel(self.orders.status_of(order_id), self.role)

    async def set_status(
        self,
        order_id: str,
        target: Any,
        notes: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> MutationResult:
        return await self.mutations.request_transition(order_id, target, self.role, notes, token)

    async def cancel_order(
        self,
        order_id: str,
        reason: str,
        issue_refund: bool = False,
        restore_vouchers: bool = True,
        token: Optional[CancellationToken] = None,
    ) -> MutationResult:
        return await self.mutations.cancel_order(
            order_id, reason, self.role, issue_refund, restore_vouchers, token
        )

    def close(self) -> None:
        self.cache.clear()
        self.orders.clear()
        log.info("Session closed")


# ------------------------------------------------------------
# CLI
# ------------------------------------------------------------
def _fmt_order(order: Order) -> str:
    p = order.payload
    kitchen = p.get("kitchenId")
    if isinstance(kitchen, dict):
        kitchen = kitchen.get("name") or kitchen.get("_id")
    return (
        f"{order.id} | #{p.get('orderNumber', '-')} | {order.status.value} | "
        f"kitchen={kitchen or '-'} | total={p.get('grandTotal', p.get('totalAmount', '-'))} | "
        f"{classify(order).value}"
    )


def _print_error(result) -> int:
    err = result.error
    if err is None:
        print("ERR: request dropped (throttled)")
    else:
        print(f"ERR: {type(err).__name__}: {err}")
    return 1


async def _run(args: argparse.Namespace) -> int:
    session = OpsSession(role=args.role)
    try:
        if args.command == "list":
            filters = {"status": args.status} if args.status else {}
            pager = session.order_list(filters=filters, limit=args.limit)
            for _ in range(args.pages):
                await pager.load_more()
                if pager.error is not None or not pager.has_more:
                    break
            if pager.error is not None:
                print(f"ERR: {type(pager.error).__name__}: {pager.error}")
                return 1
            for o in pager.items:
                print(_fmt_order(o))
            print(f"-- {len(pager.items)} shown, total={pager.total}, more={pager.has_more}")
            return 0

        if args.command == "stats":
            result = await session.order_stats()
            if not result.ok:
                return _print_error(result)
            for k, v in result.value.items():
                print(f"{k:>18}: {v}")
            return 0

        # single-order commands need the current status locally first
        result = await session.order_detail(args.order_id)
        if not result.ok:
            return _print_error(result)
        order = result.value

        if args.command == "show":
            print(_fmt_order(order))
            note = describe(order)
            if note:
                print(f"note: {note}")
            allowed = sorted(s.value for s in session.allowed_targets(order.id))
            print(f"next: {', '.join(allowed) or '-'} | cancellable: {session.can_cancel(order.id)}")
            return 0

        if args.command == "status":
            res = await session.set_status(order.id, args.target, notes=args.notes)
        else:
            res = await session.cancel_order(
                order.id,
                args.reason,
                issue_refund=args.refund,
                restore_vouchers=not args.keep_vouchers,
            )
        if not res.ok:
            return _print_error(res)
        print(_fmt_order(res.order))
        if res.summary is not None:
            print(f"refund={res.summary.refund} vouchers_restored={res.summary.vouchers_restored}")
        return 0
    finally:
        session.close()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ops-console", description="Order operations console")
    p.add_argument("--role", help="override the persisted role (ADMIN | KITCHEN_STAFF)")
    sub = p.add_subparsers(dest="command", required=True)

    ls = sub.add_parser("list", help="list orders")
    ls.add_argument("--status")
    ls.add_argument("--pages", type=int, default=1)
    ls.add_argument("--limit", type=int, default=DEFAULT_PAGE_LIMIT)

    sub.add_parser("stats", help="order statistics")

    show = sub.add_parser("show", help="show one order")
    show.add_argument("order_id")

    st = sub.add_parser("status", help="move an order to a new status")
    st.add_argument("order_id")
    st.add_argument("target")
    st.add_argument("--notes")

    cancel = sub.add_parser("cancel", help="cancel an order")
    cancel.add_argument("order_id")
    cancel.add_argument("--reason", required=True)
    cancel.add_argument("--refund", action="store_true")
    cancel.add_argument("--keep-vouchers", action="store_true")
    return p


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    log.info(f"===== CLI START: {args.command} @ {utc_now_iso()} | ENV={ENV} | log={log_file_path()} =====")
    try:
        return asyncio.run(_run(args))
    finally:
        log.info(f"===== CLI END: {args.command} @ {utc_now_iso()} =====")


if __name__ == "__main__":
    sys.exit(main())
