# services/status_mutation.py
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from api import decode_envelope
from exceptions import Busy, InvalidTransition, MalformedEnvelope, MutationError
from models import (
    ApiResponse,
    CancellationSummary,
    CancellationToken,
    MutationResult,
    Order,
    OrderStatus,
    PendingMutationTicket,
    Role,
    StatusTransitionRequest,
)
from services.cache_invalidator import CacheInvalidator
from services.order_store import LocalOrderStore
from services.transition_policy import (
    cancellable_statuses,
    next_allowed_statuses,
    parse_role,
    parse_status,
)
from logger import get_logger

log = get_logger("status_mutation")

StatusWriter = Callable[[str, OrderStatus, Role, Optional[str]], Awaitable[ApiResponse]]
CancelWriter = Callable[[str, str, bool, bool], Awaitable[ApiResponse]]

RESOURCE_FAMILY = "orders"


def confirmed_order_from(value: Any) -> Tuple[Order, Dict[str, Any]]:
    """
    Pull the server-confirmed order out of a mutation payload. The backend
    returns either {"order": {...}, ...extras} or the order document itself.
    """
    if not isinstance(value, dict):
        raise MalformedEnvelope("Mutation response carried no order", raw_body=value)
    raw = value.get("order") if isinstance(value.get("order"), dict) else value
    extras = {k: v for k, v in value.items() if k != "order"} if raw is not value else {}
    try:
        return Order.from_api(raw), extras
    except ValueError as e:
        raise MalformedEnvelope(f"Mutation response order unusable: {e}", raw_body=value) from e


class StatusMutationCoordinator:
    """
    Gatekeeper for order-status writes.

    A request is checked locally (one in-flight mutation per order, then the
    role's transition table) before anything touches the network. Accepted
    requests issue exactly one write; on success the local order is replaced by
    what the server returned and the "orders" cache family is purged before
    control returns to the caller.
    """

    def __init__(
        self,
        store: LocalOrderStore,
        invalidator: CacheInvalidator,
        status_writer: StatusWriter,
        cancel_writer: Optional[CancelWriter] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.invalidator = invalidator
        self.status_writer = status_writer
        self.cancel_writer = cancel_writer
        self._clock = clock
        self._tickets: Dict[str, PendingMutationTicket] = {}

    def is_updating(self, order_id: str) -> bool:
        return str(order_id) in self._tickets

    async def request_transition(
        self,
        order_id: str,
        target_status: Any,
        role: Any,
        notes: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> MutationResult:
        order_id = str(order_id)
        current = self.store.status_of(order_id)

        if order_id in self._tickets:
            log.info(f"Order {order_id}: transition to {target_status} rejected, mutation pending")
            return MutationResult(ok=False, error=Busy(order_id))

        req = StatusTransitionRequest(
            order_id=order_id,
            current_status=current,
            target_status=parse_status(target_status),
            role=parse_role(role),
            notes=notes,
        )
        allowed = next_allowed_statuses(current, req.role) if current is not None else frozenset()
        if req.target_status is None or req.target_status not in allowed:
            err = InvalidTransition(order_id, current, req.target_status or target_status, allowed)
            log.info(f"{err} [role={getattr(req.role, 'value', role)}]")
            return MutationResult(ok=False, error=err)

        log.info(
            f"Order {order_id}: {current.value} -> {req.target_status.value} "
            f"requested by {req.role.value}"
        )
        result = await self._perform(
            order_id,
            lambda: self.status_writer(order_id, req.target_status, req.role, req.notes),
            token,
        )
        if result.ok and result.order.status != req.target_status:
            log.warning(
                f"Order {order_id}: server confirmed {result.order.status.value}, "
                f"requested {req.target_status.value}"
            )
        return result

    async def cancel_order(
        self,
        order_id: str,
        reason: str,
        role: Any,
        issue_refund: bool = False,
        restore_vouchers: bool = True,
        token: Optional[CancellationToken] = None,
    ) -> MutationResult:
        if self.cancel_writer is None:
            raise RuntimeError("cancel_order needs a cancel_writer")
        if not (reason or "").strip():
            raise ValueError("A cancellation reason is required")

        order_id = str(order_id)
        current = self.store.status_of(order_id)

        if order_id in self._tickets:
            log.info(f"Order {order_id}: cancellation rejected, mutation pending")
            return MutationResult(ok=False, error=Busy(order_id))

        sources = cancellable_statuses(role)
        if current is None or current not in sources:
            allowed = next_allowed_statuses(current, role) if current is not None else frozenset()
            err = InvalidTransition(order_id, current, OrderStatus.CANCELLED, allowed)
            log.info(f"{err} [role={role}]")
            return MutationResult(ok=False, error=err)

        log.info(
            f"Order {order_id}: cancel from {current.value} "
            f"(refund={issue_refund}, restore_vouchers={restore_vouchers})"
        )
        return await self._perform(
            order_id,
            lambda: self.cancel_writer(order_id, reason.strip(), issue_refund, restore_vouchers),
            token,
            with_summary=True,
        )

    async def _perform(
        self,
        order_id: str,
        write: Callable[[], Awaitable[ApiResponse]],
        token: Optional[CancellationToken],
        with_summary: bool = False,
    ) -> MutationResult:
        self._tickets[order_id] = PendingMutationTicket(order_id=order_id, issued_at=self._clock())
        try:
            try:
                resp = await write()
                order, extras = confirmed_order_from(decode_envelope(resp))
            except MutationError as e:
                log.warning(f"Order {order_id}: mutation failed: {type(e).__name__}: {e}")
                return MutationResult(
                    ok=False,
                    error=e,
                    cancelled=bool(token is not None and token.cancelled),
                )
            self.store.upsert(order)
        finally:
            self._tickets.pop(order_id, None)

        self.invalidator.invalidate(RESOURCE_FAMILY, order_id)

        summary = None
        if with_summary:
            summary = CancellationSummary(
                refund=extras.get("refund") if isinstance(extras.get("refund"), dict) else None,
                vouchers_restored=int(extras.get("vouchersRestored") or 0),
            )

        cancelled = bool(token is not None and token.cancelled)
        if cancelled:
            log.debug(f"Order {order_id}: mutation confirmed after requester left ({token.reason})")
        log.info(f"Order {order_id}: server confirmed status {order.status.value}")
        return MutationResult(ok=True, order=order, summary=summary, cancelled=cancelled)
