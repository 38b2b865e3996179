# services/order_provenance.py
"""
Read-only classification of how an order came to be accepted.

Derived purely from the order document (flags, special instructions, payment
method and timeline notes). It is informational only and must never feed into
services.transition_policy.
"""
from typing import Any, Dict, Optional

from models import Order, OrderProvenance, OrderStatus

AUTO_ORDER_INSTRUCTION = "Auto-order"


def _doc(order: Any) -> Dict[str, Any]:
    if isinstance(order, Order):
        return order.payload
    return order if isinstance(order, dict) else {}


def is_auto_order(order: Any) -> bool:
    d = _doc(order)
    if d.get("isAutoOrder") is True:
        return True

    instructions = d.get("specialInstructions")
    if instructions == AUTO_ORDER_INSTRUCTION:
        return True

    # older subscription orders: voucher-only, accepted, "auto" in the instructions
    voucher_usage = d.get("voucherUsage") or {}
    status = order.status if isinstance(order, Order) else str(d.get("status") or "").upper()
    return (
        d.get("paymentMethod") == "VOUCHER_ONLY"
        and status == OrderStatus.ACCEPTED
        and int(voucher_usage.get("voucherCount") or 0) > 0
        and "auto" in str(instructions or "").lower()
    )


def is_auto_accepted(order: Any) -> bool:
    timeline = _doc(order).get("statusTimeline") or []
    accepted = next((e for e in timeline if isinstance(e, dict) and e.get("status") == "ACCEPTED"), None)
    if accepted is None:
        return False
    return "auto-accepted" in str(accepted.get("notes") or "").lower()


def classify(order: Any) -> OrderProvenance:
    if is_auto_order(order):
        return OrderProvenance.AUTO_ORDER
    if is_auto_accepted(order):
        return OrderProvenance.AUTO_ACCEPTED
    return OrderProvenance.MANUAL


def describe(order: Any) -> Optional[str]:
    kind = classify(order)
    if kind is OrderProvenance.AUTO_ORDER:
        return "Subscription-based auto-order - start preparation immediately"
    if kind is OrderProvenance.AUTO_ACCEPTED:
        return "Auto-accepted voucher order - within operating hours"
    return None
