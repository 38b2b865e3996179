#models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, List, Dict


class OrderStatus(str, Enum):
    PLACED = "PLACED"
    SCHEDULED = "SCHEDULED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    PREPARING = "PREPARING"
    READY = "READY"
    PICKED_UP = "PICKED_UP"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


class Role(str, Enum):
    ADMIN = "ADMIN"
    KITCHEN_STAFF = "KITCHEN_STAFF"


class OrderProvenance(str, Enum):
    AUTO_ORDER = "AUTO_ORDER"
    AUTO_ACCEPTED = "AUTO_ACCEPTED"
    MANUAL = "MANUAL"


@dataclass
class Order:
    id: str
    status: OrderStatus
    payload: Dict[str, Any] = field(default_factory=dict)   # customer/kitchen/items/pricing, opaque

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "Order":
        """
        Build from a backend order document. Raises ValueError when the id is
        missing or the status is outside OrderStatus.
        """
        if not isinstance(raw, dict):
            raise ValueError(f"order must be an object, got {type(raw).__name__}")
        oid = raw.get("_id") or raw.get("id")
        if not oid:
            raise ValueError(f"order has no id. Keys={list(raw.keys())}")
        status = OrderStatus(str(raw.get("status") or "").strip().upper())
        return cls(id=str(oid), status=status, payload=dict(raw))


@dataclass
class StatusTransitionRequest:
    order_id: str
    current_status: Optional[OrderStatus]
    target_status: OrderStatus
    role: Optional[Role]
    notes: Optional[str] = None


@dataclass
class CacheEntry:
    key: str
    value: Any
    written_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return (now - self.written_at) < self.ttl


@dataclass
class PendingMutationTicket:
    order_id: str
    issued_at: float


@dataclass
class Page:
    items: List[Any]
    page_number: int
    total_pages: int
    total: Optional[int] = None


@dataclass
class ApiResponse:
    status_code: int
    body: Any
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass
class FetchResult:
    ok: bool
    value: Any = None
    error: Optional[Exception] = None
    from_cache: bool = False
    throttled: bool = False
    cancelled: bool = False


@dataclass
class CancellationSummary:
    refund: Optional[Dict[str, Any]] = None
    vouchers_restored: int = 0


@dataclass
class MutationResult:
    ok: bool
    order: Optional[Order] = None
    error: Optional[Exception] = None
    summary: Optional[CancellationSummary] = None
    cancelled: bool = False


@dataclass
class CancellationToken:
    """Per-request liveness flag. The owner cancels it when its view goes away."""
    cancelled: bool = False
    reason: str = ""

    def cancel(self, reason: str = "") -> None:
        self.cancelled = True
        self.reason = reason
