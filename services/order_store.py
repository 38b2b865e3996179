# services/order_store.py
from typing import Dict, Optional

from models import Order, OrderStatus


class LocalOrderStore:
    """
    The session's read-through copy of orders it has seen. Reads upsert into it;
    the mutation coordinator reads current status from it and writes back only
    server-confirmed orders.
    """

    def __init__(self):
        self._orders: Dict[str, Order] = {}

    def get(self, order_id: str) -> Optional[Order]:
        return self._orders.get(str(order_id))

    def status_of(self, order_id: str) -> Optional[OrderStatus]:
        o = self.get(order_id)
        return o.status if o else None

    def upsert(self, order: Order) -> Order:
        self._orders[order.id] = order
        return order

    def clear(self) -> None:
        self._orders.clear()

    def __len__(self) -> int:
        return len(self._orders)
