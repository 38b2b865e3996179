"""Tests for the orders endpoint wrappers."""

import asyncio
from unittest.mock import patch

from conftest import ok_response
from models import OrderStatus, Role
from services import orders_api


class TestPaths:

    def test_list_path_by_role(self):
        assert orders_api.list_path(Role.ADMIN) == "/api/orders/admin/all"
        assert orders_api.list_path(Role.KITCHEN_STAFF) == "/api/orders/kitchen"
        assert orders_api.list_path(None) == "/api/orders/admin/all"

    def test_status_path_by_role(self):
        assert orders_api.status_path("o1", Role.ADMIN) == "/api/orders/admin/o1/status"
        assert orders_api.status_path("o1", Role.KITCHEN_STAFF) == "/api/orders/o1/status"

    def test_detail_key_matches_invalidation_template(self):
        assert orders_api.order_detail_key("o1") == "order/o1"


class TestCalls:

    def test_orders_page(self):
        with patch("services.orders_api.send_request", return_value=ok_response({})) as send:
            asyncio.run(orders_api.get_orders_page(2, 20, {"status": "PLACED"}, Role.KITCHEN_STAFF))
        send.assert_called_once_with(
            "GET", "/api/orders/kitchen", {"status": "PLACED", "page": 2, "limit": 20}, None, orders_api.log
        )

    def test_patch_status_body(self):
        with patch("services.orders_api.send_request", return_value=ok_response({})) as send:
            asyncio.run(orders_api.patch_order_status("o1", OrderStatus.READY, Role.ADMIN, notes="packed"))
        args = send.call_args.args
        assert args[0] == "PATCH"
        assert args[1] == "/api/orders/admin/o1/status"
        assert args[3] == {"status": "READY", "notes": "packed"}

    def test_cancel_body(self):
        with patch("services.orders_api.send_request", return_value=ok_response({})) as send:
            asyncio.run(orders_api.post_cancel_order("o1", "duplicate", True, False))
        args = send.call_args.args
        assert args[:2] == ("POST", "/api/orders/o1/cancel")
        assert args[3] == {"reason": "duplicate", "issueRefund": True, "restoreVouchers": False}


class TestSummarizeStats:

    def test_missing_counts_default_to_zero(self):
        out = orders_api.summarize_stats({"totalOrders": 3, "byStatus": {"READY": 3}})
        assert out["total"] == 3
        assert out["READY"] == 3
        assert out["PLACED"] == 0
        assert out["revenue"] == 0
