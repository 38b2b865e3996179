"""End-to-end tests of OpsSession against a fake orders API."""

import asyncio
from types import SimpleNamespace

import pytest

import app
from app import OpsSession
from conftest import ok_response, order_doc
from exceptions import InvalidTransition, MalformedEnvelope
from models import Order, OrderStatus, Role


class FakeOrdersApi:
    """Records calls; replies from a dict of order documents keyed by id."""

    def __init__(self, *docs):
        self.docs = {d["_id"]: dict(d) for d in docs}
        self.calls = []

    async def get_orders_page(self, page, limit, filters=None, role=None):
        self.calls.append(("list", page, role))
        return ok_response({
            "orders": [dict(d) for d in self.docs.values()],
            "pagination": {"page": page, "pages": 1, "total": len(self.docs)},
        })

    async def get_order(self, order_id):
        self.calls.append(("detail", order_id))
        return ok_response({"order": dict(self.docs[order_id])})

    async def get_order_stats(self):
        self.calls.append(("stats",))
        return ok_response({
            "totalOrders": len(self.docs),
            "byStatus": {"PLACED": 1},
            "totalRevenue": 500,
            "avgOrderValue": 250,
        })

    async def patch_order_status(self, order_id, status, role, notes=None):
        self.calls.append(("patch", order_id, status, role))
        self.docs[order_id]["status"] = status.value
        return ok_response({"order": dict(self.docs[order_id])})

    async def post_cancel_order(self, order_id, reason, issue_refund, restore_vouchers):
        self.calls.append(("cancel", order_id, reason))
        self.docs[order_id]["status"] = "CANCELLED"
        return ok_response({"order": dict(self.docs[order_id]), "vouchersRestored": 1})

    def count(self, kind):
        return sum(1 for c in self.calls if c[0] == kind)


@pytest.fixture
def fake_api():
    return FakeOrdersApi(order_doc("o1", "PLACED"), order_doc("o2", "READY"))


class TestReads:

    def test_list_populates_local_store(self, clock, fake_api):
        session = OpsSession(role="ADMIN", clock=clock, api=fake_api)
        pager = session.order_list()
        asyncio.run(pager.load_more())

        assert [o.id for o in pager.items] == ["o1", "o2"]
        assert all(isinstance(o, Order) for o in pager.items)
        assert session.orders.status_of("o2") is OrderStatus.READY
        assert fake_api.calls[0] == ("list", 1, Role.ADMIN)

    def test_detail_is_cached(self, clock, fake_api):
        session = OpsSession(role=Role.ADMIN, clock=clock, api=fake_api)
        first = asyncio.run(session.order_detail("o1"))
        clock.advance(1)
        second = asyncio.run(session.order_detail("o1"))

        assert first.ok and first.value.status is OrderStatus.PLACED
        assert second.from_cache
        assert isinstance(second.value, Order)
        assert fake_api.count("detail") == 1

    def test_detail_refresh(self, clock, fake_api):
        session = OpsSession(role=Role.ADMIN, clock=clock, api=fake_api)
        asyncio.run(session.order_detail("o1"))
        clock.advance(1)
        asyncio.run(session.order_detail("o1", refresh=True))
        assert fake_api.count("detail") == 2

    def test_detail_unusable_document(self, clock):
        async def get_order(order_id):
            return ok_response({"order": {"_id": order_id, "status": "TELEPORTED"}})

        api = SimpleNamespace(
            get_order=get_order,
            patch_order_status=None,
            post_cancel_order=None,
        )
        session = OpsSession(role=Role.ADMIN, clock=clock, api=api)
        result = asyncio.run(session.order_detail("o1"))
        assert not result.ok
        assert isinstance(result.error, MalformedEnvelope)

    def test_stats_summarized(self, clock, fake_api):
        session = OpsSession(role=Role.ADMIN, clock=clock, api=fake_api)
        result = asyncio.run(session.order_stats())
        assert result.value["total"] == 2
        assert result.value["PLACED"] == 1
        assert result.value["DELIVERED"] == 0
        assert result.value["revenue"] == 500


class TestMutations:

    def test_list_refetched_after_mutation(self, clock, fake_api):
        session = OpsSession(role=Role.ADMIN, clock=clock, api=fake_api)
        asyncio.run(session.order_list().load_more())
        asyncio.run(session.order_stats())

        result = asyncio.run(session.set_status("o2", "PICKED_UP"))
        assert result.ok

        # clock has not moved: anything served now must come from a fresh request
        pager = session.order_list()
        asyncio.run(pager.load_more())
        stats = asyncio.run(session.order_stats())

        assert fake_api.count("list") == 2
        assert fake_api.count("stats") == 2
        assert {o.id: o.status for o in pager.items}["o2"] is OrderStatus.PICKED_UP
        assert not stats.from_cache

    def test_allowed_targets_follow_role(self, clock, fake_api):
        kitchen = OpsSession(role="KITCHEN_STAFF", clock=clock, api=fake_api)
        asyncio.run(kitchen.order_list().load_more())
        assert kitchen.allowed_targets("o1") == {OrderStatus.ACCEPTED, OrderStatus.REJECTED}
        assert kitchen.allowed_targets("o2") == frozenset()
        assert not kitchen.can_cancel("o1")

    def test_kitchen_rejected_locally(self, clock, fake_api):
        session = OpsSession(role=Role.KITCHEN_STAFF, clock=clock, api=fake_api)
        asyncio.run(session.order_list().load_more())
        result = asyncio.run(session.set_status("o2", "PICKED_UP"))
        assert isinstance(result.error, InvalidTransition)
        assert fake_api.count("patch") == 0

    def test_admin_cancel(self, clock, fake_api):
        session = OpsSession(role=Role.ADMIN, clock=clock, api=fake_api)
        asyncio.run(session.order_detail("o1"))
        result = asyncio.run(session.cancel_order("o1", "duplicate order"))
        assert result.ok
        assert result.summary.vouchers_restored == 1
        assert session.orders.status_of("o1") is OrderStatus.CANCELLED

    def test_close_clears_session_state(self, clock, fake_api):
        session = OpsSession(role=Role.ADMIN, clock=clock, api=fake_api)
        asyncio.run(session.order_detail("o1"))
        session.close()
        assert len(session.cache) == 0
        assert len(session.orders) == 0


class TestRoleLookup:

    def test_role_read_from_settings(self, clock, fake_api, monkeypatch):
        monkeypatch.setattr(app, "get_acting_role", lambda: Role.KITCHEN_STAFF)
        assert OpsSession(clock=clock, api=fake_api).role is Role.KITCHEN_STAFF

    def test_missing_role_has_no_authority(self, clock, fake_api, monkeypatch):
        monkeypatch.setattr(app, "get_acting_role", lambda: None)
        session = OpsSession(clock=clock, api=fake_api)
        asyncio.run(session.order_detail("o1"))
        assert session.allowed_targets("o1") == frozenset()


class TestCli:

    def _patch_session(self, monkeypatch, clock, fake_api):
        real = app.OpsSession
        monkeypatch.setattr(app, "OpsSession", lambda role=None: real(role=role, clock=clock, api=fake_api))

    def test_show(self, clock, fake_api, monkeypatch, capsys):
        self._patch_session(monkeypatch, clock, fake_api)
        assert app.main(["--role", "ADMIN", "show", "o1"]) == 0
        out = capsys.readouterr().out
        assert "o1 | #ORD-o1 | PLACED" in out
        assert "next: ACCEPTED, REJECTED" in out

    def test_status_rejected_locally(self, clock, fake_api, monkeypatch, capsys):
        self._patch_session(monkeypatch, clock, fake_api)
        assert app.main(["--role", "KITCHEN_STAFF", "status", "o2", "PICKED_UP"]) == 1
        assert "InvalidTransition" in capsys.readouterr().out
        assert fake_api.count("patch") == 0

    def test_list(self, clock, fake_api, monkeypatch, capsys):
        self._patch_session(monkeypatch, clock, fake_api)
        assert app.main(["--role", "ADMIN", "list"]) == 0
        assert "-- 2 shown, total=2, more=False" in capsys.readouterr().out

    def test_show_notes_auto_order(self, clock, monkeypatch, capsys):
        fake_api = FakeOrdersApi(order_doc("o3", "PLACED", isAutoOrder=True))
        self._patch_session(monkeypatch, clock, fake_api)
        assert app.main(["--role", "KITCHEN_STAFF", "show", "o3"]) == 0
        out = capsys.readouterr().out
        assert "AUTO_ORDER" in out
        assert "note: Subscription-based auto-order" in out
