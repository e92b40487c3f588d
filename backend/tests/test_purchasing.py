"""
Purchase orders, partial receiving and barcode-driven intake.

Receiving must keep product stock, line received counters, the inventory
ledger and the order status in step.
"""

import pytest

from techstore.extensions import db
from techstore.models import InventoryTransaction, Product, PurchaseOrder
from techstore.services import purchase_order_service, receive_service
from techstore.services.purchase_order_service import PurchaseOrderStateError, PurchaseOrderValidationError
from techstore.services.receive_service import ReceiveStateError, ReceiveValidationError


@pytest.fixture
def router(make_product):
    return make_product("TP-Link Archer C6", price=180_000, barcode="6935364085315", category="Networking")


@pytest.fixture
def switch(make_product):
    return make_product("Cisco SG110-16", price=650_000, barcode="0882658801234", category="Networking")


@pytest.fixture
def order(supplier, router, switch):
    return purchase_order_service.create_purchase_order(
        supplier_id=supplier.id,
        items=[
            {"product_id": router.id, "quantity": 10, "unit_cost": 120_000},
            {"product_id": switch.id, "quantity": 2, "unit_cost": 500_000},
        ],
    )


def _line(po, product):
    return next(item for item in po.items if item.product_id == product.id)


class TestPurchaseOrders:

    def test_create_totals_and_number(self, order):
        assert order.status == "pending"
        assert order.total_amount == 10 * 120_000 + 2 * 500_000
        assert order.order_number.startswith("PO")

    def test_inactive_supplier_rejected(self, supplier, router):
        supplier.is_active = False
        db.session.commit()
        with pytest.raises(PurchaseOrderValidationError):
            purchase_order_service.create_purchase_order(
                supplier_id=supplier.id, items=[{"product_id": router.id, "quantity": 1}]
            )

    def test_create_route(self, client, admin_headers, supplier, router):
        resp = client.post("/api/purchase-orders", json={
            "supplier_id": supplier.id,
            "items": [{"product_id": router.id, "quantity": 3, "unit_cost": 100_000}],
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["total_amount"] == 300_000

    def test_mark_received_receives_remainder(self, order, router, switch):
        po = purchase_order_service.update_status(po_id=order.id, status="received")
        assert po.status == "received"
        assert po.received_at is not None
        assert db.session.get(Product, router.id).stock_quantity == 10
        assert db.session.get(Product, switch.id).stock_quantity == 2

    def test_terminal_status_is_final(self, order):
        purchase_order_service.update_status(po_id=order.id, status="cancelled")
        with pytest.raises(PurchaseOrderStateError):
            purchase_order_service.update_status(po_id=order.id, status="ordered")

    def test_delete_blocked_after_receiving(self, order, router):
        receive_service.receive_stock(po_id=order.id, lines=[{"item_id": _line(order, router).id, "receiving_now": 1}])
        with pytest.raises(PurchaseOrderStateError):
            purchase_order_service.delete_purchase_order(order.id)


class TestReceiving:

    def test_partial_then_complete(self, order, router, switch):
        router_line = _line(order, router)
        switch_line = _line(order, switch)

        po = receive_service.receive_stock(po_id=order.id, lines=[
            {"item_id": router_line.id, "receiving_now": 4},
        ])
        assert po.status == "partially_received"
        assert db.session.get(Product, router.id).stock_quantity == 4

        po = receive_service.receive_stock(po_id=order.id, lines=[
            {"item_id": router_line.id, "receiving_now": 6},
            {"item_id": switch_line.id, "receiving_now": 2},
        ])
        assert po.status == "received"
        assert _line(po, router).received_quantity == 10
        assert db.session.get(Product, router.id).stock_quantity == 10

        purchases = (
            db.session.query(InventoryTransaction)
            .filter_by(product_id=router.id, transaction_type="purchase")
            .order_by(InventoryTransaction.id)
            .all()
        )
        assert [(t.previous_stock, t.new_stock) for t in purchases] == [(0, 4), (4, 10)]
        assert all(t.reference_id == str(order.id) for t in purchases)

    def test_over_receiving_rejected_atomically(self, order, router, switch):
        with pytest.raises(ReceiveValidationError):
            receive_service.receive_stock(po_id=order.id, lines=[
                {"item_id": _line(order, router).id, "receiving_now": 5},
                {"item_id": _line(order, switch).id, "receiving_now": 3},
            ])
        assert db.session.get(Product, router.id).stock_quantity == 0
        assert db.session.get(PurchaseOrder, order.id).status == "pending"

    def test_all_zero_rejected(self, order, router):
        with pytest.raises(ReceiveValidationError):
            receive_service.receive_stock(po_id=order.id, lines=[{"item_id": _line(order, router).id, "receiving_now": 0}])

    def test_cancelled_order_rejected(self, order, router):
        purchase_order_service.update_status(po_id=order.id, status="cancelled")
        with pytest.raises(ReceiveStateError):
            receive_service.receive_stock(po_id=order.id, lines=[{"item_id": _line(order, router).id, "receiving_now": 1}])

    def test_storefront_location_activates_product(self, order, router, make_product):
        product = db.session.get(Product, router.id)
        product.is_active = False
        db.session.commit()

        receive_service.receive_stock(po_id=order.id, lines=[
            {"item_id": _line(order, router).id, "receiving_now": 1, "location": "Kampala Shop"},
        ])
        product = db.session.get(Product, router.id)
        assert product.is_active is True
        assert product.location == "Kampala Shop"

    def test_receive_route_and_prefill(self, client, admin_headers, order, router, switch):
        prefill = client.get(f"/api/receiving/{order.id}/receive-all", headers=admin_headers).json
        assert prefill["lines"] == {str(_line(order, router).id): 10, str(_line(order, switch).id): 2}

        lines = [{"item_id": int(k), "receiving_now": v} for k, v in prefill["lines"].items()]
        resp = client.post(f"/api/receiving/{order.id}", json={"lines": lines}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["status"] == "received"

        again = client.post(f"/api/receiving/{order.id}", json={"lines": lines}, headers=admin_headers)
        assert again.status_code == 409

    def test_pending_list(self, client, admin_headers, order):
        ids = [po["id"] for po in client.get("/api/receiving/pending", headers=admin_headers).json["items"]]
        assert ids == [order.id]


class TestScanIntake:

    def test_scan_loads_order(self, order, router):
        result = receive_service.match_scanned_code("6935364085315")
        assert result.result == "order_loaded"
        assert result.session["po_id"] == order.id
        assert result.session["lines"][str(_line(order, router).id)] == 10

    def test_scan_increments_until_full(self, order, switch):
        key = str(_line(order, switch).id)
        session = {"po_id": order.id, "lines": {key: 0}}

        for expected in (1, 2):
            result = receive_service.match_scanned_code("0882658801234", session)
            assert result.result == "incremented"
            assert result.session["lines"][key] == expected
            session = result.session

        result = receive_service.match_scanned_code("0882658801234", session)
        assert result.result == "full"
        assert result.session["lines"][key] == 2

    def test_scan_not_on_active_order(self, order, make_product):
        make_product("Stray", barcode="999")
        result = receive_service.match_scanned_code("999", {"po_id": order.id, "lines": {}})
        assert result.result == "not_found"

    def test_scan_unknown_code(self, order):
        assert receive_service.match_scanned_code("nope").result == "not_found"

    def test_scan_route(self, client, admin_headers, order):
        resp = client.post("/api/receiving/scan", json={"code": "6935364085315", "session": None}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["result"] == "order_loaded"
        assert resp.json["order"]["id"] == order.id

    def test_scan_on_closed_order_rejected(self, order, switch):
        key = str(_line(order, switch).id)
        purchase_order_service.update_status(po_id=order.id, status="cancelled")
        with pytest.raises(ReceiveStateError, match="cancelled"):
            receive_service.match_scanned_code("0882658801234", {"po_id": order.id, "lines": {key: 0}})

    def test_scan_route_malformed_session(self, client, admin_headers, order):
        resp = client.post(
            "/api/receiving/scan",
            json={"code": "6935364085315", "session": {"po_id": None, "lines": [1]}},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert "session lines" in resp.json["error"]
