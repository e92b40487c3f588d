"""
POS sales, voids and refunds.

A sale, its stock movements, serial unit updates and wallet charge commit
together; refunds restock what was returned and never exceed the sale total.
"""

import pytest

from techstore.extensions import db
from techstore.models import InventoryTransaction, Product, Refund, SerialUnit
from techstore.services import refund_service, sales_service, serial_unit_service, wallet_service
from techstore.services.refund_service import RefundError, RefundNotFoundError
from techstore.services.sales_service import SaleError
from techstore.services.wallet_service import InsufficientBalanceError


@pytest.fixture
def mouse(make_product):
    return make_product("Logitech M185", price=1000, stock=10, category="Accessories")


@pytest.fixture
def keyboard(make_product):
    return make_product("Logitech K120", price=2000, stock=5, category="Accessories")


@pytest.fixture
def two_line_sale(mouse, keyboard):
    return sales_service.create_sale(items=[
        {"product_id": mouse.id, "quantity": 2},
        {"product_id": keyboard.id, "quantity": 1},
    ])


def _stock(product):
    return db.session.get(Product, product.id).stock_quantity


class TestSales:

    def test_sale_deducts_stock(self, two_line_sale, mouse, keyboard):
        assert two_line_sale.subtotal == 4000
        assert two_line_sale.total == 4000
        assert two_line_sale.receipt_number.startswith("RCP")
        assert two_line_sale.customer_name == "Walk-in Customer"
        assert (_stock(mouse), _stock(keyboard)) == (8, 4)

        sale_txs = db.session.query(InventoryTransaction).filter_by(transaction_type="sale").count()
        assert sale_txs == 2

    def test_discount_tax_and_change(self, mouse):
        sale = sales_service.create_sale(
            items=[{"product_id": mouse.id, "quantity": 3}],
            discount=500,
            tax=100,
            amount_paid=5000,
        )
        assert sale.total == 2600
        assert sale.change_given == 2400

    def test_insufficient_payment(self, mouse):
        with pytest.raises(SaleError, match="Insufficient payment"):
            sales_service.create_sale(items=[{"product_id": mouse.id, "quantity": 1}], amount_paid=500)

    def test_credit_sale_may_be_underpaid(self, mouse):
        sale = sales_service.create_sale(
            items=[{"product_id": mouse.id, "quantity": 1}], payment_method="credit", amount_paid=0
        )
        assert sale.amount_paid == 0

    def test_insufficient_stock_rolls_back(self, mouse, keyboard):
        with pytest.raises(SaleError):
            sales_service.create_sale(items=[
                {"product_id": mouse.id, "quantity": 1},
                {"product_id": keyboard.id, "quantity": 6},
            ])
        assert (_stock(mouse), _stock(keyboard)) == (10, 5)
        assert db.session.query(InventoryTransaction).filter_by(transaction_type="sale").count() == 0

    def test_empty_cart(self):
        with pytest.raises(SaleError):
            sales_service.create_sale(items=[])

    def test_serial_units_marked_sold(self, mouse):
        unit = serial_unit_service.register_unit(patch={"product_id": mouse.id, "serial_number": "M-1"})
        sale = sales_service.create_sale(items=[{"product_id": mouse.id, "quantity": 1, "serial_unit_ids": [unit.id]}])

        unit = db.session.get(SerialUnit, unit.id)
        assert unit.status == "sold"
        assert unit.sale_id == sale.id
        assert unit.sold_date is not None
        assert serial_unit_service.get_unit_history(unit.id)[0].action == "sold"

    def test_sale_route(self, client, admin_headers, mouse):
        resp = client.post("/api/sales", json={
            "items": [{"product_id": mouse.id, "quantity": 1}],
            "payment_method": "mobile_money",
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["items"][0]["product_name"] == "Logitech M185"

        bad = client.post("/api/sales", json={
            "items": [{"product_id": mouse.id, "quantity": 1}], "amount_paid": 1,
        }, headers=admin_headers)
        assert bad.status_code == 400
        assert bad.json["details"] == {"total": 1000, "amount_paid": 1}

    def test_receipt_lookup(self, client, admin_headers, two_line_sale):
        resp = client.get(f"/api/sales/receipt/{two_line_sale.receipt_number}", headers=admin_headers)
        assert resp.status_code == 200
        assert len(resp.json["items"]) == 2


class TestWalletSales:

    def test_wallet_payment(self, customer, mouse):
        wallet_service.deposit(customer_id=customer.id, amount=5000)
        sale = sales_service.create_sale(
            items=[{"product_id": mouse.id, "quantity": 3}], payment_method="wallet", customer_id=customer.id
        )
        assert sale.amount_paid == 3000
        assert wallet_service.get_wallet(customer.id).balance == 2000

    def test_wallet_payment_needs_balance(self, customer, mouse):
        wallet_service.deposit(customer_id=customer.id, amount=500)
        with pytest.raises(InsufficientBalanceError):
            sales_service.create_sale(
                items=[{"product_id": mouse.id, "quantity": 1}], payment_method="wallet", customer_id=customer.id
            )
        assert _stock(mouse) == 10
        assert wallet_service.get_wallet(customer.id).balance == 500

    def test_wallet_payment_needs_customer(self, mouse):
        with pytest.raises(SaleError):
            sales_service.create_sale(items=[{"product_id": mouse.id, "quantity": 1}], payment_method="wallet")


class TestVoid:

    def test_void_restocks(self, two_line_sale, mouse, keyboard):
        sale = sales_service.void_sale(sale_id=two_line_sale.id, reason="Rung up twice")
        assert sale.deleted_at is not None
        assert (_stock(mouse), _stock(keyboard)) == (10, 5)
        assert sales_service.sales_summary()["sales_count"] == 0

    def test_void_twice(self, two_line_sale):
        sales_service.void_sale(sale_id=two_line_sale.id)
        with pytest.raises(SaleError):
            sales_service.void_sale(sale_id=two_line_sale.id)

    def test_void_after_refund_blocked(self, two_line_sale):
        refund_service.process_refund(receipt_number=two_line_sale.receipt_number, reason="Faulty")
        with pytest.raises(SaleError):
            sales_service.void_sale(sale_id=two_line_sale.id)

    def test_void_wallet_sale_credits_wallet(self, customer, mouse):
        wallet_service.deposit(customer_id=customer.id, amount=1000)
        sale = sales_service.create_sale(
            items=[{"product_id": mouse.id, "quantity": 1}], payment_method="wallet", customer_id=customer.id
        )
        sales_service.void_sale(sale_id=sale.id)
        assert wallet_service.get_wallet(customer.id).balance == 1000


class TestRefunds:

    def test_full_refund(self, mouse):
        product = db.session.get(Product, mouse.id)
        product.price = 50_000
        db.session.commit()

        sale = sales_service.create_sale(items=[{"product_id": mouse.id, "quantity": 1}])
        refund = refund_service.process_refund(receipt_number=sale.receipt_number, refund_type="full", reason="Changed mind")

        assert refund.amount == 50_000
        assert refund.items_returned[0]["quantity"] == 1
        assert _stock(mouse) == 10

    def test_items_refund(self, two_line_sale, mouse, keyboard):
        lines = {str(item.id): 1 for item in two_line_sale.items}
        refund = refund_service.process_refund(
            receipt_number=two_line_sale.receipt_number,
            refund_type="items",
            line_quantities=lines,
            reason="One of each returned",
        )
        assert refund.amount == 3000
        assert (_stock(mouse), _stock(keyboard)) == (9, 5)

    def test_item_quantities_clamped(self, two_line_sale):
        mouse_line = next(i for i in two_line_sale.items if i.quantity == 2)
        amount = refund_service.compute_refund_amount(two_line_sale, "items", {mouse_line.id: 9})
        assert amount == 2000

    def test_custom_refund_bounds(self, two_line_sale):
        with pytest.raises(RefundError):
            refund_service.process_refund(
                receipt_number=two_line_sale.receipt_number, refund_type="custom", custom_amount=4001, reason="x"
            )
        refund = refund_service.process_refund(
            receipt_number=two_line_sale.receipt_number, refund_type="custom", custom_amount=700, reason="Goodwill"
        )
        assert refund.amount == 700
        assert refund.items_returned == []

    def test_reason_required(self, two_line_sale):
        with pytest.raises(RefundError, match="reason"):
            refund_service.process_refund(receipt_number=two_line_sale.receipt_number, reason="  ")

    def test_unknown_receipt(self):
        with pytest.raises(RefundNotFoundError):
            refund_service.process_refund(receipt_number="RCP-NOPE", reason="x")

    def test_lookup_shows_refunded_quantities(self, client, admin_headers, two_line_sale, mouse):
        mouse_line = next(i for i in two_line_sale.items if i.product_id == mouse.id)
        refund_service.process_refund(
            receipt_number=two_line_sale.receipt_number,
            refund_type="items",
            line_quantities={mouse_line.id: 1},
            reason="Scroll wheel broken",
        )

        resp = client.get(f"/api/refunds/lookup/{two_line_sale.receipt_number}", headers=admin_headers)
        assert resp.status_code == 200
        by_product = {i["product_id"]: i["refunded_quantity"] for i in resp.json["items"]}
        assert by_product[mouse.id] == 1
        assert resp.json["refunded_total"] == 1000

    def test_refund_route(self, client, admin_headers, two_line_sale):
        resp = client.post("/api/refunds", json={
            "receipt_number": two_line_sale.receipt_number,
            "refund_type": "full",
            "reason": "Defective",
        }, headers=admin_headers)
        assert resp.status_code == 201

        listing = client.get("/api/refunds", headers=admin_headers).json
        assert listing["total_refunded"] == 4000
        assert db.session.query(Refund).count() == 1

    def test_repeat_full_refund_rejected(self, mouse):
        sale = sales_service.create_sale(items=[{"product_id": mouse.id, "quantity": 2}])
        refund_service.process_refund(receipt_number=sale.receipt_number, refund_type="full", reason="Returned")
        assert _stock(mouse) == 10

        with pytest.raises(RefundError, match="already been refunded"):
            refund_service.process_refund(receipt_number=sale.receipt_number, refund_type="full", reason="Again")
        assert _stock(mouse) == 10
        assert refund_service.total_refunded() == 2000

    def test_items_refund_limited_to_unrefunded_units(self, two_line_sale, mouse, keyboard):
        mouse_line = next(i for i in two_line_sale.items if i.product_id == mouse.id)
        refund_service.process_refund(
            receipt_number=two_line_sale.receipt_number,
            refund_type="items",
            line_quantities={mouse_line.id: 1},
            reason="One returned",
        )
        second = refund_service.process_refund(
            receipt_number=two_line_sale.receipt_number,
            refund_type="items",
            line_quantities={mouse_line.id: 2},
            reason="Second one returned",
        )
        assert second.amount == 1000
        assert second.items_returned[0]["quantity"] == 1
        assert _stock(mouse) == 10

        with pytest.raises(RefundError, match="greater than 0"):
            refund_service.process_refund(
                receipt_number=two_line_sale.receipt_number,
                refund_type="items",
                line_quantities={mouse_line.id: 1},
                reason="Nothing left",
            )

        full = refund_service.process_refund(receipt_number=two_line_sale.receipt_number, reason="Keyboard too")
        assert [line["quantity"] for line in full.items_returned] == [1]
        assert (_stock(mouse), _stock(keyboard)) == (10, 5)

    def test_wallet_sale_refund_credits_wallet(self, customer, mouse):
        wallet_service.deposit(customer_id=customer.id, amount=2000)
        sale = sales_service.create_sale(
            items=[{"product_id": mouse.id, "quantity": 2}], payment_method="wallet", customer_id=customer.id
        )
        refund_service.process_refund(receipt_number=sale.receipt_number, reason="Returned")
        assert wallet_service.get_wallet(customer.id).balance == 2000
