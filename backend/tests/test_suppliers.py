"""Suppliers, supplier payments and outstanding balances."""

from datetime import date

from techstore.services import purchase_order_service, supplier_service


class TestSuppliers:

    def test_crud(self, client, admin_headers):
        created = client.post("/api/suppliers", json={"name": "Nile Networks", "phone": "0414"}, headers=admin_headers)
        assert created.status_code == 201

        updated = client.put(f"/api/suppliers/{created.json['id']}", json={"contact_person": "Moses"}, headers=admin_headers)
        assert updated.json["contact_person"] == "Moses"

        deleted = client.delete(f"/api/suppliers/{created.json['id']}", headers=admin_headers)
        assert deleted.json == {"ok": True, "deleted": True, "deactivated": False}

    def test_delete_with_orders_deactivates(self, supplier, make_product):
        product = make_product()
        purchase_order_service.create_purchase_order(
            supplier_id=supplier.id, items=[{"product_id": product.id, "quantity": 1, "unit_cost": 10}]
        )
        assert supplier_service.delete_supplier(supplier.id) is False
        assert supplier_service.get_supplier(supplier.id).is_active is False


class TestPayments:

    def test_record_and_balance(self, client, admin_headers, supplier, make_product):
        product = make_product()
        po = purchase_order_service.create_purchase_order(
            supplier_id=supplier.id, items=[{"product_id": product.id, "quantity": 5, "unit_cost": 20_000}]
        )

        resp = client.post("/api/suppliers/payments", json={
            "supplier_id": supplier.id,
            "purchase_order_id": po.id,
            "amount": 60_000,
            "payment_date": "2024-06-01",
            "payment_method": "mobile_money",
            "payment_source": "cash_register",
            "reference_number": "MM-7781",
        }, headers=admin_headers)
        assert resp.status_code == 201

        balances = client.get("/api/suppliers/balances", headers=admin_headers).json["items"]
        assert balances == [{
            "supplier_id": supplier.id,
            "supplier_name": supplier.name,
            "ordered_total": 100_000,
            "paid_total": 60_000,
            "balance": 40_000,
        }]

        listing = client.get("/api/suppliers/payments?search=MM-77", headers=admin_headers).json
        assert listing["count"] == 1
        assert listing["totals"]["total_paid"] == 60_000

    def test_amount_must_be_positive(self, client, admin_headers, supplier):
        resp = client.post("/api/suppliers/payments", json={"supplier_id": supplier.id, "amount": 0}, headers=admin_headers)
        assert resp.status_code == 400

    def test_order_must_match_supplier(self, client, admin_headers, supplier, make_product):
        other = client.post("/api/suppliers", json={"name": "Other"}, headers=admin_headers).json
        product = make_product()
        po = purchase_order_service.create_purchase_order(
            supplier_id=other["id"], items=[{"product_id": product.id, "quantity": 1, "unit_cost": 10}]
        )
        resp = client.post("/api/suppliers/payments", json={
            "supplier_id": supplier.id, "purchase_order_id": po.id, "amount": 10,
        }, headers=admin_headers)
        assert resp.status_code == 400

    def test_date_filter(self, supplier):
        supplier_service.record_payment(patch={"supplier_id": supplier.id, "amount": 5, "payment_date": date(2024, 1, 5)})
        supplier_service.record_payment(patch={"supplier_id": supplier.id, "amount": 7, "payment_date": date(2024, 2, 5)})
        found = supplier_service.list_payments(from_date=date(2024, 2, 1), to_date=date(2024, 2, 28))
        assert [p.amount for p in found] == [7]
