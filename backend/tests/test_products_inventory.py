"""
Product management and the stock ledger.

Every stock change must leave one inventory transaction whose
previous/new stock bracket the change.
"""

import pytest

from techstore.extensions import db
from techstore.models import InventoryTransaction, Product
from techstore.services import inventory_service
from techstore.services.inventory_service import InsufficientStockError, InventoryError


class TestProductRoutes:

    def test_create_with_initial_stock(self, client, admin_headers):
        resp = client.post("/api/products", json={
            "name": "HP EliteBook 840",
            "category": "Laptops",
            "price": 2_300_000,
            "unit_cost": 1_900_000,
            "sku": "HP-840-G5",
            "barcode": "6009876543210",
            "stock_quantity": 4,
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["stock_quantity"] == 4

        txs = db.session.query(InventoryTransaction).filter_by(product_id=resp.json["id"]).all()
        assert len(txs) == 1
        assert (txs[0].transaction_type, txs[0].previous_stock, txs[0].new_stock) == ("adjustment", 0, 4)

    def test_missing_required_fields(self, client, admin_headers):
        resp = client.post("/api/products", json={"name": "No price"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_negative_price(self, client, admin_headers):
        resp = client.post("/api/products", json={"name": "X", "category": "Misc", "price": -1}, headers=admin_headers)
        assert resp.status_code == 400

    def test_duplicate_sku(self, client, admin_headers, make_product):
        make_product(sku="DUP-1")
        resp = client.post("/api/products", json={"name": "Y", "category": "Misc", "price": 10, "sku": "DUP-1"}, headers=admin_headers)
        assert resp.status_code == 409

    def test_stock_not_writable_on_update(self, client, admin_headers, make_product):
        product = make_product(stock=2)
        resp = client.put(f"/api/products/{product.id}", json={"stock_quantity": 99}, headers=admin_headers)
        assert resp.status_code == 400
        assert db.session.get(Product, product.id).stock_quantity == 2

    def test_barcode_lookup(self, client, admin_headers, make_product):
        product = make_product("Pixel 7", barcode="0840080512345")
        resp = client.get("/api/products/barcode/0840080512345", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["id"] == product.id

        missing = client.get("/api/products/barcode/000", headers=admin_headers)
        assert missing.status_code == 404
        assert missing.json["error"] == "No product found with barcode: 000"

    def test_low_stock(self, client, admin_headers, make_product):
        make_product("Plenty", stock=50)
        make_product("Few", stock=2)
        make_product("Custom level", stock=8, reorder_level=10)
        names = {p["name"] for p in client.get("/api/products/low-stock", headers=admin_headers).json["items"]}
        assert names == {"Few", "Custom level"}

    def test_delete_blocked_by_sales(self, client, admin_headers, make_product):
        product = make_product(stock=1)
        client.post("/api/sales", json={"items": [{"product_id": product.id, "quantity": 1}]}, headers=admin_headers)
        assert client.delete(f"/api/products/{product.id}", headers=admin_headers).status_code == 409


class TestStockLedger:

    def test_adjust_to_absolute_count(self, make_product):
        product = make_product(stock=10)
        tx = inventory_service.adjust_stock(product_id=product.id, new_quantity=7, reason="Cycle count")
        assert (tx.quantity, tx.previous_stock, tx.new_stock) == (-3, 10, 7)
        assert db.session.get(Product, product.id).stock_quantity == 7

    def test_damage_removes_stock(self, make_product):
        product = make_product(stock=5)
        tx = inventory_service.adjust_stock(product_id=product.id, delta=-1, transaction_type="damage")
        assert tx.new_stock == 4

    def test_cannot_go_negative(self, make_product):
        product = make_product(stock=1)
        with pytest.raises(InsufficientStockError):
            inventory_service.adjust_stock(product_id=product.id, delta=-2)
        assert db.session.get(Product, product.id).stock_quantity == 1
        assert db.session.query(InventoryTransaction).filter_by(product_id=product.id).count() == 1

    def test_exactly_one_of_quantity_or_delta(self, make_product):
        product = make_product(stock=1)
        with pytest.raises(InventoryError):
            inventory_service.adjust_stock(product_id=product.id, new_quantity=3, delta=2)

    def test_adjust_route_conflict(self, client, admin_headers, make_product):
        product = make_product(stock=0)
        resp = client.post("/api/inventory/adjust", json={"product_id": product.id, "delta": -1}, headers=admin_headers)
        assert resp.status_code == 409

    def test_transactions_and_summary(self, client, admin_headers, make_product):
        make_product(price=1000, unit_cost=600, stock=3)
        listing = client.get("/api/inventory/transactions", headers=admin_headers).json
        assert listing["count"] == 1

        summary = client.get("/api/inventory/summary", headers=admin_headers).json
        assert summary == {"total_units": 3, "cost_value": 1800, "retail_value": 3000}
