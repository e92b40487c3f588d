"""Public storefront catalog and cart inquiries."""

import pytest

from techstore.extensions import db
from techstore.models import Inquiry
from techstore.services import inquiry_service
from techstore.services.inquiry_service import InquiryValidationError


@pytest.fixture
def shelf(make_product):
    return {
        "laptop": make_product("ThinkPad X1", price=4_500_000, stock=3, category="Laptops", condition="refurbished", is_featured=True),
        "phone": make_product("Galaxy A54", price=1_200_000, stock=0, category="Phones", condition="new"),
        "cable": make_product("USB-C Cable", price=15_000, stock=40, category="Accessories", condition="new"),
        "hidden": make_product("Prototype", price=1, stock=1, category="Laptops", is_active=False),
    }


class TestCatalogListing:

    def test_only_active_products(self, client, shelf):
        resp = client.get("/api/catalog")
        names = {p["name"] for p in resp.json["items"]}
        assert "Prototype" not in names
        assert resp.json["count"] == 3

    def test_public_fields_only(self, client, shelf):
        item = client.get("/api/catalog").json["items"][0]
        assert "unit_cost" not in item
        assert "supplier_id" not in item

    def test_filters(self, client, shelf):
        assert [p["name"] for p in client.get("/api/catalog?category=Phones").json["items"]] == ["Galaxy A54"]
        assert [p["name"] for p in client.get("/api/catalog?featured=true").json["items"]] == ["ThinkPad X1"]
        in_stock = {p["name"] for p in client.get("/api/catalog?in_stock=true").json["items"]}
        assert in_stock == {"ThinkPad X1", "USB-C Cable"}
        ranged = client.get("/api/catalog?min_price=100000&max_price=2000000").json["items"]
        assert [p["name"] for p in ranged] == ["Galaxy A54"]

    def test_search_and_sort(self, client, shelf):
        found = client.get("/api/catalog?search=thinkpad").json["items"]
        assert [p["name"] for p in found] == ["ThinkPad X1"]
        by_price = client.get("/api/catalog?sort=price_asc").json["items"]
        assert [p["price"] for p in by_price] == sorted(p["price"] for p in by_price)

    def test_bad_sort(self, client, shelf):
        assert client.get("/api/catalog?sort=random").status_code == 400

    def test_inactive_product_404(self, client, shelf):
        assert client.get(f"/api/catalog/{shelf['hidden'].id}").status_code == 404
        assert client.get(f"/api/catalog/{shelf['laptop'].id}").status_code == 200

    def test_categories(self, client, shelf):
        cats = {c["category"]: c["count"] for c in client.get("/api/catalog/categories").json["items"]}
        assert cats == {"Accessories": 1, "Laptops": 1, "Phones": 1}


class TestCartInquiry:

    def test_cart_becomes_inquiry(self, client, shelf):
        resp = client.post("/api/inquiries", json={
            "customer_name": "Amina",
            "customer_email": "amina@example.com",
            "message": "Do you deliver to Entebbe?",
            "items": [
                {"product_id": shelf["laptop"].id, "quantity": 1},
                {"product_id": shelf["cable"].id, "quantity": 2},
            ],
        })
        assert resp.status_code == 201

        inquiry = db.session.get(Inquiry, resp.json["id"])
        assert inquiry.status == "new"
        assert inquiry.message.startswith("Do you deliver to Entebbe?")
        assert "- ThinkPad X1 (x1)" in inquiry.message
        assert "- USB-C Cable (x2)" in inquiry.message
        assert len(inquiry.items) == 2

    def test_single_item_cart_sets_product(self, shelf):
        inquiry = inquiry_service.submit_inquiry(
            customer_name="Amina",
            customer_email="amina@example.com",
            items=[{"product_id": shelf["phone"].id, "quantity": 1}],
        )
        assert inquiry.product_id == shelf["phone"].id

    def test_requires_email(self, client, shelf):
        resp = client.post("/api/inquiries", json={"customer_name": "Amina", "customer_email": "nope"})
        assert resp.status_code == 400

    def test_hidden_product_rejected(self, shelf):
        with pytest.raises(InquiryValidationError):
            inquiry_service.submit_inquiry(
                customer_name="Amina",
                customer_email="amina@example.com",
                items=[{"product_id": shelf["hidden"].id}],
            )

    def test_admin_workflow(self, client, admin_headers, shelf):
        created = client.post("/api/inquiries", json={
            "customer_name": "Amina", "customer_email": "amina@example.com", "message": "Price?",
        }).json

        listing = client.get("/api/inquiries", headers=admin_headers).json
        assert listing["open"] == 1

        resp = client.patch(f"/api/inquiries/{created['id']}", json={"status": "closed"}, headers=admin_headers)
        assert resp.status_code == 200
        assert client.get("/api/inquiries", headers=admin_headers).json["open"] == 0
