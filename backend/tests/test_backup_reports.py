"""JSON backup export and the admin dashboard."""

import json
from datetime import date

from techstore.services import backup_service, inquiry_service, sales_service, wallet_service
from techstore.services.backup_service import BACKUP_TABLES


class TestBackup:

    def test_document_shape(self, make_product, customer):
        make_product("Backup Me", stock=2)
        backup = backup_service.build_backup()

        assert backup["version"] == "1.0"
        assert backup["created_at"].endswith("Z")
        assert set(backup["tables"]) == set(BACKUP_TABLES)
        assert [p["name"] for p in backup["tables"]["products"]] == ["Backup Me"]
        assert backup["metadata"]["tables_count"] == len(BACKUP_TABLES)
        assert backup["metadata"]["total_records"] == sum(len(rows) for rows in backup["tables"].values())

    def test_credentials_never_exported(self, admin_user):
        backup = backup_service.build_backup()
        assert "users" not in backup["tables"]
        assert "session_tokens" not in backup["tables"]

    def test_table_subset(self, make_product):
        make_product()
        backup = backup_service.build_backup(tables=["products"])
        assert list(backup["tables"]) == ["products"]

    def test_filename(self):
        assert backup_service.backup_filename(date(2024, 3, 9)) == "techstore-backup-2024-03-09.json"

    def test_download(self, client, admin_headers, make_product):
        make_product(stock=1)
        resp = client.get("/api/backup", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.mimetype == "application/json"
        assert "attachment; filename=techstore-backup-" in resp.headers["Content-Disposition"]
        assert len(json.loads(resp.data)["tables"]["inventory_transactions"]) == 1

    def test_unknown_table(self, client, admin_headers):
        resp = client.get("/api/backup?tables=products,passwords", headers=admin_headers)
        assert resp.status_code == 400


class TestDashboard:

    def test_summary(self, client, admin_headers, make_product, customer):
        mouse = make_product("Mouse", price=1000, stock=3)
        make_product("Hidden", stock=10, is_active=False)
        sales_service.create_sale(items=[{"product_id": mouse.id, "quantity": 1}])
        inquiry_service.submit_inquiry(customer_name="A", customer_email="a@example.com", message="hi")
        wallet_service.deposit(customer_id=customer.id, amount=700)

        data = client.get("/api/reports/dashboard", headers=admin_headers).json
        assert data["sales_today"] == 1
        assert data["revenue_today"] == 1000
        assert data["product_count"] == 2
        assert data["active_products"] == 1
        assert data["low_stock_count"] == 1
        assert data["open_inquiries"] == 1
        assert data["wallet_balance_total"] == 700
        assert data["inventory"]["total_units"] == 2
