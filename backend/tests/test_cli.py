"""Flask CLI commands."""

import json
from datetime import timedelta

from techstore.extensions import db
from techstore.models import SerialUnit, User
from techstore.services import auth_service, serial_unit_service
from techstore.time_utils import today


class TestSystemCommands:

    def test_init_creates_admin_once(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["system", "init", "--password", "Password123!"])
        assert result.exit_code == 0, result.output
        assert db.session.query(User).filter_by(username="admin", role="admin").count() == 1

        again = runner.invoke(args=["system", "init", "--password", "Password123!"])
        assert again.exit_code == 0
        assert db.session.query(User).count() == 1


class TestUserCommands:

    def test_create_and_grant(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "users", "create", "--username", "cashier", "--email", "cashier@techstore.local",
            "--password", "Password123!",
        ])
        assert result.exit_code == 0, result.output

        result = runner.invoke(args=["users", "grant-page", "cashier", "/admin/pos"])
        assert result.exit_code == 0, result.output

        user = db.session.query(User).filter_by(username="cashier").one()
        assert user.role == "staff"
        assert auth_service.get_page_permissions(user.id) == ["/admin/pos"]

    def test_weak_password_rejected(self, app):
        result = app.test_cli_runner().invoke(args=[
            "users", "create", "--username", "x", "--email", "x@techstore.local", "--password", "weak",
        ])
        assert result.exit_code != 0
        assert db.session.query(User).count() == 0

    def test_grant_unknown_user(self, app):
        result = app.test_cli_runner().invoke(args=["users", "grant-page", "ghost", "/admin/pos"])
        assert result.exit_code != 0

    def test_deactivate_revokes_sessions(self, app, client, staff_headers):
        assert client.get("/api/auth/me", headers=staff_headers).status_code == 200

        result = app.test_cli_runner().invoke(args=["users", "deactivate", "clerk"])
        assert result.exit_code == 0, result.output
        assert "1 session(s) revoked" in result.output

        assert client.get("/api/auth/me", headers=staff_headers).status_code == 401
        assert db.session.query(User).filter_by(username="clerk").one().is_active is False


class TestMaintenanceCommands:

    def test_cleanup_sold_units(self, app, make_product):
        product = make_product()
        serial_unit_service.register_unit(patch={
            "product_id": product.id, "serial_number": "OLD", "status": "sold",
            "sold_date": today() - timedelta(days=30),
        })
        result = app.test_cli_runner().invoke(args=["maintenance", "cleanup-sold-units"])
        assert result.exit_code == 0, result.output
        assert "Deleted 1" in result.output
        assert db.session.query(SerialUnit).count() == 0


class TestBackupCommands:

    def test_export(self, app, make_product, tmp_path):
        make_product("Router")
        output = tmp_path / "backup.json"
        result = app.test_cli_runner().invoke(args=["backup", "export", "--table", "products", "--output", str(output)])
        assert result.exit_code == 0, result.output

        data = json.loads(output.read_text(encoding="utf-8"))
        assert [p["name"] for p in data["tables"]["products"]] == ["Router"]
