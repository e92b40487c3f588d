"""
Authentication and page-access tests.

Verifies:
- Login returns a bearer token plus the caller's granted pages
- Protected endpoints return 401 without a token
- Staff need an explicit page grant (403 otherwise); admins see every page
- Backup is admin only
"""

import pytest

from techstore.services import auth_service
from techstore.services.auth_service import PasswordValidationError, UserError

from conftest import PASSWORD, auth_headers, get_auth_token


# =============================================================================
# LOGIN / SESSION
# =============================================================================


class TestLogin:

    def test_login_returns_token(self, client, admin_user):
        resp = client.post("/api/auth/login", json={"username": "admin", "password": PASSWORD})
        assert resp.status_code == 200
        assert resp.json["token"]
        assert resp.json["user"]["username"] == "admin"

    def test_login_by_email(self, client, admin_user):
        resp = client.post("/api/auth/login", json={"email": "admin@techstore.local", "password": PASSWORD})
        assert resp.status_code == 200

    def test_wrong_password(self, client, admin_user):
        resp = client.post("/api/auth/login", json={"username": "admin", "password": "Wrong123!"})
        assert resp.status_code == 401

    def test_missing_fields(self, client):
        resp = client.post("/api/auth/login", json={"username": "admin"})
        assert resp.status_code == 400

    def test_me(self, client, admin_headers):
        resp = client.get("/api/auth/me", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["user"]["username"] == "admin"

    def test_logout_revokes_token(self, client, admin_user):
        token = get_auth_token(client, "admin")
        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401


class TestPasswordRules:

    @pytest.mark.parametrize("password", ["short1!", "password123!", "PASSWORD123!", "Password!!", "Password123"])
    def test_weak_passwords_rejected(self, db_session, password):
        with pytest.raises(PasswordValidationError):
            auth_service.create_user("weak", "weak@techstore.local", password)

    def test_duplicate_username(self, admin_user):
        with pytest.raises(UserError):
            auth_service.create_user("admin", "other@techstore.local", PASSWORD)


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/inventory/adjust"),
            ("GET", "/api/serial-units"),
            ("GET", "/api/purchase-orders"),
            ("GET", "/api/receiving/pending"),
            ("POST", "/api/sales"),
            ("GET", "/api/refunds"),
            ("GET", "/api/customers"),
            ("GET", "/api/suppliers"),
            ("GET", "/api/inquiries"),
            ("GET", "/api/backup"),
            ("GET", "/api/reports/dashboard"),
        ],
    )
    def test_requires_auth(self, client, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_invalid_token(self, client):
        resp = client.get("/api/products", headers=auth_headers("not-a-token"))
        assert resp.status_code == 401


# =============================================================================
# PAGE GRANTS - 403
# =============================================================================


class TestPageAccess:

    def test_staff_without_grant_denied(self, client, staff_headers):
        resp = client.get("/api/products", headers=staff_headers)
        assert resp.status_code == 403
        assert resp.json["required_page"] == "/admin/products"

    def test_staff_with_grant_allowed(self, client, staff_user, staff_headers):
        auth_service.grant_page_access(staff_user.id, "/admin/products")
        assert client.get("/api/products", headers=staff_headers).status_code == 200

    def test_revoked_grant(self, client, staff_user, staff_headers):
        auth_service.grant_page_access(staff_user.id, "/admin/products")
        auth_service.revoke_page_access(staff_user.id, "/admin/products")
        assert client.get("/api/products", headers=staff_headers).status_code == 403

    def test_admin_sees_everything(self, client, admin_headers):
        for path in ("/api/products", "/api/customers", "/api/inquiries", "/api/serial-units"):
            assert client.get(path, headers=admin_headers).status_code == 200, path

    def test_backup_is_admin_only(self, client, staff_user, staff_headers):
        auth_service.grant_page_access(staff_user.id, "/admin/settings")
        assert client.get("/api/backup", headers=staff_headers).status_code == 403

    def test_login_lists_granted_pages(self, client, staff_user):
        auth_service.grant_page_access(staff_user.id, "/admin/pos")
        resp = client.post("/api/auth/login", json={"username": "clerk", "password": PASSWORD})
        assert resp.json["pages"] == ["/admin/pos"]


class TestSystem:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200

    def test_version(self, client):
        assert client.get("/version").status_code == 200
