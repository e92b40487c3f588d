"""Customer records and the prepaid wallet ledger."""

import pytest

from techstore.extensions import db
from techstore.models import Customer, CustomerWallet, WalletTransaction
from techstore.services import customer_service, wallet_service
from techstore.services.customer_service import CustomerValidationError
from techstore.services.wallet_service import InsufficientBalanceError, WalletValidationError


class TestWalletLedger:

    def test_first_deposit_creates_wallet(self, customer):
        tx = wallet_service.deposit(customer_id=customer.id, amount=1000, notes="Cash top-up")
        assert tx.transaction_type == "deposit"
        assert tx.amount == 1000
        assert tx.balance_after == 1000
        assert wallet_service.get_wallet(customer.id).balance == 1000

    def test_withdraw(self, customer):
        wallet_service.deposit(customer_id=customer.id, amount=1000)
        tx = wallet_service.withdraw(customer_id=customer.id, amount=400)
        assert tx.amount == -400
        assert tx.balance_after == 600

    def test_over_withdrawal_rejected(self, customer):
        wallet_service.deposit(customer_id=customer.id, amount=1000)
        with pytest.raises(InsufficientBalanceError):
            wallet_service.withdraw(customer_id=customer.id, amount=1001)
        assert wallet_service.get_wallet(customer.id).balance == 1000
        assert db.session.query(WalletTransaction).count() == 1

    def test_withdraw_without_wallet(self, customer):
        with pytest.raises(InsufficientBalanceError):
            wallet_service.withdraw(customer_id=customer.id, amount=1)

    @pytest.mark.parametrize("amount", [0, -5, "100", 1.5, True])
    def test_invalid_amounts(self, customer, amount):
        with pytest.raises(WalletValidationError):
            wallet_service.deposit(customer_id=customer.id, amount=amount)

    def test_history_newest_first(self, customer):
        wallet_service.deposit(customer_id=customer.id, amount=1000)
        wallet_service.withdraw(customer_id=customer.id, amount=300)
        wallet_service.deposit(customer_id=customer.id, amount=50)
        history = wallet_service.wallet_history(customer.id)
        assert [t.balance_after for t in history] == [750, 700, 1000]

    def test_totals(self, customer, db_session):
        other = Customer(name="Zed")
        db_session.add(other)
        db_session.commit()
        wallet_service.deposit(customer_id=customer.id, amount=1000)
        wallet_service.deposit(customer_id=other.id, amount=500)
        wallet_service.withdraw(customer_id=other.id, amount=500)
        assert wallet_service.wallet_totals() == {"total_balance": 1000, "active_wallets": 1}


class TestWalletRoutes:

    def test_deposit_and_withdraw(self, client, admin_headers, customer):
        resp = client.post(f"/api/customers/{customer.id}/wallet/deposit", json={"amount": 20_000}, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["balance_after"] == 20_000

        over = client.post(f"/api/customers/{customer.id}/wallet/withdraw", json={"amount": 25_000}, headers=admin_headers)
        assert over.status_code == 409

        wallet = client.get(f"/api/customers/{customer.id}/wallet", headers=admin_headers).json
        assert wallet["wallet"]["balance"] == 20_000
        assert len(wallet["transactions"]) == 1

    def test_bad_amount(self, client, admin_headers, customer):
        resp = client.post(f"/api/customers/{customer.id}/wallet/deposit", json={"amount": "lots"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_unknown_customer(self, client, admin_headers):
        resp = client.post("/api/customers/999/wallet/deposit", json={"amount": 10}, headers=admin_headers)
        assert resp.status_code == 404

    def test_wallet_list(self, client, admin_headers, customer):
        wallet_service.deposit(customer_id=customer.id, amount=300)
        listing = client.get("/api/customers/wallets", headers=admin_headers).json
        assert [w["customer_name"] for w in listing["items"]] == ["Brian Okello"]
        assert listing["totals"]["total_balance"] == 300


class TestCustomers:

    def test_create_requires_name(self, client, admin_headers):
        assert client.post("/api/customers", json={"phone": "0772"}, headers=admin_headers).status_code == 400
        resp = client.post("/api/customers", json={"name": "Sarah N.", "phone": "0772"}, headers=admin_headers)
        assert resp.status_code == 201

    def test_search(self, customer):
        assert [c.id for c in customer_service.list_customers(search="okello")] == [customer.id]
        assert customer_service.list_customers(search="nobody") == []

    def test_delete_with_balance_blocked(self, customer):
        wallet_service.deposit(customer_id=customer.id, amount=10)
        with pytest.raises(CustomerValidationError):
            customer_service.delete_customer(customer.id)

    def test_delete_removes_empty_wallet(self, customer):
        wallet_service.deposit(customer_id=customer.id, amount=10)
        wallet_service.withdraw(customer_id=customer.id, amount=10)
        customer_service.delete_customer(customer.id)
        assert db.session.query(CustomerWallet).count() == 0
        assert db.session.query(WalletTransaction).count() == 0

    def test_delete_with_sales_blocked(self, client, admin_headers, customer, make_product):
        product = make_product(stock=1)
        client.post("/api/sales", json={
            "items": [{"product_id": product.id, "quantity": 1}], "customer_id": customer.id,
        }, headers=admin_headers)
        assert client.delete(f"/api/customers/{customer.id}", headers=admin_headers).status_code == 409
