"""Serial unit tracking: registration, transfers, history and sold-unit cleanup."""

from datetime import date, timedelta

import pytest

from techstore.extensions import db
from techstore.models import Product, SerialUnit, SerialUnitHistory
from techstore.services import maintenance_service, serial_unit_service
from techstore.services.serial_unit_service import SerialUnitValidationError


@pytest.fixture
def laptop(make_product):
    return make_product("Dell Latitude 5420", sku="DL-5420", barcode="5397184456789", is_active=False)


def _unit(product, serial, **columns):
    return serial_unit_service.register_unit(
        patch={"product_id": product.id, "serial_number": serial, **columns}
    )


class TestRegistration:

    def test_register_logs_history(self, laptop):
        unit = _unit(laptop, "SN-0001", location="Warehouse A")
        history = serial_unit_service.get_unit_history(unit.id)
        assert [h.action for h in history] == ["created"]
        assert unit.status == "in_stock"

    def test_serial_number_required(self, laptop):
        with pytest.raises(SerialUnitValidationError):
            serial_unit_service.register_unit(patch={"product_id": laptop.id, "serial_number": "  "})

    def test_registered_as_sold_gets_sold_date(self, laptop):
        unit = _unit(laptop, "SN-0002", status="sold")
        assert unit.sold_date is not None

    def test_quick_add_by_barcode(self, client, admin_headers, laptop):
        resp = client.post("/api/serial-units/quick-add", json={
            "barcode": "5397184456789", "quantity": 3, "location": "Warehouse A",
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["count"] == 3
        assert {u["serial_number"] for u in resp.json["items"]} == {"5397184456789"}

    def test_quick_add_unknown_barcode(self, client, admin_headers, laptop):
        resp = client.post("/api/serial-units/quick-add", json={"barcode": "111"}, headers=admin_headers)
        assert resp.status_code == 404


class TestTransfer:

    def test_transfer_to_store_activates_product(self, laptop):
        unit = _unit(laptop, "SN-1", location="Warehouse A")
        result = serial_unit_service.transfer_unit(unit_id=unit.id, location="Main Store")

        assert result["product_activated"] is True
        assert db.session.get(Product, laptop.id).is_active is True
        latest = serial_unit_service.get_unit_history(unit.id)[0]
        assert latest.action == "transferred"
        assert (latest.previous_location, latest.new_location) == ("Warehouse A", "Main Store")

    def test_transfer_to_warehouse_keeps_product_hidden(self, laptop):
        unit = _unit(laptop, "SN-2", location="Warehouse A")
        result = serial_unit_service.transfer_unit(unit_id=unit.id, location="Warehouse B")

        assert result["product_activated"] is False
        assert db.session.get(Product, laptop.id).is_active is False

    def test_transfer_of_already_active_product_reports_no_activation(self, laptop):
        first = _unit(laptop, "SN-4", location="Warehouse A")
        second = _unit(laptop, "SN-5", location="Warehouse A")
        assert serial_unit_service.transfer_unit(unit_id=first.id, location="Main Store")["product_activated"] is True

        result = serial_unit_service.transfer_unit(unit_id=second.id, location="Kampala Shop")
        assert result["product_activated"] is False
        assert db.session.get(Product, laptop.id).is_active is True

    def test_transfer_to_same_location_is_noop(self, laptop):
        unit = _unit(laptop, "SN-3", location="Warehouse A")
        result = serial_unit_service.transfer_unit(unit_id=unit.id, location="Warehouse A")
        assert result["unchanged"] is True
        assert len(serial_unit_service.get_unit_history(unit.id)) == 1

    def test_transfer_requires_location(self, client, admin_headers, laptop):
        unit = _unit(laptop, "SN-4")
        resp = client.post(f"/api/serial-units/{unit.id}/transfer", json={"location": ""}, headers=admin_headers)
        assert resp.status_code == 400

    def test_status_change_logged(self, laptop):
        unit = _unit(laptop, "SN-5")
        serial_unit_service.update_unit(unit_id=unit.id, patch={"status": "in_repair"})
        serial_unit_service.update_unit(unit_id=unit.id, patch={"notes": "fan noise"})
        actions = [h.action for h in serial_unit_service.get_unit_history(unit.id)]
        assert actions == ["updated", "created"]


class TestSoldUnitCleanup:

    def test_retention_window(self, laptop):
        today = date(2024, 6, 10)
        old = _unit(laptop, "OLD", status="sold", sold_date=today - timedelta(days=5))
        _unit(laptop, "RECENT", status="sold", sold_date=today - timedelta(days=3))
        _unit(laptop, "STOCK")
        old_id = old.id

        deleted = maintenance_service.cleanup_sold_units(today=today)

        assert deleted == 1
        remaining = {u.serial_number for u in db.session.query(SerialUnit).all()}
        assert remaining == {"RECENT", "STOCK"}
        assert db.session.query(SerialUnitHistory).filter_by(serial_unit_id=old_id).count() == 0

    def test_custom_retention(self, laptop):
        today = date(2024, 6, 10)
        _unit(laptop, "A", status="sold", sold_date=today - timedelta(days=2))
        assert maintenance_service.cleanup_sold_units(retention_days=1, today=today) == 1

    def test_list_runs_cleanup(self, client, admin_headers, laptop):
        _unit(laptop, "ANCIENT", status="sold", sold_date=date(2000, 1, 1))
        _unit(laptop, "LIVE")

        resp = client.get("/api/serial-units", headers=admin_headers)
        assert resp.status_code == 200
        assert [u["serial_number"] for u in resp.json["items"]] == ["LIVE"]
        assert resp.json["stats"]["total"] == 1

    def test_cleanup_route(self, client, admin_headers, laptop):
        _unit(laptop, "ANCIENT", status="sold", sold_date=date(2000, 1, 1))
        resp = client.post("/api/maintenance/cleanup-sold-units", json={}, headers=admin_headers)
        assert resp.status_code == 200


class TestLocations:

    def test_create_and_deactivate(self, client, admin_headers):
        created = client.post("/api/serial-units/locations", json={"name": "Kampala Shop"}, headers=admin_headers)
        assert created.status_code == 201

        dup = client.post("/api/serial-units/locations", json={"name": "kampala shop"}, headers=admin_headers)
        assert dup.status_code == 400

        client.delete(f"/api/serial-units/locations/{created.json['id']}", headers=admin_headers)
        names = [loc["name"] for loc in client.get("/api/serial-units/locations", headers=admin_headers).json["items"]]
        assert names == []
