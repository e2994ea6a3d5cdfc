"""
API route tests: authentication, capability checks and error mapping.
"""

import pytest

from conftest import sale_item, user_headers
from stockpos.services.auth_service import UserService


@pytest.fixture
def admin_headers(admin_user):
    return user_headers(admin_user)


@pytest.fixture
def staff_headers(store):
    staff = UserService(store).create_user("tendai", "Tendai", "secret1", role="staff")
    return user_headers(staff)


def test_health(client, store):
    response = client.get("/api/system/health")
    assert response.status_code == 200
    assert response.json["status"] == "ok"


class TestAuth:
    def test_login(self, client, store):
        response = client.post("/api/auth/login", json={"username": "admin", "password": "admin123"})

        assert response.status_code == 200
        assert response.json["user"]["role"] == "admin"
        assert "system-admin" in response.json["user"]["capabilities"]

    def test_login_bad_password(self, client, store):
        response = client.post("/api/auth/login", json={"username": "admin", "password": "wrong"})
        assert response.status_code == 401

    def test_missing_user_header(self, client, store):
        assert client.get("/api/products").status_code == 401
        assert client.get("/api/products", headers={"X-User-Id": "9999"}).status_code == 401

    def test_staff_cannot_view_reports(self, client, staff_headers):
        response = client.get("/api/reports/metrics", headers=staff_headers)

        assert response.status_code == 403
        assert response.json["required_permission"] == "view-reports"

    def test_staff_can_view_inventory(self, client, staff_headers):
        assert client.get("/api/products", headers=staff_headers).status_code == 200

    def test_staff_cannot_manage_users(self, client, staff_headers):
        response = client.post(
            "/api/admin/users",
            json={"username": "x", "password": "secret1"},
            headers=staff_headers,
        )
        assert response.status_code == 403


class TestProducts:
    def test_create_and_duplicate(self, client, admin_headers):
        payload = {"sku": "COLA", "name": "Cola", "selling_price_cents": 80}

        created = client.post("/api/products", json=payload, headers=admin_headers)
        duplicate = client.post("/api/products", json=payload, headers=admin_headers)

        assert created.status_code == 201
        assert created.json["product"]["sku"] == "COLA"
        assert duplicate.status_code == 409

    def test_invalid_payload(self, client, admin_headers):
        response = client.post("/api/products", json={"name": "No SKU"}, headers=admin_headers)
        assert response.status_code == 400

    def test_unknown_product(self, client, admin_headers):
        assert client.get("/api/products/9999", headers=admin_headers).status_code == 404

    def test_delete_with_sales_history(self, client, admin_headers, sales, stocked_product, main_location):
        sales.create_sales_order(None, [sale_item(stocked_product, 1)], main_location.id)

        response = client.delete(f"/api/products/{stocked_product.id}", headers=admin_headers)
        assert response.status_code == 409


class TestInventory:
    def test_adjust_and_read_stock(self, client, admin_headers, make_product, main_location):
        product = make_product()

        response = client.post("/api/inventory/adjust", json={
            "product_id": product.id, "location_id": main_location.id, "delta": 8, "reason": "Delivery",
        }, headers=admin_headers)
        stock = client.get(f"/api/inventory/products/{product.id}/stock", headers=admin_headers)

        assert response.status_code == 200
        assert response.json["stock_level"]["quantity"] == 8
        assert stock.json["total_quantity"] == 8
        assert stock.json["locations"][0]["location_name"] == "Main Warehouse"

    def test_insufficient_stock(self, client, admin_headers, stocked_product, main_location):
        response = client.post("/api/inventory/adjust", json={
            "product_id": stocked_product.id, "location_id": main_location.id, "delta": -20,
        }, headers=admin_headers)

        assert response.status_code == 400
        assert response.json["details"]["on_hand"] == 10

    def test_failed_transfer(self, client, admin_headers, stocked_product, main_location, back_room):
        response = client.post("/api/inventory/transfer", json={
            "product_id": stocked_product.id,
            "from_location_id": main_location.id,
            "to_location_id": back_room.id,
            "quantity": 11,
        }, headers=admin_headers)

        assert response.status_code == 400
        assert response.json["details"]["quantity"] == 11


class TestSales:
    def test_create_sale(self, client, admin_headers, stock, stocked_product, main_location):
        response = client.post("/api/sales", json={
            "location_id": main_location.id,
            "items": [sale_item(stocked_product, 2)],
            "payment_status": "partial",
            "amount_paid_cents": 500,
        }, headers=admin_headers)

        assert response.status_code == 201
        assert response.json["total_amount_cents"] == 2000
        assert response.json["balance_cents"] == 1500
        assert stock.quantity_at(stocked_product.id, main_location.id) == 8

    def test_sale_rolled_back(self, client, admin_headers, store, stock, stocked_product, main_location):
        response = client.post("/api/sales", json={
            "location_id": main_location.id,
            "items": [sale_item(stocked_product, 50)],
        }, headers=admin_headers)

        assert response.status_code == 400
        assert response.json["details"]["requested_delta"] == -50
        store.session.expire_all()
        assert stock.quantity_at(stocked_product.id, main_location.id) == 10

    def test_payments(self, client, admin_headers, sales, stocked_product, main_location):
        order = sales.create_sales_order(
            None, [sale_item(stocked_product, 1)], main_location.id, payment_status="credit",
        )
        url = f"/api/sales/{order.id}/payments"

        ok = client.post(url, json={"amount_cents": 400}, headers=admin_headers)
        bad = client.post(url, json={"amount_cents": 0}, headers=admin_headers)
        missing = client.post("/api/sales/9999/payments", json={"amount_cents": 100}, headers=admin_headers)

        assert ok.status_code == 201
        assert ok.json["balance_cents"] == 600
        assert ok.json["settlement_status"] == "partial"
        assert bad.status_code == 400
        assert missing.status_code == 404


class TestReports:
    def test_metrics(self, client, admin_headers):
        response = client.get("/api/reports/metrics?filter=this_month", headers=admin_headers)

        assert response.status_code == 200
        assert response.json["filter"] == "month"

    def test_bad_filter(self, client, admin_headers):
        response = client.get("/api/reports/metrics?filter=fortnight", headers=admin_headers)
        assert response.status_code == 400


class TestSystem:
    def test_export_csv(self, client, admin_headers, make_product):
        make_product(name='Chips "Large"')

        response = client.get("/api/system/export/products", headers=admin_headers)

        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        assert '"Chips ""Large"""' in response.get_data(as_text=True)

    def test_export_unknown_table(self, client, admin_headers):
        assert client.get("/api/system/export/nope", headers=admin_headers).status_code == 404

    def test_factory_reset_requires_confirmation(self, client, admin_headers):
        assert client.post("/api/system/factory-reset", json={}, headers=admin_headers).status_code == 400

    def test_factory_reset(self, client, admin_headers, make_product):
        make_product()

        response = client.post("/api/system/factory-reset", json={"confirm": True}, headers=admin_headers)
        login = client.post("/api/auth/login", json={"username": "admin", "password": "admin123"})
        products = client.get("/api/products", headers=user_headers_for(login))

        assert response.status_code == 200
        assert login.status_code == 200
        assert products.json["count"] == 0


def user_headers_for(login_response) -> dict:
    return {"X-User-Id": str(login_response.json["user"]["id"])}
