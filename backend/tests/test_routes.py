# Overview: Flask test-client coverage for the HTTP surface (envelopes, status codes, auth).

"""
Route Tests

Every response uses the {"status": ..., "data" | "message": ...} envelope and
ledger errors map to their HTTP status codes.
"""

import pytest

from posledger.identity import CallerIdentity
from posledger.services import sales_service


class TestAuthentication:

    @pytest.mark.parametrize("method, url", [
        ("get", "/api/auth/me"),
        ("get", "/api/categories"),
        ("post", "/api/sales"),
        ("get", "/api/cash-register/status"),
        ("get", "/api/inventory/movements"),
    ])
    def test_missing_identity_is_401(self, client, method, url):
        response = getattr(client, method)(url)
        assert response.status_code == 401
        assert response.get_json() == {"status": "error", "message": "You are not logged in."}

    def test_me_echoes_identity(self, client, auth_headers):
        response = client.get("/api/auth/me", headers=auth_headers)
        assert response.status_code == 200
        assert response.get_json()["data"]["user"] == {"id": "user_cashier_1", "role": "CASHIER"}

    def test_custom_resolver_errors_become_401(self, app, client):
        def broken(request):
            raise RuntimeError("provider down")

        app.config["IDENTITY_RESOLVER"] = broken
        response = client.get("/api/auth/me", headers={"X-User-Id": "x"})
        assert response.status_code == 401
        assert response.get_json()["message"] == "Authentication failed"

    def test_custom_resolver_is_used(self, app, client):
        app.config["IDENTITY_RESOLVER"] = lambda request: CallerIdentity("svc-42", "MANAGER")
        response = client.get("/api/auth/me")
        assert response.get_json()["data"]["user"] == {"id": "svc-42", "role": "MANAGER"}


class TestSystemRoutes:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.get_json()["status"] == "success"

    def test_cors_for_allowed_origin(self, client):
        response = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    def test_no_cors_for_unknown_origin(self, client):
        response = client.get("/api/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in response.headers


class TestCatalogRoutes:

    def test_category_crud(self, client, auth_headers):
        created = client.post("/api/categories", json={"name": "Bags", "code": "BAG"}, headers=auth_headers)
        assert created.status_code == 201
        category_id = created.get_json()["data"]["category"]["id"]

        duplicate = client.post("/api/categories", json={"name": "Bags 2", "code": "BAG"}, headers=auth_headers)
        assert duplicate.status_code == 400

        updated = client.put(f"/api/categories/{category_id}", json={"name": "Handbags"}, headers=auth_headers)
        assert updated.get_json()["data"]["category"]["name"] == "Handbags"

        deleted = client.delete(f"/api/categories/{category_id}", headers=auth_headers)
        assert deleted.status_code == 200

        missing = client.get("/api/categories/999", headers=auth_headers)
        assert missing.status_code == 404
        assert missing.get_json()["status"] == "error"

    def test_create_item_with_variants(self, client, auth_headers, category):
        response = client.post("/api/items/with-variants", json={
            "category_id": category.id,
            "store": "Mini Queen",
            "description": "Linen shirt",
            "selling_price": 30,
            "variant_groups": {"size": ["S", "M", "L"]},
        }, headers=auth_headers)

        assert response.status_code == 201
        item = response.get_json()["data"]["item"]
        assert item["code"].startswith("MQN-")
        assert item["has_variants"] is True
        assert [v["attributes"]["size"] for v in item["variants"]] == ["S", "M", "L"]

        fetched = client.get(f"/api/items/{item['id']}", headers=auth_headers)
        assert fetched.get_json()["data"]["item"]["code"] == item["code"]

        found = client.get("/api/items/search?query=linen&has_variants=true", headers=auth_headers)
        assert found.get_json()["data"]["pagination"]["total"] == 1

    def test_item_requires_store(self, client, auth_headers, category):
        response = client.post("/api/items/with-variants", json={"category_id": category.id}, headers=auth_headers)
        assert response.status_code == 400

    def test_customers(self, client, auth_headers):
        created = client.post("/api/customers", json={"name": "Ana", "phone": "555"}, headers=auth_headers)
        assert created.status_code == 201

        found = client.get("/api/customers/search?query=55", headers=auth_headers)
        assert [c["name"] for c in found.get_json()["data"]["customers"]] == ["Ana"]

        listing = client.get("/api/customers", headers=auth_headers)
        assert listing.get_json()["data"]["pagination"]["total"] == 1

        assert client.get("/api/customers/search", headers=auth_headers).status_code == 400


class TestLedgerRoutes:

    def test_register_day(self, client, auth_headers, variant_item, variant_of):
        small = variant_of(variant_item, size="S")

        assert client.post("/api/cash-register/open", json={"opening_amount": 100}, headers=auth_headers).status_code == 201
        sale = client.post("/api/sales", json={
            "items": [{"item_id": variant_item.id, "item_variant_id": small.id, "quantity": 1, "unit_price": 25.5}],
            "payment_method": "CASH",
            "payment_status": "PAID",
        }, headers=auth_headers)
        assert sale.status_code == 201
        assert sale.get_json()["data"]["sale"]["final_amount"] == 25.5

        status = client.get("/api/cash-register/status", headers=auth_headers).get_json()["data"]
        assert status["current_balance"] == 125.5

        assert client.post("/api/cash-register/withdraw", json={"amount": 500}, headers=auth_headers).status_code == 400
        assert client.post("/api/cash-register/deposit", json={"amount": 4.5}, headers=auth_headers).status_code == 201

        closed = client.post("/api/cash-register/close", json={"actual_amount": 130}, headers=auth_headers)
        register = closed.get_json()["data"]["cash_register"]
        assert register["expected_amount"] == 130.0
        assert register["difference"] == 0.0

        history = client.get("/api/cash-register/history", headers=auth_headers).get_json()["data"]
        assert history["pagination"]["total"] == 1

    def test_close_without_register_is_404(self, client, auth_headers):
        response = client.post("/api/cash-register/close", json={"actual_amount": 0}, headers=auth_headers)
        assert response.status_code == 404

    def test_sale_validation_errors(self, client, auth_headers, plain_item):
        empty = client.post("/api/sales", json={"items": [], "payment_method": "CASH"}, headers=auth_headers)
        assert empty.status_code == 400
        assert empty.get_json()["message"] == "Sale must have at least one item"

        missing = client.post("/api/sales", json={
            "items": [{"item_id": 999, "quantity": 1, "unit_price": 1}], "payment_method": "CASH",
        }, headers=auth_headers)
        assert missing.status_code == 404

    def test_sale_reads_and_refund(self, client, auth_headers, plain_item):
        created = client.post("/api/sales", json={
            "items": [{"item_id": plain_item.id, "quantity": 2, "unit_price": 5}], "payment_method": "CARD",
        }, headers=auth_headers).get_json()["data"]["sale"]

        assert client.get(f"/api/sales/{created['id']}", headers=auth_headers).status_code == 200
        assert client.get("/api/sales?status=COMPLETED", headers=auth_headers).get_json()["data"]["pagination"]["total"] == 1
        assert client.get("/api/sales/summary", headers=auth_headers).get_json()["data"]["total_sales"] == 10.0

        refunded = client.post(f"/api/sales/{created['id']}/refund", json={}, headers=auth_headers)
        assert refunded.get_json()["data"]["sale"]["status"] == "REFUNDED"

    def test_purchase_order_flow(self, client, auth_headers, variant_item, variant_of):
        small = variant_of(variant_item, size="S")
        created = client.post("/api/purchase-orders", json={
            "items": [{"item_id": variant_item.id, "item_variant_id": small.id, "quantity": 6, "unit_price": 9}],
        }, headers=auth_headers)
        assert created.status_code == 201
        order_id = created.get_json()["data"]["purchase_order"]["id"]

        bad = client.patch(f"/api/purchase-orders/{order_id}/status", json={"status": "RECEIVED"}, headers=auth_headers)
        assert bad.status_code == 400

        for status in ("ORDERED", "RECEIVED"):
            response = client.patch(f"/api/purchase-orders/{order_id}/status", json={"status": status}, headers=auth_headers)
            assert response.status_code == 200

        movements = client.get(
            f"/api/inventory/movements?item_variant_id={small.id}", headers=auth_headers
        ).get_json()["data"]["movements"]
        assert [(m["movement_type"], m["new_quantity"]) for m in movements] == [("PURCHASE", 6)]

        adjusted = client.post("/api/inventory/adjust", json={
            "item_variant_id": small.id, "quantity_delta": -1, "notes": "Damaged",
        }, headers=auth_headers)
        assert adjusted.status_code == 201
        assert adjusted.get_json()["data"]["movement"]["new_quantity"] == 5

    def test_unexpected_errors_are_500(self, client, auth_headers, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("db exploded")

        monkeypatch.setattr(sales_service, "get_sale", boom)
        response = client.get("/api/sales/1", headers=auth_headers)
        assert response.status_code == 500
        assert response.get_json() == {"status": "error", "message": "Internal server error"}
