# Overview: Pytest coverage for the HTTP surface; status codes and error shapes.

import pytest


@pytest.mark.smoke
class TestSalesRoutes:

    def test_create_and_fetch_sale(self, client, employee_headers, hammer, screws):
        resp = client.post(
            "/api/sales",
            json={
                "payment_method": "cash",
                "items": [
                    {"product_id": hammer.id, "quantity": 2},
                    {"product_id": screws.id, "quantity": 3, "discount": 500},
                ],
            },
            headers=employee_headers,
        )
        assert resp.status_code == 201
        sale = resp.json["sale"]
        assert sale["sale_number"] == "V-000001"
        assert sale["totals"] == {"subtotal": 38850, "discount": 500, "tax": 0, "total": 38350}

        detail = client.get(f"/api/sales/{sale['id']}", headers=employee_headers)
        assert detail.status_code == 200
        assert len(detail.json["sale"]["movements"]) == 2

        listing = client.get("/api/sales?status=completed", headers=employee_headers)
        assert listing.json["pagination"]["total"] == 1

    def test_insufficient_stock_error_shape(self, client, employee_headers, wrench):
        resp = client.post(
            "/api/sales",
            json={"payment_method": "cash", "items": [{"product_id": wrench.id, "quantity": 3}]},
            headers=employee_headers,
        )
        assert resp.status_code == 409
        assert resp.json["error"] == "insufficient_stock"
        assert resp.json["details"]["available"] == 2
        assert "Traceback" not in resp.get_data(as_text=True)

    def test_malformed_payload(self, client, employee_headers, hammer):
        resp = client.post(
            "/api/sales",
            json={"payment_method": "cash", "items": [{"product_id": hammer.id, "quantity": 1.5}]},
            headers=employee_headers,
        )
        assert resp.status_code == 400
        assert "quantity" in resp.json["error"]

    def test_unknown_sale(self, client, employee_headers):
        resp = client.get("/api/sales/9999", headers=employee_headers)
        assert resp.status_code == 404
        assert resp.json["error"] == "sale_not_found"

    def test_cancel_then_refund_conflicts(self, client, employee_headers, hammer):
        created = client.post(
            "/api/sales",
            json={"payment_method": "cash", "items": [{"product_id": hammer.id, "quantity": 1}]},
            headers=employee_headers,
        ).json["sale"]

        cancelled = client.put(
            f"/api/sales/{created['id']}/cancel",
            json={"reason": "Duplicate ticket"},
            headers=employee_headers,
        )
        assert cancelled.status_code == 200
        assert cancelled.json["sale"]["status"] == "cancelled"

        refund = client.post(
            f"/api/sales/{created['id']}/refund",
            json={"refund_reason": "Too late"},
            headers=employee_headers,
        )
        assert refund.status_code == 409
        assert refund.json["error"] == "invalid_state"

    def test_partial_refund_over_quantity(self, client, employee_headers, screws):
        created = client.post(
            "/api/sales",
            json={"payment_method": "cash", "items": [{"product_id": screws.id, "quantity": 3}]},
            headers=employee_headers,
        ).json["sale"]

        resp = client.post(
            f"/api/sales/{created['id']}/refund",
            json={"refund_reason": "Defective", "items": [{"product_id": screws.id, "quantity": 5}]},
            headers=employee_headers,
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "refund_exceeds_sale"

        resp = client.post(
            f"/api/sales/{created['id']}/refund",
            json={"refund_reason": "Defective", "items": [{"product_id": screws.id, "quantity": 3}]},
            headers=employee_headers,
        )
        assert resp.status_code == 200
        assert resp.json["sale"]["refund"]["restocked"] is True


class TestCheckoutRoutes:

    def _payload(self, product_id, succeeded=True):
        return {
            "payment_reference": "pi_route_001",
            "succeeded": succeeded,
            "items": [{"product_id": product_id, "quantity": 1}],
        }

    def test_confirm_then_replay(self, client, customer_headers, hammer):
        first = client.post("/api/payments/confirm", json=self._payload(hammer.id), headers=customer_headers)
        second = client.post("/api/payments/confirm", json=self._payload(hammer.id), headers=customer_headers)

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json["created"] is False
        assert second.json["sale"]["id"] == first.json["sale"]["id"]

    def test_failed_payment(self, client, customer_headers, hammer):
        resp = client.post(
            "/api/payments/confirm",
            json=self._payload(hammer.id, succeeded=False),
            headers=customer_headers,
        )
        assert resp.status_code == 402
        assert resp.json["error"] == "payment_not_confirmed"


@pytest.mark.inventory
class TestInventoryRoutes:

    def test_receive_and_history(self, client, employee_headers, hammer):
        resp = client.post(
            "/api/inventory/receive",
            json={"product_id": hammer.id, "quantity": 5, "unit_cost": 6000, "document_number": "OC-12"},
            headers=employee_headers,
        )
        assert resp.status_code == 201
        assert resp.json["result"]["new_stock"] == 25

        history = client.get(f"/api/inventory/{hammer.id}/history", headers=employee_headers)
        assert [m["type"] for m in history.json["movements"]] == ["purchase", "adjustment"]

    def test_adjust_batch(self, client, employee_headers, hammer, screws):
        resp = client.post(
            "/api/inventory/adjust",
            json={
                "reason": "Cycle count",
                "adjustments": [
                    {"product_id": hammer.id, "new_stock": 19},
                    {"product_id": screws.id, "new_stock": 101},
                ],
            },
            headers=employee_headers,
        )
        assert resp.status_code == 200
        assert [r["difference"] for r in resp.json["results"]] == [-1, 1]

    def test_damage_beyond_stock(self, client, employee_headers, wrench):
        resp = client.post(
            "/api/inventory/damage",
            json={"product_id": wrench.id, "quantity": 3},
            headers=employee_headers,
        )
        assert resp.status_code == 409
        assert resp.json["error"] == "insufficient_stock"

    def test_transfer(self, client, employee_headers, hammer):
        resp = client.post(
            "/api/inventory/transfer",
            json={"product_id": hammer.id, "to_location": {"aisle": "7", "bin": "A3"}},
            headers=employee_headers,
        )
        assert resp.status_code == 200
        assert resp.json["result"]["difference"] == 0
        assert resp.json["result"]["movement"]["location_to"] == {"aisle": "7", "shelf": None, "bin": "A3"}

    def test_reconcile_and_low_stock(self, client, employee_headers, hammer, wrench):
        reconcile = client.get(f"/api/inventory/{hammer.id}/reconcile", headers=employee_headers)
        assert reconcile.json["reconciliation"]["consistent"] is True

        low = client.get("/api/inventory/low-stock", headers=employee_headers)
        assert low.json["total_low_stock"] == 1
        assert low.json["products"][0]["sku"] == "LL-001"

    def test_movement_filters(self, client, employee_headers, hammer, screws):
        resp = client.get(f"/api/inventory/movements?product_id={hammer.id}", headers=employee_headers)
        assert resp.json["pagination"]["total"] == 1

        resp = client.get("/api/inventory/movements?type=teleport", headers=employee_headers)
        assert resp.status_code == 400

        resp = client.get("/api/inventory/movements?limit=abc", headers=employee_headers)
        assert resp.status_code == 400


class TestProductRoutes:

    def test_lookup_by_sku(self, client, customer_headers, hammer):
        resp = client.get("/api/products/sku/mart-001", headers=customer_headers)
        assert resp.status_code == 200
        assert resp.json["product"]["id"] == hammer.id

        resp = client.get("/api/products/sku/NOPE-404", headers=customer_headers)
        assert resp.status_code == 404
        assert resp.json["error"] == "product_not_found"

    def test_inactive_sku_hidden_from_customers(self, client, admin_headers, customer_headers, hammer):
        assert client.delete(f"/api/products/{hammer.id}", headers=admin_headers).status_code == 200

        assert client.get("/api/products/sku/MART-001", headers=customer_headers).status_code == 404
        staff = client.get("/api/products/sku/MART-001", headers=admin_headers)
        assert staff.status_code == 200
        assert staff.json["product"]["is_active"] is False


@pytest.mark.smoke
class TestSystemRoutes:

    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"
        assert resp.json["checks"]["database"]["status"] == "healthy"

    def test_login_with_bad_password(self, client, admin_user):
        resp = client.post("/api/auth/login", json={"username": "admin", "password": "Wrong123!"})
        assert resp.status_code == 401

    def test_login_requires_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"username": "admin"})
        assert resp.status_code == 400
