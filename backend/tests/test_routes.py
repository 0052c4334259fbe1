"""
HTTP surface tests.

Covers authentication gates, error-to-status mapping, the admin routes
and the webhook acknowledgment contract.
"""

from datetime import timedelta

from app.models import DeliverySchedule, Subscription

from conftest import auth_headers, captured_payload, signed_webhook, token_for


WEBHOOK_URL = "/api/webhooks/razorpay"


# =============================================================================
# CUSTOMER ROUTES
# =============================================================================

class TestAuthentication:
    def test_missing_token(self, client, db_session):
        response = client.get("/api/subscriptions/")
        assert response.status_code == 401
        assert response.get_json()["success"] is False

    def test_bogus_token(self, client, db_session):
        response = client.get("/api/subscriptions/", headers=auth_headers("not-a-token"))
        assert response.status_code == 401

    def test_deactivated_user(self, client, db_session, customer):
        token = token_for(customer)
        customer.is_active = False
        db_session.commit()

        response = client.get("/api/subscriptions/", headers=auth_headers(token))
        assert response.status_code == 401


class TestCreateRoute:
    def test_create_returns_subscription_and_order(self, client, customer, product, gateway):
        response = client.post(
            "/api/subscriptions/",
            json={"product_id": product.id, "daily_quantity": 2, "duration_months": 1, "delivery_time": "06:30"},
            headers=auth_headers(token_for(customer)),
        )

        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["subscription"]["status"] == "pending"
        assert data["subscription"]["amount_minor"] == 360000
        assert data["subscription"]["delivery_time"] == "06:30"
        assert data["razorpay_order"]["id"] == gateway.orders[0]["id"]
        assert data["razorpay_order"]["amount"] == 360000

    def test_missing_fields(self, client, customer, product):
        response = client.post(
            "/api/subscriptions/",
            json={"product_id": product.id},
            headers=auth_headers(token_for(customer)),
        )
        assert response.status_code == 400
        assert "Missing required fields" in response.get_json()["error"]

    def test_unknown_field_rejected(self, client, customer, product):
        response = client.post(
            "/api/subscriptions/",
            json={"product_id": product.id, "daily_quantity": 1, "duration_months": 1,
                  "delivery_time": "07:00", "status": "active"},
            headers=auth_headers(token_for(customer)),
        )
        assert response.status_code == 400

    def test_zero_quantity_rejected(self, client, customer, product):
        response = client.post(
            "/api/subscriptions/",
            json={"product_id": product.id, "daily_quantity": 0, "duration_months": 1, "delivery_time": "07:00"},
            headers=auth_headers(token_for(customer)),
        )
        assert response.status_code == 400

    def test_unknown_product_is_404(self, client, customer, gateway):
        response = client.post(
            "/api/subscriptions/",
            json={"product_id": 777, "daily_quantity": 1, "duration_months": 1, "delivery_time": "07:00"},
            headers=auth_headers(token_for(customer)),
        )
        assert response.status_code == 404

    def test_gateway_outage_is_502(self, client, customer, product, gateway, db_session):
        gateway.fail_next = True
        response = client.post(
            "/api/subscriptions/",
            json={"product_id": product.id, "daily_quantity": 1, "duration_months": 1, "delivery_time": "07:00"},
            headers=auth_headers(token_for(customer)),
        )
        assert response.status_code == 502
        assert db_session.query(Subscription).count() == 0


class TestLifecycleRoutes:
    def test_pause_pending_is_400(self, client, customer, make_subscription):
        sub = make_subscription(status="pending")
        response = client.post(f"/api/subscriptions/{sub.id}/pause", headers=auth_headers(token_for(customer)))

        assert response.status_code == 400
        assert "only active subscriptions can be paused" in response.get_json()["error"].lower()

    def test_pause_resume_cancel(self, client, customer, make_subscription):
        sub = make_subscription(status="active")
        headers = auth_headers(token_for(customer))

        assert client.post(f"/api/subscriptions/{sub.id}/pause", headers=headers).get_json()["data"]["status"] == "paused"
        assert client.post(f"/api/subscriptions/{sub.id}/resume", headers=headers).get_json()["data"]["status"] == "active"
        assert client.post(f"/api/subscriptions/{sub.id}/cancel", headers=headers).get_json()["data"]["status"] == "cancelled"

    def test_foreign_subscription_is_403(self, client, other_customer, make_subscription):
        sub = make_subscription(status="active")
        headers = auth_headers(token_for(other_customer))

        assert client.get(f"/api/subscriptions/{sub.id}", headers=headers).status_code == 403
        assert client.post(f"/api/subscriptions/{sub.id}/cancel", headers=headers).status_code == 403

    def test_unknown_subscription_is_404(self, client, customer, db_session):
        response = client.get("/api/subscriptions/31337", headers=auth_headers(token_for(customer)))
        assert response.status_code == 404

    def test_list_only_own(self, client, customer, other_customer, make_subscription):
        mine = make_subscription()
        make_subscription(user=other_customer)

        data = client.get("/api/subscriptions/", headers=auth_headers(token_for(customer))).get_json()["data"]
        assert [s["id"] for s in data] == [mine.id]

    def test_pause_date_and_deliveries(self, client, customer, make_subscription, services):
        sub = make_subscription(status="pending")
        services.subscriptions.activate(sub.id)
        headers = auth_headers(token_for(customer))
        day = sub.start_date + timedelta(days=3)

        response = client.post(f"/api/subscriptions/{sub.id}/paused-dates",
                               json={"date": day.isoformat()}, headers=headers)
        assert response.status_code == 201
        assert response.get_json()["data"]["date"] == day.isoformat()

        deliveries = client.get(f"/api/subscriptions/{sub.id}/deliveries", headers=headers).get_json()["data"]
        assert len(deliveries) == 30
        skipped = [d for d in deliveries if d["status"] == "skipped"]
        assert [d["delivery_date"] for d in skipped] == [day.isoformat()]

    def test_pause_date_requires_valid_date(self, client, customer, make_subscription):
        sub = make_subscription(status="active")
        headers = auth_headers(token_for(customer))

        assert client.post(f"/api/subscriptions/{sub.id}/paused-dates", json={}, headers=headers).status_code == 400
        assert client.post(f"/api/subscriptions/{sub.id}/paused-dates",
                           json={"date": "02/11/2026"}, headers=headers).status_code == 400


# =============================================================================
# ADMIN ROUTES
# =============================================================================

class TestAdminRoutes:
    def test_customer_is_refused(self, client, customer):
        response = client.get("/api/admin/subscriptions", headers=auth_headers(token_for(customer)))
        assert response.status_code == 403

    def test_list_with_status_filter(self, client, admin_user, make_subscription):
        make_subscription(status="pending")
        active = make_subscription(status="active")
        headers = auth_headers(token_for(admin_user))

        data = client.get("/api/admin/subscriptions?status=active", headers=headers).get_json()["data"]
        assert [s["id"] for s in data] == [active.id]
        assert client.get("/api/admin/subscriptions?status=nope", headers=headers).status_code == 400

    def test_admin_can_pause_any_subscription(self, client, admin_user, make_subscription):
        sub = make_subscription(status="active")
        headers = auth_headers(token_for(admin_user))

        response = client.post(f"/api/admin/subscriptions/{sub.id}/pause", headers=headers)
        assert response.status_code == 200
        assert response.get_json()["data"]["status"] == "paused"

        response = client.post(f"/api/admin/subscriptions/{sub.id}/resume", headers=headers)
        assert response.get_json()["data"]["status"] == "active"

    def test_admin_still_bound_by_lifecycle(self, client, admin_user, make_subscription):
        sub = make_subscription(status="pending")
        response = client.post(f"/api/admin/subscriptions/{sub.id}/pause", headers=auth_headers(token_for(admin_user)))
        assert response.status_code == 400

    def test_deliveries_for_date_and_update(self, client, admin_user, make_subscription, services, db_session):
        sub = make_subscription(status="pending")
        services.subscriptions.activate(sub.id)
        headers = auth_headers(token_for(admin_user))

        data = client.get(f"/api/admin/deliveries?date={sub.start_date.isoformat()}", headers=headers).get_json()["data"]
        assert len(data) == 1
        delivery_id = data[0]["id"]

        response = client.put(f"/api/admin/deliveries/{delivery_id}", json={"status": "delivered"}, headers=headers)
        assert response.status_code == 200
        assert db_session.get(DeliverySchedule, delivery_id).status == "delivered"

        assert client.put(f"/api/admin/deliveries/{delivery_id}", json={"status": "lost"},
                          headers=headers).status_code == 400
        assert client.put("/api/admin/deliveries/999999", json={"status": "delivered"},
                          headers=headers).status_code == 404


# =============================================================================
# WEBHOOK
# =============================================================================

class TestWebhook:
    def test_valid_capture_activates(self, client, make_subscription, db_session, gateway):
        sub = make_subscription(status="pending", order_id="order_hook_1")
        body, headers = signed_webhook("payment.captured", captured_payload("order_hook_1"))

        response = client.post(WEBHOOK_URL, data=body, headers=headers)

        assert response.status_code == 200
        assert response.get_json() == {"success": True, "message": "Webhook received", "outcome": "applied"}
        db_session.expire_all()
        assert db_session.get(Subscription, sub.id).status == "active"

    def test_duplicate_delivery_acknowledged(self, client, make_subscription, db_session, gateway):
        sub = make_subscription(status="pending", order_id="order_hook_2")
        body, headers = signed_webhook("payment.captured", captured_payload("order_hook_2"))

        assert client.post(WEBHOOK_URL, data=body, headers=headers).status_code == 200
        assert client.post(WEBHOOK_URL, data=body, headers=headers).status_code == 200
        assert db_session.query(DeliverySchedule).filter_by(subscription_id=sub.id).count() == 30

    def test_bad_signature_is_401(self, client, make_subscription, db_session, gateway):
        sub = make_subscription(status="pending", order_id="order_hook_3")
        body, headers = signed_webhook("payment.captured", captured_payload("order_hook_3"), secret="wrong")

        response = client.post(WEBHOOK_URL, data=body, headers=headers)

        assert response.status_code == 401
        db_session.expire_all()
        assert db_session.get(Subscription, sub.id).status == "pending"

    def test_missing_signature_is_401(self, client, db_session, gateway):
        body, _ = signed_webhook("payment.captured", captured_payload("order_x"))
        response = client.post(WEBHOOK_URL, data=body, headers={"Content-Type": "application/json"})
        assert response.status_code == 401

    def test_unknown_order_still_200(self, client, db_session, gateway):
        body, headers = signed_webhook("payment.captured", captured_payload("order_ghost"))
        response = client.post(WEBHOOK_URL, data=body, headers=headers)

        assert response.status_code == 200
        assert response.get_json()["outcome"] == "ignored"

    def test_processing_failure_still_200(self, client, make_subscription, services, gateway, monkeypatch):
        make_subscription(status="pending", order_id="order_hook_4")

        def boom(subscription_id):
            raise RuntimeError("storage offline")

        monkeypatch.setattr(services.subscriptions, "activate", boom)
        body, headers = signed_webhook("payment.captured", captured_payload("order_hook_4"))

        response = client.post(WEBHOOK_URL, data=body, headers=headers)

        assert response.status_code == 200
        assert response.get_json()["success"] is False
        assert response.get_json()["outcome"] == "failed"

    def test_signed_garbage_still_200(self, client, db_session, gateway):
        from app.services.payment_gateway import compute_webhook_signature
        from conftest import WEBHOOK_SECRET

        body = b"{not json"
        headers = {"X-Razorpay-Signature": compute_webhook_signature(WEBHOOK_SECRET, body)}

        response = client.post(WEBHOOK_URL, data=body, headers=headers)
        assert response.status_code == 200
        assert response.get_json()["success"] is False


# =============================================================================
# SYSTEM
# =============================================================================

def test_health(client, db_session):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.get_json()
    assert body["checks"]["database"]["status"] == "healthy"
    assert body["status"] in ("healthy", "degraded")


def test_version(client):
    assert client.get("/version").get_json()["api_version"] == "1.0.0"
