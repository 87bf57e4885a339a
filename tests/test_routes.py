"""HTTP routes, using in-memory stores behind dependency overrides."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from jobportal.auth import current_optional_user
from jobportal.dependencies import (
    get_entitlement_engine,
    get_lifecycle_controller,
    get_notifier,
    get_payment_repository,
    get_plan_catalog,
    get_subscription_repository,
)
from jobportal.security import verify_security_admin
from jobportal.services.payment_gateway import SimulatedPaymentGateway, sign_order
from jobportal.start import app

from tests.conftest import ORDER_SECRET

API_KEY = {"X-API-Key": "test-api-key"}
PURCHASE = {"email": "a@x.com", "fullName": "A", "planId": "standard", "paymentMethod": "card"}


@pytest.fixture
def client(controller, engine, catalog, notifier, payments, subscriptions):
    app.dependency_overrides.update(
        {
            get_lifecycle_controller: lambda: controller,
            get_entitlement_engine: lambda: engine,
            get_plan_catalog: lambda: catalog,
            get_notifier: lambda: notifier,
            get_payment_repository: lambda: payments,
            get_subscription_repository: lambda: subscriptions,
        }
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def login_as(email, user_id="user1", is_superuser=False):
    user = SimpleNamespace(id=user_id, email=email, is_superuser=is_superuser)
    app.dependency_overrides[current_optional_user] = lambda: user
    return user


class TestPlans:
    def test_lists_plans_in_camel_case(self, client):
        response = client.get("/subscription/plans")
        assert response.status_code == 200
        plans = response.json()
        assert [plan["id"] for plan in plans] == ["standard", "basic", "pro", "premium"]
        assert plans[0]["durationDays"] == 365


class TestCreateRoute:
    def test_purchase_returns_subscription_and_sends_receipt(self, client, notifier):
        response = client.post("/subscription/create", json=PURCHASE)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["subscription"]["status"] == "active"
        assert body["subscription"]["amount"] == 699
        assert body["payment"]["status"] == "completed"
        assert notifier.sent[0][0] == "a@x.com"
        assert "Standard" in notifier.sent[0][1]

    def test_declined_payment_is_402_with_payment_id(self, client, controller, payments):
        controller.gateway = SimulatedPaymentGateway(approve=False)

        response = client.post("/subscription/create", json=PURCHASE)

        assert response.status_code == 402
        body = response.json()
        assert body["error"] == "PaymentDeclined"
        assert body["details"]["payment_id"] in payments.records

    def test_missing_fields_is_400(self, client):
        response = client.post("/subscription/create", json={"planId": "standard"})
        assert response.status_code == 400
        assert response.json()["message"] == "Missing required fields: email, fullName"

    def test_unknown_plan_is_404(self, client):
        response = client.post("/subscription/create", json={**PURCHASE, "planId": "platinum"})
        assert response.status_code == 404

    def test_duplicate_is_409(self, client):
        client.post("/subscription/create", json=PURCHASE)
        response = client.post("/subscription/create", json=PURCHASE)
        assert response.status_code == 409

    def test_receipt_failure_does_not_fail_purchase(self, client, notifier):
        notifier.fail = True
        response = client.post("/subscription/create", json=PURCHASE)
        assert response.status_code == 201


class TestOrderRoutes:
    def test_order_then_verify(self, client):
        response = client.post("/subscription/order", json={"planId": "pro", "email": "b@x.com", "name": "B"})
        assert response.status_code == 201
        order = response.json()
        assert order["amount"] == 999
        assert order["keyId"] == "rzp_test_key"
        assert order["planDetails"]["id"] == "pro"

        signature = sign_order(order["orderId"], "pay_1", ORDER_SECRET)
        response = client.post(
            "/subscription/verify",
            json={"providerOrderId": order["orderId"], "providerPaymentId": "pay_1", "providerSignature": signature},
        )
        assert response.status_code == 200
        assert response.json()["subscription"]["id"] == order["subscriptionId"]
        assert response.json()["subscription"]["status"] == "active"

    def test_bad_signature_is_400(self, client):
        order = client.post("/subscription/order", json={"email": "b@x.com", "name": "B"}).json()
        response = client.post(
            "/subscription/verify",
            json={"providerOrderId": order["orderId"], "providerPaymentId": "pay_1", "providerSignature": "bad"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "SignatureInvalid"


class TestStatusRoute:
    def test_requires_credentials(self, client):
        response = client.get("/subscription/status", params={"email": "a@x.com"})
        assert response.status_code == 401

    def test_api_key_may_query_anyone(self, client):
        client.post("/subscription/create", json=PURCHASE)

        response = client.get("/subscription/status", params={"email": "a@x.com"}, headers=API_KEY)

        assert response.status_code == 200
        body = response.json()
        assert body["hasActiveSubscription"] is True
        assert body["subscription"]["plan"] == "standard"
        assert body["subscription"]["daysRemaining"] == 365

    def test_invalid_api_key_is_401(self, client):
        response = client.get("/subscription/status", params={"email": "a@x.com"}, headers={"X-API-Key": "wrong"})
        assert response.status_code == 401

    def test_user_may_query_own_email(self, client):
        login_as("a@x.com")
        response = client.get("/subscription/status", params={"email": "A@x.com"})
        assert response.status_code == 200
        assert response.json() == {"hasActiveSubscription": False, "subscription": None}

    def test_user_may_not_query_others(self, client):
        login_as("a@x.com")
        response = client.get("/subscription/status", params={"email": "b@x.com"})
        assert response.status_code == 403

    def test_superuser_may_query_anyone(self, client):
        login_as("admin@x.com", is_superuser=True)
        response = client.get("/subscription/status", params={"userId": "someone"})
        assert response.status_code == 200

    def test_identity_required(self, client):
        response = client.get("/subscription/status", headers=API_KEY)
        assert response.status_code == 400

    def test_expired_subscription_reported(self, client, clock):
        client.post("/subscription/create", json=PURCHASE)
        clock.advance(days=400)

        body = client.get("/subscription/status", params={"email": "a@x.com"}, headers=API_KEY).json()

        assert body["hasActiveSubscription"] is False
        assert body["subscription"]["status"] == "expired"
        assert body["subscription"]["daysRemaining"] == 0


class TestCancelAndHistory:
    def test_owner_cancels_with_session(self, client, users):
        user = users.add("a@x.com")
        subscription_id = client.post("/subscription/create", json=PURCHASE).json()["subscription"]["id"]
        login_as("a@x.com", user_id=user.id)

        response = client.post(f"/subscription/{subscription_id}/cancel")

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    def test_other_user_cannot_cancel(self, client):
        subscription_id = client.post("/subscription/create", json=PURCHASE).json()["subscription"]["id"]
        login_as("b@x.com", user_id="user9")

        response = client.post(f"/subscription/{subscription_id}/cancel")

        assert response.status_code == 403

    def test_history(self, client):
        client.post("/subscription/create", json=PURCHASE)
        response = client.get("/subscription/history", params={"email": "a@x.com"}, headers=API_KEY)
        assert response.status_code == 200
        assert len(response.json()) == 1


class TestPaymentHistory:
    def test_paginates(self, client, controller):
        controller.gateway = SimulatedPaymentGateway(approve=False)
        for _ in range(3):
            client.post("/subscription/create", json=PURCHASE)

        response = client.get("/payments/history", params={"email": "a@x.com", "limit": 2}, headers=API_KEY)

        body = response.json()
        assert len(body["payments"]) == 2
        assert body["pagination"] == {"total": 3, "page": 1, "limit": 2, "pages": 2}

    def test_listing_everyone_needs_trust(self, client):
        login_as("a@x.com")
        assert client.get("/payments/history").status_code == 403

    def test_bad_query_is_400(self, client):
        response = client.get("/payments/history", params={"page": 0}, headers=API_KEY)
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"


class TestAdminRoutes:
    def test_requires_superuser(self, client):
        assert client.get("/admin/subscriptions").status_code == 401

    def test_lists_and_counts(self, client):
        client.post("/subscription/create", json=PURCHASE)
        app.dependency_overrides[verify_security_admin] = lambda: None

        listing = client.get("/admin/subscriptions", params={"status": "active"}).json()
        counts = client.get("/admin/subscriptions/count").json()

        assert listing["total"] == 1
        assert listing["subscriptions"][0]["email"] == "a@x.com"
        assert counts["active"] == 1
        assert counts["total"] == 1


class TestHealth:
    def test_healthy(self, client):
        with patch("jobportal.routers.health.check_connection", AsyncMock(return_value=True)):
            response = client.get("/health/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_unhealthy_is_503(self, client):
        with patch("jobportal.routers.health.check_connection", AsyncMock(return_value=False)):
            response = client.get("/health/")
        assert response.status_code == 503
        assert response.json()["checks"][0]["name"] == "database"
