"""Error hierarchy, middleware and small helpers."""
import logging
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel
from pymongo.errors import ServerSelectionTimeoutError

from jobportal.schemas.identity import ByEmail, ByUserId, identity_from
from jobportal.schemas.payments import Payment, PaymentStatus
from jobportal.schemas.subscriptions import Subscription, SubscriptionStatus
from jobportal.services.notifications import render_receipt, send_subscription_receipt
from jobportal.services.plan_catalog import PlanCatalog
from jobportal.utils.errors import (
    PaymentDeclined,
    PortalError,
    StorageUnavailable,
    ValidationError,
    convert_exception,
)
from jobportal.utils.logging_config import RequestContextFilter
from jobportal.utils.middleware import setup_middleware
from jobportal.utils.utils import days_until

from tests.fakes import RecordingNotifier

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


class TestErrors:
    def test_to_dict(self):
        error = PaymentDeclined("Insufficient funds", "pay1")
        assert error.to_dict() == {
            "error": "PaymentDeclined",
            "message": "Payment declined: Insufficient funds",
            "status_code": 402,
            "details": {"reason": "Insufficient funds", "payment_id": "pay1"},
        }

    def test_log_includes_context(self, caplog):
        with caplog.at_level(logging.WARNING, logger="jobportal.utils.errors"):
            ValidationError("Bad input", details={"field": "email"}).log(logging.WARNING)
        assert caplog.records[0].error_type == "ValidationError"
        assert caplog.records[0].status_code == 400

    def test_convert_pydantic_error(self):
        class Body(BaseModel):
            amount: int

        with pytest.raises(Exception) as exc:
            Body(amount="lots")
        error = convert_exception(exc.value)
        assert isinstance(error, ValidationError)
        assert error.details["errors"][0]["loc"] == ["amount"]

    def test_convert_driver_error(self):
        error = convert_exception(ServerSelectionTimeoutError("no servers"))
        assert isinstance(error, StorageUnavailable)
        assert error.status_code == 503

    def test_convert_unknown_error(self):
        error = convert_exception(RuntimeError("boom"))
        assert type(error) is PortalError
        assert error.status_code == 500


class TestMiddleware:
    @pytest.fixture
    def client(self):
        app = FastAPI()
        setup_middleware(app, request_logging=True)

        @app.get("/boom")
        async def boom():
            raise RuntimeError("boom")

        @app.get("/storage")
        async def storage():
            raise ServerSelectionTimeoutError("no servers")

        @app.get("/declined")
        async def declined():
            raise PaymentDeclined("Card expired")

        @app.get("/ok")
        async def ok():
            logging.getLogger("jobportal.services.lifecycle").info("Subscription sub1 activated")
            return {"ok": True}

        return TestClient(app)

    def test_unexpected_error_is_500_json(self, client):
        response = client.get("/boom")
        assert response.status_code == 500
        assert response.json()["message"] == "boom"

    def test_driver_error_is_503(self, client):
        response = client.get("/storage")
        assert response.status_code == 503
        assert response.json()["details"]["retryable"] is True

    def test_application_error_keeps_status(self, client):
        response = client.get("/declined")
        assert response.status_code == 402
        assert response.json()["details"]["reason"] == "Card expired"

    def test_response_carries_generated_request_id(self, client):
        response = client.get("/ok")
        assert len(response.headers["X-Request-ID"]) == 32
        assert response.headers["X-Request-ID"] != client.get("/ok").headers["X-Request-ID"]

    def test_client_request_id_is_echoed(self, client):
        response = client.get("/declined", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_error_log_carries_request_context(self, client, caplog):
        with caplog.at_level(logging.WARNING, logger="jobportal.utils.errors"):
            client.get("/declined", headers={"X-Request-ID": "req-123"})

        record = next(r for r in caplog.records if getattr(r, "error_type", None) == "PaymentDeclined")
        assert record.request_id == "req-123"
        assert record.path == "/declined"

    def test_records_logged_while_serving_carry_request_id(self, client, caplog):
        caplog.handler.addFilter(RequestContextFilter())
        with caplog.at_level(logging.INFO):
            client.get("/ok", headers={"X-Request-ID": "req-456"})

        record = next(r for r in caplog.records if r.getMessage() == "Subscription sub1 activated")
        assert record.request_id == "req-456"

    def test_records_outside_a_request_are_marked(self):
        record = logging.LogRecord("jobportal", logging.INFO, __file__, 1, "startup", None, None)
        RequestContextFilter().filter(record)
        assert record.request_id == "-"


class TestIdentity:
    def test_prefers_user_id(self):
        assert identity_from("u1", "a@x.com") == ByUserId("u1")

    def test_normalizes_email(self):
        assert identity_from(None, " A@X.com ") == ByEmail("a@x.com")

    def test_requires_one(self):
        with pytest.raises(ValidationError):
            identity_from(None, "  ")


class TestDaysUntil:
    def test_rounds_partial_days_up(self):
        assert days_until(NOW + timedelta(days=1, seconds=1), NOW) == 2

    def test_exact_days(self):
        assert days_until(NOW + timedelta(days=365), NOW) == 365

    def test_past_is_zero(self):
        assert days_until(NOW - timedelta(seconds=1), NOW) == 0

    def test_naive_storage_values_are_utc(self):
        assert days_until(datetime(2025, 1, 3), NOW) == 2


def _receipt_inputs():
    plan = PlanCatalog().get_plan("standard")
    subscription = Subscription(
        id="sub1",
        email="a@x.com",
        full_name="A",
        plan_id=plan.id,
        amount=plan.price,
        currency=plan.currency,
        status=SubscriptionStatus.ACTIVE,
        start_date=NOW,
        end_date=NOW + timedelta(days=365),
    )
    payment = Payment(
        id="pay1",
        email="a@x.com",
        plan_id=plan.id,
        amount=plan.price,
        currency=plan.currency,
        status=PaymentStatus.COMPLETED,
        payment_method="card",
        transaction_id="txn_1",
    )
    return plan, subscription, payment


class TestReceipt:
    def test_render(self):
        subject, body = render_receipt(*_receipt_inputs())
        assert subject == "Your Standard Subscription is Confirmed!"
        assert "Dear A," in body
        assert "01 Jan 2026" in body
        assert "txn_1" in body

    @pytest.mark.asyncio
    async def test_send(self):
        notifier = RecordingNotifier()
        assert await send_subscription_receipt(notifier, *_receipt_inputs()) is True
        assert notifier.sent[0][0] == "a@x.com"

    @pytest.mark.asyncio
    async def test_failure_is_swallowed(self):
        assert await send_subscription_receipt(RecordingNotifier(fail=True), *_receipt_inputs()) is False
