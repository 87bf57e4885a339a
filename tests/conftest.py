"""
Pytest configuration and shared fixtures.
"""
import os

# Settings are read at import time
os.environ.setdefault("API_KEY", "test-api-key")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "test-order-secret")
os.environ.setdefault("PAYMENT_GATEWAY", "simulated")
os.environ.setdefault("AUTH_SECRET_KEY", "test-auth-secret")

import pytest

from jobportal.services.entitlement import EntitlementEngine
from jobportal.services.lifecycle import SubscriptionLifecycleController
from jobportal.services.payment_gateway import SimulatedPaymentGateway
from jobportal.services.plan_catalog import PlanCatalog

from tests.fakes import (
    FixedClock,
    InMemoryPaymentRepository,
    InMemorySubscriptionRepository,
    InMemoryUserDirectory,
    RecordingNotifier,
)

ORDER_SECRET = os.environ["RAZORPAY_KEY_SECRET"]


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def subscriptions(clock):
    return InMemorySubscriptionRepository(clock)


@pytest.fixture
def payments():
    return InMemoryPaymentRepository()


@pytest.fixture
def users():
    return InMemoryUserDirectory()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def catalog():
    return PlanCatalog()


@pytest.fixture
def gateway():
    return SimulatedPaymentGateway(approve=True)


@pytest.fixture
def engine(subscriptions, users, clock):
    return EntitlementEngine(subscriptions, users, clock=clock)


@pytest.fixture
def controller(catalog, subscriptions, payments, engine, gateway, users, clock):
    return SubscriptionLifecycleController(
        catalog,
        subscriptions,
        payments,
        engine,
        gateway,
        users,
        order_secret=ORDER_SECRET,
        key_id="rzp_test_key",
        clock=clock,
    )
