"""Payment gateways and provider signature checks."""

import asyncio
import hashlib
import hmac
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

import stripe

from jobportal.config import GATEWAY_TYPE, PaymentSettings
from jobportal.utils.errors import PaymentProviderError, ValidationError
from jobportal.utils.utils import random_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChargeRequest:
    amount: int
    currency: str
    payment_method: str
    email: str
    description: str = ""


@dataclass(frozen=True)
class ChargeResult:
    success: bool
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None


class PaymentGateway(ABC):
    """Capability to charge a customer for a plan."""

    name = "base"

    @abstractmethod
    async def charge(self, request: ChargeRequest) -> ChargeResult:
        """Attempt the charge.

        Args:
            request: Amount in whole currency units, currency, method and payer

        Returns:
            The outcome. A decline is a normal result, not an exception.

        Raises:
            PaymentProviderError: If the provider could not process the request at all
        """
        pass

    def check_payment_method(self, payment_method: str) -> None:
        """Reject a payment method this gateway cannot charge, before anything is stored."""


class SimulatedPaymentGateway(PaymentGateway):
    """Gateway that approves or declines according to a fixed policy."""

    name = "simulated"

    def __init__(self, approve: bool = True, policy: Optional[Callable[[ChargeRequest], bool]] = None):
        self.approve = approve
        self.policy = policy

    async def charge(self, request: ChargeRequest) -> ChargeResult:
        approved = self.policy(request) if self.policy else self.approve
        if not approved:
            logger.info(f"Simulated charge of {request.amount} {request.currency} for {request.email} declined")
            return ChargeResult(success=False, failure_reason="Payment processing failed")
        return ChargeResult(success=True, transaction_id=random_token("txn"))


class StripePaymentGateway(PaymentGateway):
    """Gateway that confirms a Stripe PaymentIntent immediately."""

    name = "stripe"

    def __init__(self, api_key: str):
        self.api_key = api_key

    def check_payment_method(self, payment_method: str) -> None:
        # Confirming an intent needs a PaymentMethod id, not a type like "card"
        if not payment_method or not payment_method.startswith("pm_"):
            raise ValidationError(
                "Stripe payments need a PaymentMethod id", details={"payment_method": payment_method}
            )

    async def charge(self, request: ChargeRequest) -> ChargeResult:
        self.check_payment_method(request.payment_method)
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                api_key=self.api_key,
                amount=request.amount * 100,  # Stripe wants minor units
                currency=request.currency.lower(),
                payment_method=request.payment_method,
                confirm=True,
                receipt_email=request.email,
                description=request.description,
                automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
            )
        except stripe.CardError as e:
            logger.info(f"Stripe declined charge for {request.email}: {e.user_message}")
            return ChargeResult(success=False, failure_reason=e.user_message or "Card declined")
        except stripe.StripeError as e:
            logger.error(f"Stripe error while charging {request.email}: {e}")
            raise PaymentProviderError(self.name, str(e)) from e

        if intent["status"] != "succeeded":
            return ChargeResult(success=False, transaction_id=intent["id"], failure_reason=intent["status"])
        return ChargeResult(success=True, transaction_id=intent["id"])


def build_payment_gateway(payment_settings: PaymentSettings) -> PaymentGateway:
    """Create the gateway selected in configuration."""
    if payment_settings.gateway == GATEWAY_TYPE.STRIPE:
        api_key = payment_settings.stripe_secret_key.get_secret_value()
        if not api_key:
            raise ValueError("STRIPE_SECRET_KEY is required when PAYMENT_GATEWAY=stripe")
        return StripePaymentGateway(api_key)
    return SimulatedPaymentGateway(approve=payment_settings.simulated_approve)


def sign_order(order_id: str, payment_id: str, secret: str) -> str:
    """Provider signature for a paid order: hex HMAC-SHA256 over ``order_id|payment_id``."""
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_order_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    if not secret:
        # No secret means no signature can ever be valid
        logger.error("Order signature secret is not configured")
        return False
    expected = sign_order(order_id, payment_id, secret)
    return hmac.compare_digest(expected, signature or "")
