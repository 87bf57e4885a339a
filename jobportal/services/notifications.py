"""Outbound email notifications.

Delivery is best effort: nothing in this module raises to its caller.
"""

import logging
from abc import ABC, abstractmethod

from jobportal.schemas.payments import Payment
from jobportal.schemas.plans import Plan
from jobportal.schemas.subscriptions import Subscription

logger = logging.getLogger(__name__)


class EmailNotifier(ABC):
    @abstractmethod
    async def send_email(self, to: str, subject: str, body: str) -> bool:
        pass


class LoggingEmailNotifier(EmailNotifier):
    """Notifier that writes messages to the log instead of sending them."""

    async def send_email(self, to: str, subject: str, body: str) -> bool:
        logger.info(f"Sending email to {to}\nSubject: {subject}\n{body}")
        return True


def render_receipt(plan: Plan, subscription: Subscription, payment: Payment) -> tuple[str, str]:
    subject = f"Your {plan.name} Subscription is Confirmed!"
    body = f"""Dear {subscription.full_name},

Thank you for subscribing to our {plan.name} plan!

Your subscription is now active and will be valid until {subscription.end_date:%d %b %Y}.

Subscription Details:
- Plan: {plan.name}
- Amount: {subscription.amount} {subscription.currency}
- Start Date: {subscription.start_date:%d %b %Y}
- End Date: {subscription.end_date:%d %b %Y}
- Transaction ID: {payment.transaction_id}

Thank you for choosing our service!

Best regards,
The Job Portal Team
"""
    return subject, body


async def send_subscription_receipt(
    notifier: EmailNotifier, plan: Plan, subscription: Subscription, payment: Payment
) -> bool:
    """Email the purchase confirmation. Failures are logged and reported as False."""
    subject, body = render_receipt(plan, subscription, payment)
    try:
        sent = await notifier.send_email(subscription.email, subject, body)
    except Exception as e:
        logger.error(f"Failed to send receipt for subscription {subscription.id}: {e}", exc_info=True)
        return False

    if not sent:
        logger.warning(f"Receipt for subscription {subscription.id} was not delivered")
    return sent
