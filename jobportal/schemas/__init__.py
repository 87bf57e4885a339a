"""Schema package exports."""

from .payments import Payment, PaymentDocument, PaymentRead, PaymentStatus
from .plans import Plan, PlanRead
from .subscriptions import Subscription, SubscriptionDocument, SubscriptionRead, SubscriptionStatus
