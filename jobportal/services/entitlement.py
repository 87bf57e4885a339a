"""Entitlement checks over stored subscriptions.

Expiry is lazy: an active subscription whose end date has passed is moved to
``expired`` the next time it is read here. There is no background sweep, so a
subscription that is never read keeps its stored ``active`` status past its
end date. Every read through this module reports the correct entitlement.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from jobportal.domains.subscriptions.repository import SubscriptionRepository
from jobportal.domains.users.repository import UserDirectory
from jobportal.schemas.identity import ByEmail, ByUserId, Identity
from jobportal.schemas.subscriptions import Subscription, SubscriptionStatus
from jobportal.schemas.users import UserRecord
from jobportal.utils.errors import StorageUnavailable
from jobportal.utils.utils import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActiveEntitlement:
    subscription: Subscription
    days_remaining: int


@dataclass(frozen=True)
class SubscriptionStatusView:
    has_active_subscription: bool
    subscription: Optional[Subscription] = None
    days_remaining: int = 0


class EntitlementEngine:
    """Decides whether an identity currently has paid access."""

    def __init__(
        self,
        subscriptions: SubscriptionRepository,
        users: UserDirectory,
        clock: Callable = utcnow,
    ):
        self.subscriptions = subscriptions
        self.users = users
        self.clock = clock

    async def get_active_subscription(self, identity: Identity) -> Optional[ActiveEntitlement]:
        """Return the identity's current subscription, expiring it if its window has closed.

        Only records stored as ``active`` are considered; pending and expired
        records never grant access.
        """
        subscription = await self.subscriptions.find_latest_active(identity)
        if subscription is None:
            return None

        now = self.clock()
        if subscription.is_active(now):
            return ActiveEntitlement(subscription, subscription.days_remaining(now))

        await self._expire(subscription)
        return None

    async def get_status(self, identity: Identity) -> SubscriptionStatusView:
        """Entitlement plus the subscription worth showing: the active one, else the latest."""
        active = await self.get_active_subscription(identity)
        if active:
            return SubscriptionStatusView(True, active.subscription, active.days_remaining)

        latest = await self.subscriptions.find_latest(identity)
        if latest and latest.status == SubscriptionStatus.ACTIVE and not latest.is_active(self.clock()):
            # The expiry write did not land, report what we know
            latest = latest.model_copy(update={"status": SubscriptionStatus.EXPIRED})
        return SubscriptionStatusView(False, latest, 0)

    async def history(self, identity: Identity) -> List[Subscription]:
        await self.get_active_subscription(identity)
        return await self.subscriptions.list_for_identity(identity)

    async def link_registered_user(self, user_id: str, email: str) -> Optional[Subscription]:
        """Attach an active guest subscription to a newly registered user."""
        active = await self.get_active_subscription(ByEmail(email))
        if active is None:
            return None

        subscription = active.subscription
        if subscription.user_id != user_id:
            linked = await self.subscriptions.transition(
                subscription.id, SubscriptionStatus.ACTIVE, SubscriptionStatus.ACTIVE, user_id=user_id
            )
            subscription = linked or subscription

        await self.users.set_has_active_subscription(user_id, True, subscription.id)
        logger.info(f"Linked subscription {subscription.id} to user {user_id}")
        return subscription

    async def mark_user_active(self, subscription: Subscription) -> None:
        """Set the cached flag on the subscription's user, if there is one. Best effort."""
        try:
            user = await self._owner(subscription)
            if user is None:
                return
            await self.users.set_has_active_subscription(user.id, True, subscription.id)
        except StorageUnavailable as e:
            logger.warning(f"Could not set subscription flag for {subscription.email}: {e.message}")

    async def clear_user_flag(self, subscription: Subscription) -> None:
        """Clear the cached flag if it still points at this subscription. Best effort."""
        try:
            user = await self._owner(subscription)
            if user is None:
                return
            if user.subscription_id not in (None, subscription.id):
                return
            await self.users.set_has_active_subscription(user.id, False)
        except StorageUnavailable as e:
            logger.warning(f"Could not clear subscription flag for {subscription.email}: {e.message}")

    async def _owner(self, subscription: Subscription) -> Optional[UserRecord]:
        if subscription.user_id:
            user = await self.users.find_by_id(subscription.user_id)
            if user:
                return user
        return await self.users.find_by_email(subscription.email)

    async def _expire(self, subscription: Subscription) -> None:
        try:
            expired = await self.subscriptions.transition(
                subscription.id, SubscriptionStatus.ACTIVE, SubscriptionStatus.EXPIRED
            )
        except StorageUnavailable as e:
            logger.warning(f"Subscription {subscription.id} is past its end date but could not be expired: {e.message}")
            return

        if expired is None:
            # Another request already moved it on
            return

        logger.info(f"Subscription {subscription.id} for {subscription.email} expired on {subscription.end_date}")
        await self.clear_user_flag(expired)


def identity_matches(subscription: Subscription, identity: Identity) -> bool:
    if isinstance(identity, ByUserId):
        return subscription.user_id == identity.user_id
    return subscription.email == identity.email
