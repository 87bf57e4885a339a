from logging import getLogger
from typing import Optional

from beanie import PydanticObjectId
from fastapi import Depends, Request
from fastapi_users import BaseUserManager, FastAPIUsers
from fastapi_users.authentication import AuthenticationBackend, CookieTransport, JWTStrategy
from fastapi_users_db_beanie import ObjectIDIDMixin

from jobportal.config import settings
from jobportal.db import get_user_db
from jobportal.dependencies import get_entitlement_engine
from jobportal.schemas.users import User
from jobportal.services.entitlement import EntitlementEngine
from jobportal.utils.errors import PortalError

logger = getLogger(__name__)


class UserManager(ObjectIDIDMixin, BaseUserManager[User, PydanticObjectId]):
    reset_password_token_secret = settings.AUTH_SECRET_KEY
    verification_token_secret = settings.AUTH_SECRET_KEY

    def __init__(self, user_db, entitlement: Optional[EntitlementEngine] = None, **kwargs):
        super().__init__(user_db, **kwargs)
        self.entitlement = entitlement

    async def on_after_register(self, user: User, request: Optional[Request] = None):
        logger.info(f"User {user.id} has registered.")
        if self.entitlement is None:
            return
        # A guest who already paid gets their subscription on the new account
        try:
            await self.entitlement.link_registered_user(str(user.id), user.email)
        except PortalError as e:
            logger.warning(f"Could not link subscriptions for user {user.id}: {e.message}")

    async def on_after_forgot_password(self, user: User, token: str, request: Optional[Request] = None):
        logger.info(f"User {user.id} has forgot their password. Reset token: {token}")

    async def on_after_request_verify(self, user: User, token: str, request: Optional[Request] = None):
        logger.info(f"Verification requested for user {user.id}. Verification token: {token}")


async def get_user_manager(
    user_db=Depends(get_user_db),
    entitlement: EntitlementEngine = Depends(get_entitlement_engine),
):
    yield UserManager(user_db, entitlement=entitlement)


cookie_transport = CookieTransport(cookie_name="jobportalauth", cookie_max_age=3600, cookie_secure=False)


def get_jwt_strategy() -> JWTStrategy:
    return JWTStrategy(secret=settings.AUTH_SECRET_KEY, lifetime_seconds=3600)


auth_backend = AuthenticationBackend(
    name="jwt",
    transport=cookie_transport,
    get_strategy=get_jwt_strategy,
)

fastapi_users = FastAPIUsers[User, PydanticObjectId](
    get_user_manager,
    [auth_backend],
)

# Define dependencies for route protection
current_optional_user = fastapi_users.current_user(active=True, optional=True)
current_superuser = fastapi_users.current_user(active=True, superuser=True)
