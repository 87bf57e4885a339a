import hmac
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import APIKeyHeader

from jobportal.auth import current_optional_user, current_superuser
from jobportal.config import settings
from jobportal.schemas.identity import ByUserId, Identity, normalize_email
from jobportal.schemas.users import User
from jobportal.utils.errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)


API_KEY_NAME = "X-API-Key"
api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=False)


@dataclass(frozen=True)
class Caller:
    """Who is making the request. Trusted callers may act for any identity."""

    trusted: bool
    user: Optional[User] = None


def api_key_valid(api_key: Optional[str]) -> bool:
    expected = settings.api.api_key.get_secret_value()
    if not api_key or not expected:
        return False
    return hmac.compare_digest(api_key, expected)


async def get_caller(
    api_key: Optional[str] = Depends(api_key_header),
    user: Optional[User] = Depends(current_optional_user),
) -> Caller:
    """Resolve the caller from an API key or the session user."""
    if api_key_valid(api_key):
        return Caller(trusted=True)
    if api_key is not None:
        logger.warning("Request presented an invalid API key")
    if user is None:
        raise Unauthorized()
    return Caller(trusted=user.is_superuser, user=user)


def authorize_identity(caller: Caller, identity: Identity) -> None:
    """Allow trusted callers any identity and users only their own."""
    if caller.trusted:
        return
    user = caller.user
    if isinstance(identity, ByUserId):
        allowed = identity.user_id == str(user.id)
    else:
        allowed = identity.email == normalize_email(user.email)
    if not allowed:
        raise Forbidden()


async def verify_security_admin(_=Depends(current_superuser)):
    """Verifies that the request is properly authenticated with admin privileges."""
    pass
