"""
Caller identity.

User tokens:  Authorization: Bearer <user_id>.<hex hmac-sha256(auth_secret, user_id)>
Operators:    X-Admin-Key: <ADMIN_API_KEY>   (only when ADMIN_API_KEY_ENABLED=true)

The identity provider that issues tokens is external; this module only
verifies them and turns the result into a Caller.
"""
import hashlib
import hmac
import logging
import re
from dataclasses import dataclass
from typing import Optional

from .core.config import settings
from .errors import AuthError

logger = logging.getLogger(__name__)

# No "/" and no leading "." so a user id is always a single artifact
# namespace segment (never "." or "..")
USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.@-]{0,63}$")


def _same_secret(a: str, b: str) -> bool:
    # compare_digest only accepts ASCII str; header values may carry anything
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


@dataclass(frozen=True)
class Caller:
    user_id: str
    is_operator: bool = False

    def can_access(self, owner_id: str) -> bool:
        return self.is_operator or self.user_id == owner_id


def sign_user_id(user_id: str, secret: Optional[str] = None) -> str:
    return hmac.new(
        (secret or settings.auth_secret).encode("utf-8"),
        user_id.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def issue_user_token(user_id: str, secret: Optional[str] = None) -> str:
    if not USER_ID_PATTERN.match(user_id):
        raise ValueError(f"Invalid user id: {user_id!r}")
    return f"{user_id}.{sign_user_id(user_id, secret)}"


def verify_user_token(token: str, secret: Optional[str] = None) -> str:
    """Return the user id carried by *token*. Raises AuthError."""
    user_id, sep, signature = token.rpartition(".")
    if not sep or not USER_ID_PATTERN.match(user_id):
        raise AuthError("Malformed token")
    if not _same_secret(sign_user_id(user_id, secret), signature):
        raise AuthError("Invalid token signature")
    return user_id


def is_valid_admin_key(admin_key: Optional[str]) -> bool:
    if not settings.admin_api_key_enabled or not settings.admin_api_key or not admin_key:
        return False
    return _same_secret(admin_key, settings.admin_api_key)


def authenticate(authorization: Optional[str], admin_key: Optional[str] = None) -> Caller:
    """
    Resolve the caller from request headers.

    Raises:
        AuthError: missing / malformed / forged bearer token
    """
    if not authorization:
        raise AuthError("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Authorization must be 'Bearer <token>'")

    user_id = verify_user_token(token.strip())
    return Caller(user_id=user_id, is_operator=is_valid_admin_key(admin_key))
