"""
Bearer authentication flow.

authenticate() walks a request's Authorization header through
extract -> verify -> load identity -> watermark check and ends in exactly
one terminal outcome: Authenticated, or Rejected with a distinct kind.
The API layer collapses every rejection to 401; the kinds stay separate
for logging and tests.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from django.http import HttpRequest

from apps.core.clock import resolve_now
from apps.core.exceptions import AuthenticationFailed, AuthFailure
from .jwt_auth import extract_bearer, verify_token
from .models import User, UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Authenticated:
    user: User
    role: UserRole

    @property
    def user_id(self):
        return self.user.id


@dataclass(frozen=True)
class Rejected:
    kind: str


AuthResult = Union[Authenticated, Rejected]


def authenticate(auth_header: Optional[str], now: Optional[datetime] = None) -> AuthResult:
    """
    Resolve an Authorization header to an identity.

    Never raises for bad credentials; returns Rejected(kind) instead.
    On success the identity's last_login is refreshed.
    """
    try:
        token = extract_bearer(auth_header)
        claims = verify_token(token)
    except AuthenticationFailed as exc:
        logger.warning(f"Authentication rejected: {exc.kind}")
        return Rejected(exc.kind)

    user = User.objects.filter(id=claims.subject_id).first()
    if user is None:
        logger.warning(f"Authentication rejected: {AuthFailure.UNKNOWN_SUBJECT} (sub={claims.subject_id})")
        return Rejected(AuthFailure.UNKNOWN_SUBJECT)

    if not user.is_active:
        logger.warning(f"Authentication rejected: {AuthFailure.DEACTIVATED} (user={user.id})")
        return Rejected(AuthFailure.DEACTIVATED)

    if user.changed_password_after(claims.issued_at):
        logger.warning(f"Authentication rejected: {AuthFailure.STALE_CREDENTIAL} (user={user.id})")
        return Rejected(AuthFailure.STALE_CREDENTIAL)

    # Role comes from the stored identity, so a demotion applies immediately.
    User.objects.filter(id=user.id).update(last_login=resolve_now(now))

    return Authenticated(user=user, role=UserRole(user.role))


def require_auth(request: HttpRequest) -> Authenticated:
    """
    Require a valid bearer token. Raises AuthenticationFailed (401) otherwise.

    The result is also stored on ``request.auth`` for middleware.
    """
    result = authenticate(request.headers.get('Authorization'))
    if isinstance(result, Rejected):
        raise AuthenticationFailed(result.kind)
    request.auth = result
    return result
