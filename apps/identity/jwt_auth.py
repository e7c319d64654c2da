"""
JWT bearer token utilities for the task tracker.

Provides token issuance, verification and Authorization header parsing
for stateless authentication. There is no issued-token or blacklist store:
expiry and the password watermark are the only ways a token stops working.
"""
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

import jwt
from django.conf import settings

from apps.core.clock import resolve_now
from apps.core.exceptions import InvalidToken, MalformedAuth, MissingAuth
from .models import UserRole


# JWT Configuration
JWT_SECRET = os.getenv('JWT_SECRET', settings.SECRET_KEY)
JWT_ALGORITHM = 'HS256'
JWT_ISSUER = getattr(settings, 'JWT_ISSUER', 'task-tracker-api')
JWT_AUDIENCE = getattr(settings, 'JWT_AUDIENCE', 'task-tracker-api-users')
TOKEN_EXPIRE_DAYS = getattr(settings, 'JWT_EXPIRE_DAYS', 7)

BEARER_PREFIX = 'Bearer '


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims carried by a bearer token."""
    subject_id: UUID
    role: UserRole
    issued_at: datetime
    expires_at: datetime


def token_ttl() -> timedelta:
    return timedelta(days=TOKEN_EXPIRE_DAYS)


def issue_token(subject_id: UUID, role: str, now: Optional[datetime] = None) -> str:
    """
    Create a signed bearer token for ``subject_id``.

    Contains the subject, role, issuer and audience.
    Expires TOKEN_EXPIRE_DAYS after ``now`` (defaults to the clock).
    """
    issued_at = resolve_now(now)
    payload = {
        'sub': str(subject_id),
        'role': UserRole(role).value,
        'iat': issued_at,
        'exp': issued_at + token_ttl(),
        'iss': JWT_ISSUER,
        'aud': JWT_AUDIENCE,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> TokenClaims:
    """
    Decode and validate a bearer token.

    Raises InvalidToken for every failure: bad signature, malformed token,
    expired, wrong issuer/audience, or unusable claims. Callers are not told
    which one it was.
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            issuer=JWT_ISSUER,
            audience=JWT_AUDIENCE,
            options={'require': ['sub', 'role', 'iat', 'exp']},
        )
    except jwt.InvalidTokenError:
        raise InvalidToken()

    try:
        return TokenClaims(
            subject_id=UUID(payload['sub']),
            role=UserRole(payload['role']),
            issued_at=datetime.fromtimestamp(payload['iat'], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload['exp'], tz=timezone.utc),
        )
    except (ValueError, TypeError):
        raise InvalidToken()


def extract_bearer(auth_header: Optional[str]) -> str:
    """
    Pull the token out of an ``Authorization: Bearer <token>`` header.

    Raises MissingAuth when there is no header, MalformedAuth when the
    scheme is wrong or the token part is empty.
    """
    if auth_header is None or not auth_header.strip():
        raise MissingAuth()

    if not auth_header.startswith(BEARER_PREFIX):
        raise MalformedAuth()

    token = auth_header[len(BEARER_PREFIX):].strip()
    if not token:
        raise MalformedAuth("Token is required")

    return token
