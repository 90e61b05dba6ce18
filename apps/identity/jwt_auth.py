"""
JWT Authentication utilities for Task Nexus.

Tokens are HS256-signed and carry the user id, issue time and expiry.
Clients send them in the ``Authorization: Bearer <token>`` header, which
keeps the API stateless and compatible with AWS Lambda.
"""
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID
from django.conf import settings


JWT_ALGORITHM = 'HS256'
BEARER_PREFIX = 'bearer '


def _secret() -> str:
    return settings.JWT_SECRET


def create_access_token(user_id: UUID) -> str:
    """
    Create an access token for a user.

    Expires after JWT_EXPIRATION_HOURS (24 by default).
    """
    now = datetime.now(timezone.utc)
    payload = {
        'user_id': str(user_id),
        'exp': now + timedelta(hours=settings.JWT_EXPIRATION_HOURS),
        'iat': now,
    }
    return jwt.encode(payload, _secret(), algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """
    Decode and validate a JWT token.

    Returns:
        Decoded payload if valid, None if invalid/expired.
    """
    try:
        return jwt.decode(token, _secret(), algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def get_user_id_from_token(token: str) -> Optional[UUID]:
    """
    Extract user_id from a valid token.

    Returns:
        UUID of user if token valid, None otherwise.
    """
    payload = decode_token(token)
    if payload and 'user_id' in payload:
        try:
            return UUID(payload['user_id'])
        except ValueError:
            return None
    return None


def get_bearer_token(request) -> Optional[str]:
    header = request.headers.get('Authorization', '')
    if not header.lower().startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX):].strip()
    return token or None


def get_user_id_from_request(request) -> Optional[UUID]:
    """User id from the request's bearer token, or None for anonymous requests."""
    token = get_bearer_token(request)
    if token is None:
        return None
    return get_user_id_from_token(token)
