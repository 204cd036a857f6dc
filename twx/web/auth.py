"""Actor resolution for the TWX API.

Session tokens are issued by an external login flow (or ``twx session
issue``) and stored in Redis, with an in-memory fallback for development
when Redis is missing. Every request resolves its token to an ``Actor``.
"""

from __future__ import annotations

import json
import logging
import secrets
from datetime import datetime, timedelta, timezone

import redis
from fastapi import Cookie, Header

from twx.config import get_config
from twx.errors import UnauthenticatedError
from twx.models import Actor

logger = logging.getLogger(__name__)

# In-memory fallback for development when Redis is missing
_memory_sessions: dict[str, dict] = {}


def get_redis_client() -> redis.Redis:
    """Get Redis client for session storage."""
    return redis.from_url(get_config().auth.redis_url, decode_responses=True)


def _session_key(session_token: str) -> str:
    return f"session:{session_token}"


def create_session(
    user_id: str, email: str | None = None, display_name: str | None = None
) -> str:
    """Create a new session for an identified user.

    Args:
        user_id: Stable user id recorded on every workflow change
        email: Optional email
        display_name: Optional name shown in audit views

    Returns:
        str: Session token
    """
    expiry_hours = get_config().auth.session_expiry_hours
    session_token = secrets.token_urlsafe(32)
    now = datetime.now(timezone.utc)

    session_data = {
        "user_id": user_id,
        "email": email,
        "display_name": display_name,
        "created_at": now.isoformat(),
        "expires_at": (now + timedelta(hours=expiry_hours)).isoformat(),
    }

    try:
        redis_client = get_redis_client()
        redis_client.setex(
            _session_key(session_token), expiry_hours * 3600, json.dumps(session_data)
        )
    except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError):
        logger.warning("Redis unavailable, using in-memory session storage")
        _memory_sessions[session_token] = session_data

    return session_token


def validate_session(session_token: str | None) -> dict | None:
    """Validate session token and return session data if valid.

    Args:
        session_token: Session token from cookie or bearer header

    Returns:
        Optional[dict]: Session data if valid, None otherwise
    """
    if not session_token:
        return None

    try:
        redis_client = get_redis_client()
        session_data_str = redis_client.get(_session_key(session_token))
    except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError):
        session_data = _memory_sessions.get(session_token)
        if session_data and _expired(session_data):
            del _memory_sessions[session_token]
            return None
        return session_data

    if not session_data_str:
        return None

    try:
        session_data = json.loads(session_data_str)
        if _expired(session_data):
            redis_client.delete(_session_key(session_token))
            return None
        return session_data
    except (json.JSONDecodeError, KeyError, ValueError):
        logger.warning("Discarding malformed session data")
        redis_client.delete(_session_key(session_token))
        return None


def logout(session_token: str | None) -> None:
    """Invalidate a session."""
    if not session_token:
        return
    try:
        get_redis_client().delete(_session_key(session_token))
    except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError):
        _memory_sessions.pop(session_token, None)


def _expired(session_data: dict) -> bool:
    expires_at = datetime.fromisoformat(session_data["expires_at"])
    return datetime.now(timezone.utc) > expires_at


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(
    session: str | None = Cookie(default=None),
    authorization: str | None = Header(default=None),
) -> Actor | None:
    """Resolve the request's actor, or None when no valid session is presented."""
    auth_config = get_config().auth
    if auth_config.disabled:
        return Actor(id=auth_config.default_user_id)

    token = _bearer_token(authorization) or session
    session_data = validate_session(token)
    if not session_data or not session_data.get("user_id"):
        return None

    return Actor(
        id=session_data["user_id"],
        email=session_data.get("email"),
        display_name=session_data.get("display_name"),
    )


def require_actor(
    session: str | None = Cookie(default=None),
    authorization: str | None = Header(default=None),
) -> Actor:
    """Dependency to require a resolved actor on routes.

    Raises:
        UnauthenticatedError: If no valid session is presented
    """
    actor = get_current_user(session=session, authorization=authorization)
    if actor is None:
        raise UnauthenticatedError()
    return actor
