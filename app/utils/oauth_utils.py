import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from jose import jwt, JWTError

from ..core.config import settings
from ..utils.logger import logger


def create_access_token(
    username: str,
    user_id: int,
    scope: str = "all",
    expires_hours: int = None
) -> str:
    """
    Create JWT access token

    Args:
        username: Username to encode in token
        user_id: User's database ID
        scope: Token scope
        expires_hours: Lifetime override, defaults to settings

    Returns:
        str: Signed JWT token
    """
    now = datetime.now(timezone.utc)
    expires = now + timedelta(hours=expires_hours if expires_hours is not None else settings.access_token_expire_hours)

    payload = {
        # Standard claims
        "sub": username,
        "iss": "intervai-api",
        "aud": "account",
        "iat": int(now.timestamp()),
        "exp": int(expires.timestamp()),
        "jti": str(uuid.uuid4()),

        # Custom claims
        "typ": "Bearer",
        "scope": scope,
        "preferred_username": username,
        "user_id": user_id,
    }

    encoded_jwt = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    logger.info(f"Created access token", username=username, user_id=user_id, expires=expires.isoformat())
    return encoded_jwt


def verify_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify and decode JWT access token

    Args:
        token: JWT token string

    Returns:
        Dict containing token payload, or None if invalid
    """
    if not token:
        return None
    try:
        # 'aud' is issued but not validated
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False}
        )
        logger.debug(f"Token verified", username=payload.get("preferred_username"))
        return payload
    except JWTError as e:
        logger.warning(f"Token verification failed", error=str(e))
        return None


def user_id_from_payload(payload: Optional[Dict[str, Any]]) -> Optional[int]:
    if not payload:
        return None
    try:
        return int(payload.get("user_id"))
    except (TypeError, ValueError):
        return None
