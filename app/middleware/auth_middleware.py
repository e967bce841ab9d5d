from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional

from ..utils.oauth_utils import verify_access_token, user_id_from_payload
from ..utils.logger import logger


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> int:
    """
    Dependency to validate the JWT bearer token and return the caller's user id

    Args:
        credentials: Bearer token from Authorization header

    Returns:
        user id carried in the token

    Raises:
        HTTPException: If token is missing or invalid
    """
    if not credentials:
        logger.warning("Missing authorization header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_access_token(credentials.credentials)
    user_id = user_id_from_payload(payload)

    if user_id is None:
        logger.warning("Invalid token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug("User authenticated", username=payload.get("preferred_username"), user_id=user_id)
    return user_id
