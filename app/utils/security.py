"""
Request authentication: Firebase ID tokens from the Authorization header.

get_current_user resolves the principal for every authenticated route;
require_authority additionally restricts a route to authority/admin roles.
"""

import logging
from typing import Optional

from fastapi import Depends, Header
from firebase_admin import auth

from app.config.firebase import initialize_firebase_app
from app.core.errors import ForbiddenError, UnauthorizedError
from app.models.user import CurrentUser
from app.services.user_service import get_user_service

logger = logging.getLogger(__name__)


def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Raises:
        UnauthorizedError: Header missing or not of the form "Bearer <token>"
    """
    if not authorization:
        raise UnauthorizedError("Missing Authorization header")

    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        raise UnauthorizedError("Invalid Authorization format")
    return parts[1]


def verify_token(token: str) -> dict:
    """Verify a Firebase ID token and return its decoded claims."""
    initialize_firebase_app()
    try:
        return auth.verify_id_token(token)
    except (auth.InvalidIdTokenError, auth.RevokedIdTokenError, auth.UserDisabledError, ValueError) as e:
        logger.warning(f"Rejected bearer token: {str(e)}")
        raise UnauthorizedError("Invalid or expired token")


async def get_current_user(authorization: Optional[str] = Header(None)) -> CurrentUser:
    token = extract_bearer_token(authorization)
    claims = verify_token(token)
    return get_user_service().sync_from_claims(claims["uid"], claims)


async def require_authority(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_authority:
        raise ForbiddenError("Authority access required")
    return user
