"""
User models for the authenticated principal.
Accounts are owned by the identity provider; this service only reads them.
"""

from pydantic import Field
from datetime import datetime
from typing import Optional
from enum import Enum

from app.models.base import CamelModel


class UserRole(str, Enum):
    TOURIST = "tourist"
    AUTHORITY = "authority"
    ADMIN = "admin"


AUTHORITY_ROLES = {UserRole.AUTHORITY.value, UserRole.ADMIN.value}


class CurrentUser(CamelModel):
    """Principal attached to every authenticated request."""
    id: str = Field(..., description="Identity provider uid (also the users document ID)")
    username: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole = UserRole.TOURIST

    @property
    def is_authority(self) -> bool:
        return self.role in AUTHORITY_ROLES

    @property
    def display_name(self) -> str:
        return self.username or self.email or "Authority"


class UserResponse(CamelModel):
    """Tourist profile fields exposed to the authority dashboard."""
    id: str
    username: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole = UserRole.TOURIST
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
