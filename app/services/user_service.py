"""
User Service - Read and upsert user profiles in Firestore.

Accounts are created by the identity provider; the "users" collection keeps
the profile fields this service needs (name, contact details, role).
"""

from app.config.firebase import get_db
from app.models.user import CurrentUser, UserRole
from app.utils.firestore_helpers import parse_timestamp, utc_now
from typing import Dict, Iterable, Optional
import logging

logger = logging.getLogger(__name__)

COLLECTION = "users"


class UserService:
    """
    Service for user profile lookups in Firestore.
    """

    def __init__(self, db=None):
        self.db = db or get_db()

    def get_user(self, user_id: str) -> Optional[Dict]:
        """
        Get user by document ID.

        Returns:
            User dict with converted timestamps or None if not found
        """
        doc = self.db.collection(COLLECTION).document(user_id).get()
        if not doc.exists:
            return None
        user_data = self._convert_timestamps(doc.to_dict())
        user_data["id"] = doc.id
        return user_data

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, Dict]:
        """Look up several users at once, keyed by ID. Missing users are skipped."""
        users = {}
        for user_id in set(user_ids):
            if not user_id:
                continue
            user = self.get_user(user_id)
            if user:
                users[user_id] = user
        return users

    def sync_from_claims(self, uid: str, claims: Dict) -> CurrentUser:
        """
        Create the profile on first sight of a verified token, refresh
        last_login_at afterwards.

        The role comes from the "role" custom claim when present, otherwise
        from the stored profile.
        """
        user_ref = self.db.collection(COLLECTION).document(uid)
        doc = user_ref.get()

        if doc.exists:
            user_data = doc.to_dict()
            update_data = {"last_login_at": utc_now()}
            if claims.get("role") and claims["role"] != user_data.get("role"):
                update_data["role"] = claims["role"]
            user_ref.update(update_data)
            user_data.update(update_data)
        else:
            user_data = {
                "username": claims.get("name"),
                "email": claims.get("email"),
                "phone": claims.get("phone_number"),
                "role": claims.get("role") or UserRole.TOURIST.value,
                "created_at": utc_now(),
                "last_login_at": utc_now(),
            }
            user_ref.set(user_data)
            logger.info(f"User created: {uid}")

        return CurrentUser(
            id=uid,
            username=user_data.get("username"),
            email=user_data.get("email"),
            phone=user_data.get("phone"),
            role=user_data.get("role") or UserRole.TOURIST.value,
        )

    def _convert_timestamps(self, user_data: Dict) -> Dict:
        """Convert Firestore timestamps to timezone-aware datetimes."""
        for field in ("created_at", "last_login_at"):
            if user_data.get(field) is not None:
                user_data[field] = parse_timestamp(user_data[field])
        return user_data


# Global service instance (singleton pattern)
_user_service = None


def get_user_service() -> UserService:
    """
    Get or create UserService singleton instance.

    Returns:
        UserService: The global user service instance
    """
    global _user_service
    if _user_service is None:
        _user_service = UserService()
    return _user_service
