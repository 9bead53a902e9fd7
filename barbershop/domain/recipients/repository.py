"""Recipient repository - device tokens on the users collection"""

from datetime import datetime, timezone
from typing import Optional

from firebase_admin import firestore

from ...errors import RecipientNotFoundError

USERS = "users"


class RecipientRepository:
    """Repository for recipient lookups and device-token bookkeeping"""

    @staticmethod
    def get_user(db, user_id: str) -> Optional[dict]:
        snapshot = db.collection(USERS).document(user_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    @staticmethod
    def get_users(db, user_ids: list[str]) -> dict[str, dict]:
        users = {}
        for user_id in set(user_ids):
            user = RecipientRepository.get_user(db, user_id)
            if user is not None:
                users[user_id] = user
        return users

    @staticmethod
    def get_device_token(db, user_id: str) -> Optional[str]:
        """Get the stored push token, raising if the user does not exist"""
        user = RecipientRepository.get_user(db, user_id)
        if user is None:
            raise RecipientNotFoundError(f"User {user_id} not found")
        return user.get("fcmToken") or None

    @staticmethod
    def has_device_token(db, user_id: str) -> bool:
        user = RecipientRepository.get_user(db, user_id)
        return bool(user and user.get("fcmToken"))

    @staticmethod
    def save_device_token(db, user_id: str, token: str) -> None:
        db.collection(USERS).document(user_id).set(
            {
                "fcmToken": token,
                "fcmTokenUpdatedAt": datetime.now(timezone.utc).isoformat(),
            },
            merge=True,
        )

    @staticmethod
    def clear_device_token(db, user_id: str, reason: str = "removed") -> None:
        db.collection(USERS).document(user_id).update(
            {
                "fcmToken": firestore.DELETE_FIELD,
                "fcmTokenClearedAt": datetime.now(timezone.utc).isoformat(),
                "fcmTokenClearedReason": reason,
            }
        )
