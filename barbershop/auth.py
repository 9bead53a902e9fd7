import asyncio
import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth

from .config import RELAY_SERVICE_TOKEN
from .firebase import get_db, get_firebase_app

logger = logging.getLogger(__name__)

security = HTTPBearer()

ADMIN_ROLES = {"admin", "owner", "cashier"}
SERVICE_UID = "queue-notifier"


@dataclass
class CurrentUser:
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: str = "customer"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES or self.uid == SERVICE_UID


def _lookup_role(db, uid: str, claims: dict) -> str:
    # A custom claim wins over the users document
    if claims.get("admin") is True:
        return "admin"
    if claims.get("role"):
        return claims["role"]

    snapshot = db.collection("users").document(uid).get()
    if snapshot.exists:
        return (snapshot.to_dict() or {}).get("role") or "customer"
    return "customer"


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db=Depends(get_db),
    firebase_app=Depends(get_firebase_app),
) -> CurrentUser:
    """Verify a Firebase ID token and resolve the caller's role"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials

    # The queue notifier worker authenticates with a shared service token
    if RELAY_SERVICE_TOKEN and secrets.compare_digest(token.encode(), RELAY_SERVICE_TOKEN.encode()):
        return CurrentUser(uid=SERVICE_UID, role="service")

    try:
        claims = await asyncio.to_thread(firebase_auth.verify_id_token, token, firebase_app)
    except firebase_auth.ExpiredIdTokenError as e:
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        ) from e
    except (firebase_auth.InvalidIdTokenError, ValueError) as e:
        logger.warning(f"⚠️ Invalid ID token: {e}")
        raise HTTPException(status_code=401, detail="Invalid token") from e

    uid = claims.get("uid") or claims.get("sub")
    if not uid:
        raise HTTPException(status_code=401, detail="Invalid token claims")

    role = await asyncio.to_thread(_lookup_role, db, uid, claims)
    logger.debug(f"✅ Authenticated {uid} as {role}")
    return CurrentUser(uid=uid, email=claims.get("email"), name=claims.get("name"), role=role)


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        logger.warning(f"🚫 Non-admin {user.uid} attempted an admin operation")
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
