import logging
import datetime
from typing import Optional, List

import jwt
from dateutil import parser as dtparser
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from supabase import Client

from resumepath import settings
from resumepath.db import get_supabase, get_supabase_optional

# auto_error=False so a missing header gets our own 401 body
security = HTTPBearer(auto_error=False)


class UserIdentity(BaseModel):
    user_id: str
    email: Optional[str] = None


# ---------------------------------------------------------------------------
# token verification
# ---------------------------------------------------------------------------
def verify_token(token: str) -> Optional[dict]:
    """Decode a Supabase access token signed with the project JWT secret."""
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            audience="authenticated",
        )
    except jwt.PyJWTError:
        return None


def _identity_from_token(token: str, sb: Optional[Client]) -> Optional[UserIdentity]:
    if settings.SUPABASE_JWT_SECRET:
        payload = verify_token(token)
        if not payload or not payload.get("sub"):
            return None
        return UserIdentity(user_id=payload["sub"], email=payload.get("email"))
    if sb is None:
        return None

    try:
        resp = sb.auth.get_user(token)
    except Exception as e:
        logging.warning(f"auth.get_user rejected token: {e}")
        return None
    user = getattr(resp, "user", None)
    if not user:
        return None
    return UserIdentity(user_id=user.id, email=getattr(user, "email", None))


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    sb: Client = Depends(get_supabase),
) -> UserIdentity:
    if credentials is None or (credentials.scheme or "").lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No authorization token provided")

    user = _identity_from_token(credentials.credentials, sb)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    sb: Optional[Client] = Depends(get_supabase_optional),
) -> Optional[UserIdentity]:
    if credentials is None:
        return None
    return _identity_from_token(credentials.credentials, sb)


# ---------------------------------------------------------------------------
# roles
# ---------------------------------------------------------------------------
def is_role_active(row: dict, now: Optional[datetime.datetime] = None) -> bool:
    if not row.get("is_active"):
        return False
    expires_at = row.get("expires_at")
    if not expires_at:
        return True
    now = now or datetime.datetime.now(datetime.timezone.utc)
    try:
        exp = dtparser.isoparse(expires_at) if isinstance(expires_at, str) else expires_at
    except ValueError:
        return False
    if exp.tzinfo is None:
        exp = exp.replace(tzinfo=datetime.timezone.utc)
    return exp > now


async def require_admin(
    current_user: UserIdentity = Depends(get_current_user),
    sb: Client = Depends(get_supabase),
) -> UserIdentity:
    try:
        roles = (
            sb.table("user_roles")
            .select("role, is_active, expires_at")
            .eq("user_id", current_user.user_id)
            .eq("role", "admin")
            .eq("is_active", True)
            .execute()
            .data
            or []
        )
    except Exception as e:
        logging.error(f"Error checking admin role: {e}")
        raise HTTPException(status_code=500, detail="Failed to verify admin status")

    if not any(is_role_active(r) for r in roles):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "Admin access required",
                "message": "This endpoint requires administrator privileges",
            },
        )
    return current_user


def get_user_roles(sb: Client, user: Optional[UserIdentity]) -> List[str]:
    """Active role names for the user; never raises."""
    if user is None:
        return []
    try:
        rows = (
            sb.table("user_roles")
            .select("role, is_active, expires_at")
            .eq("user_id", user.user_id)
            .eq("is_active", True)
            .execute()
            .data
            or []
        )
    except Exception as e:
        logging.error(f"Error fetching user roles: {e}")
        return []
    return [r["role"] for r in rows if is_role_active(r)]
