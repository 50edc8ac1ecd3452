import datetime
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from postgrest.exceptions import APIError as PgAPIError
from supabase import Client

from resumepath import store
from resumepath.auth import UserIdentity, require_admin
from resumepath.db import get_supabase

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _attr(obj, name):
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _list_auth_users(sb: Client) -> list:
    resp = sb.auth.admin.list_users()
    # supabase-py returns a plain list; older clients wrap it in .users
    users = getattr(resp, "users", resp)
    return list(users or [])


@router.get("/users")
async def list_users(sb: Client = Depends(get_supabase)):
    try:
        users = _list_auth_users(sb)
        rows = store.active_role_rows(sb)
    except Exception as e:
        logging.error(f"Error fetching users: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch users")

    out = []
    for u in users:
        uid = _attr(u, "id")
        out.append({
            "id": uid,
            "email": _attr(u, "email"),
            "created_at": _attr(u, "created_at"),
            "last_sign_in_at": _attr(u, "last_sign_in_at"),
            "roles": [
                {"role": r["role"], "granted_at": r.get("granted_at"), "expires_at": r.get("expires_at")}
                for r in rows
                if r.get("user_id") == uid
            ],
        })
    return {"users": out}


@router.post("/users/{user_id}/grant-admin")
async def grant_admin(
    user_id: str,
    current_user: UserIdentity = Depends(require_admin),
    sb: Client = Depends(get_supabase),
):
    try:
        store.grant_admin(sb, user_id, current_user.user_id)
    except PgAPIError as e:
        logging.error(f"Error granting admin role: {e}")
        raise HTTPException(status_code=500, detail=e.message or "Failed to grant admin role")
    logging.info(f"Admin role granted to {user_id} by {current_user.user_id}")
    return {"success": True, "message": "Admin role granted successfully"}


@router.delete("/users/{user_id}/revoke-admin")
async def revoke_admin(
    user_id: str,
    current_user: UserIdentity = Depends(require_admin),
    sb: Client = Depends(get_supabase),
):
    if user_id == current_user.user_id:
        raise HTTPException(status_code=400, detail="Cannot revoke your own admin role")
    try:
        store.deactivate_admin(sb, user_id)
    except Exception as e:
        logging.error(f"Error revoking admin role: {e}")
        raise HTTPException(status_code=500, detail="Failed to revoke admin role")
    logging.info(f"Admin role revoked from {user_id} by {current_user.user_id}")
    return {"success": True, "message": "Admin role revoked successfully"}


@router.get("/stats")
async def stats(sb: Client = Depends(get_supabase)):
    try:
        users = _list_auth_users(sb)
        resumes = store.count_rows(sb, "resumes")
        assessments = store.count_rows(sb, "assessments")
        reports = store.count_rows(sb, "reports")
    except Exception as e:
        logging.error(f"Error fetching admin stats: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch system statistics")

    return {
        "users": {
            "total": len(users),
            "active": sum(1 for u in users if _attr(u, "last_sign_in_at")),
        },
        "resumes": {"total": resumes},
        "assessments": {"total": assessments},
        "reports": {"total": reports},
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
    }


@router.get("/activity")
async def activity(limit: int = Query(50, ge=1, le=500), sb: Client = Depends(get_supabase)):
    try:
        events = store.activity_feed(sb, limit)
    except Exception as e:
        logging.error(f"Error fetching admin activity: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch recent activity")
    return {"activity": events}
