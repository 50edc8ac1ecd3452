"""
Supabase data access.

Thin wrappers over the fluent client so route handlers read as intent and
tests can swap the client for an in-memory fake.
"""

import datetime
import logging
from typing import Any, Dict, List, Optional

from supabase import Client

from resumepath.auth import is_role_active
from resumepath.db import first_row


def _now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# resumes
# ---------------------------------------------------------------------------
def insert_resume(sb: Client, user_id: str, filename: str, content: str,
                  parsed_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    resp = sb.table("resumes").insert({
        "user_id": user_id,
        "filename": filename,
        "content": content,
        "parsed_data": parsed_data,
    }).execute()
    return first_row(resp)


def latest_resume(sb: Client, user_id: str) -> Optional[Dict[str, Any]]:
    resp = (
        sb.table("resumes")
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .limit(1)
        .execute()
    )
    return first_row(resp)


def get_resume(sb: Client, user_id: str, resume_id: str) -> Optional[Dict[str, Any]]:
    resp = (
        sb.table("resumes")
        .select("*")
        .eq("id", resume_id)
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    return first_row(resp)


# ---------------------------------------------------------------------------
# assessments / reports
# ---------------------------------------------------------------------------
def insert_assessment(sb: Client, user_id: str, assessment_type: str,
                      responses: Dict[str, Any], results: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Best effort: a failed insert is logged and the analysis result is still returned."""
    try:
        resp = sb.table("assessments").insert({
            "user_id": user_id,
            "assessment_type": assessment_type,
            "responses": responses,
            "results": results,
        }).execute()
    except Exception as e:
        logging.error(f"Error saving {assessment_type} assessment: {e}")
        return None
    return first_row(resp)


def list_assessments(sb: Client, user_id: str, assessment_id: Optional[str] = None) -> List[Dict[str, Any]]:
    q = sb.table("assessments").select("*").eq("user_id", user_id)
    if assessment_id:
        q = q.eq("id", assessment_id)
    return q.order("created_at", desc=True).execute().data or []


def insert_report(sb: Client, user_id: str, resume_id: Optional[str], assessment_id: Optional[str],
                  report_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    resp = sb.table("reports").insert({
        "user_id": user_id,
        "resume_id": resume_id,
        "assessment_id": assessment_id,
        "report_data": report_data,
    }).execute()
    return first_row(resp)


# ---------------------------------------------------------------------------
# counts / activity
# ---------------------------------------------------------------------------
def count_rows(sb: Client, table: str, user_id: Optional[str] = None, **filters: Any) -> int:
    q = sb.table(table).select("id", count="exact")
    if user_id:
        q = q.eq("user_id", user_id)
    for col, val in filters.items():
        q = q.eq(col, val)
    return q.execute().count or 0


def recent_rows(sb: Client, table: str, columns: str, limit: int,
                user_id: Optional[str] = None) -> List[Dict[str, Any]]:
    q = sb.table(table).select(columns)
    if user_id:
        q = q.eq("user_id", user_id)
    return q.order("created_at", desc=True).limit(limit).execute().data or []


def activity_feed(sb: Client, limit: int, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Uploads, assessments and reports merged newest first."""
    resumes = recent_rows(sb, "resumes", "id, filename, created_at, user_id", limit, user_id)
    assessments = recent_rows(sb, "assessments", "id, assessment_type, created_at, user_id", limit, user_id)
    reports = recent_rows(sb, "reports", "id, created_at, user_id", limit, user_id)

    events = [
        {"type": "resume_upload", "id": r.get("id"), "user_id": r.get("user_id"),
         "details": {"filename": r.get("filename")}, "created_at": r.get("created_at")}
        for r in resumes
    ]
    events += [
        {"type": "assessment_completed", "id": a.get("id"), "user_id": a.get("user_id"),
         "details": {"assessment_type": a.get("assessment_type")}, "created_at": a.get("created_at")}
        for a in assessments
    ]
    events += [
        {"type": "report_generated", "id": r.get("id"), "user_id": r.get("user_id"),
         "details": {}, "created_at": r.get("created_at")}
        for r in reports
    ]
    events.sort(key=lambda e: e["created_at"] or "", reverse=True)
    return events[:limit]


# ---------------------------------------------------------------------------
# roles
# ---------------------------------------------------------------------------
def active_role_rows(sb: Client) -> List[Dict[str, Any]]:
    """Unexpired, active role rows for every user."""
    rows = (
        sb.table("user_roles")
        .select("user_id, role, is_active, expires_at, granted_at")
        .eq("is_active", True)
        .execute()
        .data
        or []
    )
    return [r for r in rows if is_role_active(r)]


def grant_admin(sb: Client, target_user_id: str, granted_by: str) -> Any:
    return sb.rpc("grant_admin_role", {
        "target_user_id": target_user_id,
        "granted_by_user_id": granted_by,
    }).execute().data


def deactivate_admin(sb: Client, user_id: str) -> int:
    resp = (
        sb.table("user_roles")
        .update({"is_active": False, "updated_at": _now_iso()})
        .eq("user_id", user_id)
        .eq("role", "admin")
        .eq("is_active", True)
        .execute()
    )
    return len(resp.data or [])


# ---------------------------------------------------------------------------
# api keys
# ---------------------------------------------------------------------------
def list_user_keys(sb: Client, user_id: str) -> List[Dict[str, Any]]:
    return (
        sb.table("api_keys")
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .execute()
        .data
        or []
    )


def upsert_key(sb: Client, user_id: str, provider: str, api_key: str,
               usage_settings: Dict[str, bool], is_active: bool = True) -> Optional[Dict[str, Any]]:
    resp = sb.table("api_keys").upsert(
        {
            "user_id": user_id,
            "provider": provider,
            "api_key": api_key,
            "is_active": is_active,
            "usage_settings": usage_settings,
            "updated_at": _now_iso(),
        },
        on_conflict="user_id,provider",
    ).execute()
    return first_row(resp)


def delete_key(sb: Client, user_id: str, key_id: str) -> bool:
    resp = sb.table("api_keys").delete().eq("id", key_id).eq("user_id", user_id).execute()
    return bool(resp.data)


def active_key(sb: Client, user_id: str, provider: str) -> Optional[Dict[str, Any]]:
    resp = (
        sb.table("api_keys")
        .select("*")
        .eq("user_id", user_id)
        .eq("provider", provider)
        .eq("is_active", True)
        .limit(1)
        .execute()
    )
    return first_row(resp)
