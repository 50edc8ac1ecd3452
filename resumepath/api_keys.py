import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from supabase import Client

from resumepath import settings, store
from resumepath.auth import UserIdentity, get_current_user
from resumepath.db import get_supabase

router = APIRouter(prefix="/api/keys", tags=["api-keys"])

# providers the server can call itself; anything else is stored for the client
SERVER_PROVIDERS = {"ollama"}

USAGE_FEATURES = (
    "resume_parsing",
    "job_matching",
    "course_recommendations",
    "personality_analysis",
    "skill_gap_analysis",
    "report_generation",
)


class ApiKeyIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: str = Field(..., min_length=1)
    api_key: str = Field(..., min_length=1, alias="apiKey")
    is_active: bool = Field(True, alias="isActive")
    usage_settings: Dict[str, bool] = Field(default_factory=dict, alias="usageSettings")


def mask_key(key: Optional[str]) -> str:
    if not key:
        return ""
    if len(key) <= 8:
        return "*" * len(key)
    return f"{key[:3]}…{key[-4:]}"


def normalize_usage(usage: Optional[Dict[str, bool]]) -> Dict[str, bool]:
    usage = usage or {}
    return {f: bool(usage.get(f, True)) for f in USAGE_FEATURES}


def _public(row: dict) -> dict:
    return {
        "id": row.get("id"),
        "provider": row.get("provider"),
        "apiKey": mask_key(row.get("api_key")),
        "isActive": bool(row.get("is_active")),
        "usageSettings": normalize_usage(row.get("usage_settings")),
        "serverUsable": row.get("provider") in SERVER_PROVIDERS,
        "createdAt": row.get("created_at"),
        "updatedAt": row.get("updated_at"),
    }


def resolve_llm_key(sb: Client, user_id: str, feature: str) -> Optional[str]:
    """
    Key to use for an LLM call made on behalf of the user:
    their active ollama key when the feature is enabled on it, otherwise the
    server key when LLM_ENHANCE is on, otherwise None (no LLM call).
    """
    try:
        row = store.active_key(sb, user_id, "ollama")
    except Exception as e:
        logging.warning(f"Could not read API keys for {user_id}: {e}")
        row = None
    if row and normalize_usage(row.get("usage_settings")).get(feature):
        return row.get("api_key")
    if settings.LLM_ENHANCE:
        return settings.OLLAMA_API_KEY or ""
    return None


@router.get("")
async def list_keys(
    current_user: UserIdentity = Depends(get_current_user),
    sb: Client = Depends(get_supabase),
):
    try:
        rows = store.list_user_keys(sb, current_user.user_id)
    except Exception as e:
        logging.error(f"Error fetching API keys: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch API keys")
    return {"keys": [_public(r) for r in rows]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def save_key(
    body: ApiKeyIn,
    current_user: UserIdentity = Depends(get_current_user),
    sb: Client = Depends(get_supabase),
):
    provider = body.provider.strip().lower()
    try:
        row = store.upsert_key(
            sb,
            current_user.user_id,
            provider,
            body.api_key.strip(),
            normalize_usage(body.usage_settings),
            body.is_active,
        )
    except Exception as e:
        logging.error(f"Error saving API key: {e}")
        raise HTTPException(status_code=500, detail="Failed to save API key")
    logging.info(f"Stored {provider} key for user {current_user.user_id}")
    return {"success": True, "key": _public(row or {"provider": provider})}


@router.delete("/{key_id}")
async def remove_key(
    key_id: str,
    current_user: UserIdentity = Depends(get_current_user),
    sb: Client = Depends(get_supabase),
):
    try:
        deleted = store.delete_key(sb, current_user.user_id, key_id)
    except Exception as e:
        logging.error(f"Error deleting API key: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete API key")
    if not deleted:
        raise HTTPException(status_code=404, detail="API key not found")
    return {"success": True, "message": "API key deleted"}
