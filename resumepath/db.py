import logging
from functools import lru_cache
from typing import Optional

from supabase import create_client, Client
from supabase.client import ClientOptions

from resumepath import settings


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """Service-role client shared by every request (FastAPI dependency)."""
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
        raise RuntimeError("Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY in environment")
    return create_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_KEY,
        options=ClientOptions(auto_refresh_token=False, persist_session=False),
    )


def get_supabase_optional() -> Optional[Client]:
    """Like get_supabase, but None when the service runs without Supabase configured."""
    try:
        return get_supabase()
    except RuntimeError as e:
        logging.warning(f"Supabase unavailable: {e}")
        return None


def first_row(resp):
    """Works across supabase-py versions: returns the first row or None."""
    if resp is None:
        return None
    data = getattr(resp, "data", None)
    if isinstance(data, list):
        return data[0] if data else None
    return data  # may already be a dict or None
