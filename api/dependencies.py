import os
import asyncio
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Header
from pydantic import BaseModel
from supabase import acreate_client, AsyncClient
from supabase.lib.client_options import AsyncClientOptions

from api.utils import hash_user_id_for_logging, validate_uuid_or_400
from services.couple_store import get_couple_store

logger = logging.getLogger("wellness-api.dependencies")

__all__ = [
    "CurrentUser",
    "get_supabase_anon_client",         # GoTrue calls (get_user, sign_in_with_otp)
    "get_supabase_client",              # data access, always filtered by user_id in code
    "get_current_user",
    "require_current_user",
    "get_session_owner",
    "get_couple_id",
    "reset_caches_for_testing",
]

_cached_anon_client: Optional[AsyncClient] = None
_cached_data_client: Optional[AsyncClient] = None

_client_initialization_lock = asyncio.Lock()


class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None


def reset_caches_for_testing():
    """Drop cached clients. Tests only."""
    global _cached_anon_client, _cached_data_client
    _cached_anon_client = None
    _cached_data_client = None


async def _create_client(url: str, key: str) -> AsyncClient:
    options = AsyncClientOptions(persist_session=False, auto_refresh_token=False)
    return await acreate_client(url, key, options=options)


async def get_supabase_anon_client() -> AsyncClient:
    """
    ANON client (RLS applied). Used for auth: resolving bearer tokens and
    sending magic links.
    """
    global _cached_anon_client
    if _cached_anon_client is None:
        async with _client_initialization_lock:
            if _cached_anon_client is None:  # Double-check
                url = os.getenv("SUPABASE_URL")
                anon_key = os.getenv("SUPABASE_ANON_KEY", "").strip()

                if not url or not anon_key:
                    logger.error("SUPABASE_URL or SUPABASE_ANON_KEY missing.")
                    raise HTTPException(status_code=500, detail="Supabase configuration incomplete (ANON).")

                logger.info("Initializing ANON client key=%s...%s", anon_key[:5], anon_key[-5:])
                _cached_anon_client = await _create_client(url, anon_key)
    return _cached_anon_client


async def get_supabase_client() -> AsyncClient:
    """
    Data client. Uses SUPABASE_SERVICE_KEY when present, otherwise the anon
    key. Every query issued with it filters by the caller's user_id.
    """
    global _cached_data_client
    if _cached_data_client is None:
        async with _client_initialization_lock:
            if _cached_data_client is None:  # Double-check
                url = os.getenv("SUPABASE_URL")
                key = (os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_ANON_KEY") or "").strip()

                if not url or not key:
                    logger.error("SUPABASE_URL or Supabase key missing.")
                    raise HTTPException(status_code=500, detail="Supabase configuration incomplete.")

                logger.info("Initializing data client key=%s...%s", key[:5], key[-5:])
                _cached_data_client = await _create_client(url, key)
    return _cached_data_client


async def get_current_user(authorization: Optional[str] = Header(None)) -> Optional[CurrentUser]:
    """
    Resolve the bearer token to a user.

    No Authorization header means an anonymous, local-only session and
    returns None. A header that does not resolve to a user is a 401.
    """
    if not authorization:
        return None

    if not authorization.lower().startswith("bearer "):
        logger.warning("Malformed Authorization header")
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Empty token")

    anon = await get_supabase_anon_client()
    try:
        user_resp = await anon.auth.get_user(token)
        user = getattr(user_resp, "user", None)
        if not user:
            logger.warning("No user in auth response")
            raise HTTPException(status_code=401, detail="Invalid or expired token")
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Supabase auth failure: %s", str(e)[:200])
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    logger.debug("Authenticated user %s", hash_user_id_for_logging(str(user.id)))
    return CurrentUser(id=str(user.id), email=getattr(user, "email", None))


async def require_current_user(user: Optional[CurrentUser] = Depends(get_current_user)) -> CurrentUser:
    if user is None:
        raise HTTPException(status_code=401, detail="Sign in required")
    return user


def _owner_key(user: Optional[CurrentUser], session_id: Optional[str]) -> Optional[str]:
    if user is not None:
        return user.id
    if session_id and session_id.strip():
        return f"anon:{session_id.strip()}"
    return None


async def get_session_owner(
    user: Optional[CurrentUser] = Depends(get_current_user),
    x_session_id: Optional[str] = Header(None),
) -> str:
    """
    Key for per-session state: the user id, or X-Session-ID for anonymous clients.
    """
    owner = _owner_key(user, x_session_id)
    if owner is None:
        raise HTTPException(
            status_code=400,
            detail="X-Session-ID header required when not signed in"
        )
    return owner


async def get_couple_id(
    user: Optional[CurrentUser] = Depends(get_current_user),
    x_session_id: Optional[str] = Header(None),
    x_couple_id: Optional[str] = Header(None),
) -> Optional[str]:
    """Couple id from the X-Couple-ID header, else the owner's remembered one."""
    if x_couple_id:
        return validate_uuid_or_400(x_couple_id.strip(), "X-Couple-ID")
    owner = _owner_key(user, x_session_id)
    if owner is None:
        return None
    return await get_couple_store().get(owner)
