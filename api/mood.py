# api/mood.py
"""
Mood entries (the weather moods).
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from postgrest.exceptions import APIError
from supabase import AsyncClient

from api.dependencies import CurrentUser, get_couple_id, get_current_user, get_supabase_client
from api.rate_limiter import limiter, WRITE_RATE_LIMIT
from api.schemas import MOOD_OPTIONS, MoodCreate, MoodEntryOut, mood_option
from api.schemas.mood import MOODS_BY_ID
from api.utils import handle_postgrest_error, hash_user_id_for_logging, postgrest_error_message
from services.notifications import NotificationSink

logger = logging.getLogger("wellness-api.mood")

router = APIRouter(prefix="/mood", tags=["Mood"])

RECENT_LIMIT = 20


def _entry_from_row(row: Dict[str, Any]) -> MoodEntryOut:
    return MoodEntryOut(
        id=str(row["id"]) if row.get("id") is not None else None,
        mood=mood_option(row.get("mood_id")),
        note=row.get("note") or "",
        created_at=row.get("created_at"),
    )


@router.get("/options")
def list_mood_options():
    return {"options": MOOD_OPTIONS}


@router.post("", status_code=201)
@limiter.limit(WRITE_RATE_LIMIT)
async def create_mood_entry(
    request: Request,
    body: MoodCreate,
    user: Optional[CurrentUser] = Depends(get_current_user),
    couple_id: Optional[str] = Depends(get_couple_id),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    """
    Record a mood. Signed-out callers get the entry back unsaved together
    with a "sync skipped" notification.
    """
    option = MOODS_BY_ID.get(body.mood_id)
    if option is None:
        raise HTTPException(status_code=422, detail=f"Unknown mood id: {body.mood_id}")

    notifier = NotificationSink()
    entry = MoodEntryOut(mood=option, note=body.note or "",
                         created_at=datetime.now(timezone.utc).isoformat())

    if user is None:
        notifier.sync_skipped()
        return {"entry": entry, "notifications": notifier.items}

    try:
        response = await supabase.table("mood_entries").insert({
            "couple_id": couple_id,
            "user_id": user.id,
            "score": option.value,
            "mood_id": option.id,
            "note": body.note or None,
        }).execute()
    except APIError as e:
        logger.error(f"Mood insert failed for {hash_user_id_for_logging(user.id)}: {e}")
        notifier.sync_failed(postgrest_error_message(e))
        return {"entry": entry, "notifications": notifier.items}

    if response.data:
        entry = _entry_from_row(response.data[0])
    notifier.saved("Mood entry synced.")
    return {"entry": entry, "notifications": notifier.items}


@router.get("")
async def list_mood_entries(
    user: Optional[CurrentUser] = Depends(get_current_user),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    if user is None:
        return {"entries": []}

    try:
        response = await supabase.table("mood_entries")\
            .select("id, mood_id, note, created_at")\
            .eq("user_id", user.id)\
            .order("created_at", desc=True)\
            .limit(RECENT_LIMIT)\
            .execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    return {"entries": [_entry_from_row(row) for row in (response.data or [])]}


@router.get("/current")
async def current_mood(
    user: Optional[CurrentUser] = Depends(get_current_user),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    """Latest mood recorded today (UTC), or null."""
    if user is None:
        return {"mood": None}

    today = datetime.now(timezone.utc).date().isoformat()
    try:
        response = await supabase.table("mood_entries")\
            .select("mood_id, created_at")\
            .eq("user_id", user.id)\
            .gte("created_at", today)\
            .order("created_at", desc=True)\
            .limit(1)\
            .execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    rows = response.data or []
    if not rows or rows[0].get("mood_id") not in MOODS_BY_ID:
        return {"mood": None}
    return {"mood": MOODS_BY_ID[rows[0]["mood_id"]], "created_at": rows[0].get("created_at")}
