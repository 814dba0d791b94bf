# api/sleep.py
"""
Sleep entries: one per user per date.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from postgrest.exceptions import APIError
from supabase import AsyncClient

from api.dependencies import CurrentUser, get_couple_id, require_current_user, get_supabase_client
from api.rate_limiter import limiter, WRITE_RATE_LIMIT
from api.schemas import SleepInput, SleepStats
from api.schemas.sleep import SLEEP_QUALITY_LABELS
from api.utils import handle_postgrest_error, validate_uuid_or_400
from services.notifications import NotificationSink
from services.sleep_math import calculate_duration, duration_feedback, sleep_stats

logger = logging.getLogger("wellness-api.sleep")

router = APIRouter(prefix="/sleep", tags=["Sleep"])

SLEEP_COLUMNS = "id, date, bedtime, wake_time, quality, duration, notes, created_at"
RECENT_LIMIT = 20


def _entry_out(row: Dict[str, Any]) -> Dict[str, Any]:
    duration = float(row.get("duration") or 0)
    return {
        "id": str(row["id"]),
        "date": row.get("date"),
        "bedtime": row.get("bedtime"),
        "wake_time": row.get("wake_time"),
        "quality": row.get("quality"),
        "quality_label": SLEEP_QUALITY_LABELS.get(row.get("quality")),
        "duration": duration,
        "feedback": duration_feedback(duration),
        "notes": row.get("notes") or "",
        "created_at": row.get("created_at"),
    }


def _dedupe(rows):
    seen = set()
    unique = []
    for row in rows:
        if row.get("id") in seen:
            logger.warning(f"Duplicate sleep entry {row.get('id')}")
            continue
        seen.add(row.get("id"))
        unique.append(row)
    return unique


@router.post("")
@limiter.limit(WRITE_RATE_LIMIT)
async def save_sleep_entry(
    request: Request,
    body: SleepInput,
    user: CurrentUser = Depends(require_current_user),
    couple_id: Optional[str] = Depends(get_couple_id),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    """
    Save the night for body.date: updates the existing row for that date,
    inserts otherwise. Duration is derived, never taken from the client.
    """
    duration = calculate_duration(body.bedtime, body.wake_time)
    sleep_date = body.date.isoformat()
    notifier = NotificationSink()
    fields = {
        "bedtime": body.bedtime,
        "wake_time": body.wake_time,
        "quality": body.quality,
        "duration": duration,
        "notes": body.notes or None,
    }

    try:
        existing = await supabase.table("sleep_entries")\
            .select("id")\
            .eq("user_id", user.id)\
            .eq("date", sleep_date)\
            .limit(1)\
            .execute()

        if existing.data:
            entry_id = existing.data[0]["id"]
            result = await supabase.table("sleep_entries")\
                .update(fields)\
                .eq("id", entry_id)\
                .eq("user_id", user.id)\
                .execute()
            notifier.saved("Sleep entry updated.")
        else:
            result = await supabase.table("sleep_entries")\
                .insert({
                    **fields,
                    "couple_id": couple_id,
                    "user_id": user.id,
                    "date": sleep_date,
                })\
                .execute()
            notifier.saved("Sleep entry synced.")
    except APIError as e:
        handle_postgrest_error(e, user.id)

    row = (result.data or [{}])[0]
    entry = _entry_out({**fields, "date": sleep_date, **row})
    return {"entry": entry, "notifications": notifier.items}


@router.get("")
async def list_sleep_entries(
    user: CurrentUser = Depends(require_current_user),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    try:
        response = await supabase.table("sleep_entries")\
            .select(SLEEP_COLUMNS)\
            .eq("user_id", user.id)\
            .order("date", desc=True)\
            .limit(RECENT_LIMIT)\
            .execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    return {"entries": [_entry_out(row) for row in _dedupe(response.data or [])]}


@router.get("/stats", response_model=SleepStats)
async def get_sleep_stats(
    user: CurrentUser = Depends(require_current_user),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    try:
        response = await supabase.table("sleep_entries")\
            .select("id, duration, quality")\
            .eq("user_id", user.id)\
            .order("date", desc=True)\
            .limit(RECENT_LIMIT)\
            .execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    return SleepStats(**sleep_stats(_dedupe(response.data or [])))


@router.delete("/{entry_id}")
@limiter.limit(WRITE_RATE_LIMIT)
async def delete_sleep_entry(
    request: Request,
    entry_id: str,
    user: CurrentUser = Depends(require_current_user),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    validate_uuid_or_400(entry_id, "entry_id")
    try:
        response = await supabase.table("sleep_entries")\
            .delete()\
            .eq("id", entry_id)\
            .eq("user_id", user.id)\
            .execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    if not response.data:
        raise HTTPException(status_code=404, detail="Sleep entry not found")
    return {"status": "deleted", "id": entry_id}
