# api/activities.py
"""
Shared couple activities: things to watch, play or do together.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from postgrest.exceptions import APIError
from supabase import AsyncClient

from api.dependencies import CurrentUser, get_couple_id, require_current_user, get_supabase_client
from api.rate_limiter import limiter, WRITE_RATE_LIMIT
from api.schemas import ActivityInput, ActivityStatusUpdate
from api.utils import handle_postgrest_error, validate_uuid_or_400

logger = logging.getLogger("wellness-api.activities")

router = APIRouter(prefix="/activities", tags=["Couple Activities"])

ACTIVITY_COLUMNS = "id, title, type, description, priority, status, added_by, created_at, completed_date"


def _require_couple(couple_id: Optional[str]) -> str:
    if not couple_id:
        raise HTTPException(status_code=400, detail="No active couple. Send X-Couple-ID or link a couple first.")
    return couple_id


@router.get("")
async def list_activities(
    user: CurrentUser = Depends(require_current_user),
    couple_id: Optional[str] = Depends(get_couple_id),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    couple_id = _require_couple(couple_id)
    try:
        response = await supabase.table("couple_activities")\
            .select(ACTIVITY_COLUMNS)\
            .eq("couple_id", couple_id)\
            .order("created_at", desc=True)\
            .execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    rows = response.data or []
    # added_by is stored as a user id; present it relative to the caller
    activities = [{**row, "added_by": "you" if row.get("added_by") == user.id else "partner"} for row in rows]
    counts = {status: sum(1 for a in activities if a.get("status") == status)
              for status in ("wishlist", "planned", "completed")}
    return {"activities": activities, "counts": counts}


@router.post("", status_code=201)
@limiter.limit(WRITE_RATE_LIMIT)
async def add_activity(
    request: Request,
    body: ActivityInput,
    user: CurrentUser = Depends(require_current_user),
    couple_id: Optional[str] = Depends(get_couple_id),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    couple_id = _require_couple(couple_id)
    try:
        response = await supabase.table("couple_activities").insert({
            "couple_id": couple_id,
            "title": body.title.strip(),
            "type": body.type,
            "description": body.description,
            "priority": body.priority,
            "status": "wishlist",
            "added_by": user.id,
        }).execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    if not response.data:
        raise HTTPException(status_code=500, detail="Save failed: no row returned")
    return {"activity": {**response.data[0], "added_by": "you"}}


@router.patch("/{activity_id}/status")
@limiter.limit(WRITE_RATE_LIMIT)
async def update_activity_status(
    request: Request,
    activity_id: str,
    body: ActivityStatusUpdate,
    user: CurrentUser = Depends(require_current_user),
    couple_id: Optional[str] = Depends(get_couple_id),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    """completed_date is stamped only when moving to completed, cleared otherwise."""
    validate_uuid_or_400(activity_id, "activity_id")
    couple_id = _require_couple(couple_id)
    completed_date = datetime.now(timezone.utc).isoformat() if body.status == "completed" else None
    try:
        response = await supabase.table("couple_activities")\
            .update({"status": body.status, "completed_date": completed_date})\
            .eq("id", activity_id)\
            .eq("couple_id", couple_id)\
            .execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    if not response.data:
        raise HTTPException(status_code=404, detail="Activity not found")
    return {"activity": response.data[0]}
