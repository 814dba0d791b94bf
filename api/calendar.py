# api/calendar.py
"""
Calendar events. Sign-in required for every operation.
"""
import calendar as month_calendar
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from postgrest.exceptions import APIError
from supabase import AsyncClient

from api.dependencies import CurrentUser, get_couple_id, require_current_user, get_supabase_client
from api.rate_limiter import limiter, WRITE_RATE_LIMIT
from api.schemas import CalendarEventInput, CalendarEventOut
from api.utils import handle_postgrest_error, validate_uuid_or_400

logger = logging.getLogger("wellness-api.calendar")

router = APIRouter(prefix="/calendar", tags=["Calendar"])

EVENT_COLUMNS = "id, title, description, start_time, end_time, location, event_type, created_at"
UPCOMING_LIMIT = 10


def month_range(year: int, month: int):
    """First instant and last instant of a calendar month."""
    last_day = month_calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1)
    end = datetime(year, month, last_day, 23, 59, 59, 999000)
    return start, end


def event_from_row(row: Dict[str, Any]) -> CalendarEventOut:
    start = datetime.fromisoformat(str(row["start_time"]).replace("Z", "+00:00"))
    return CalendarEventOut(
        id=str(row["id"]),
        title=row["title"],
        date=start.date(),
        time=start.strftime("%H:%M"),
        type=row.get("event_type") or "other",
        location=row.get("location") or "",
        notes=row.get("description") or "",
        created_at=row.get("created_at"),
    )


def merge_events(*batches: List[Dict[str, Any]]) -> List[CalendarEventOut]:
    """Union of several result sets, first occurrence of each id wins, by start time."""
    seen = set()
    merged = []
    for batch in batches:
        for row in batch or []:
            if row["id"] in seen:
                continue
            seen.add(row["id"])
            merged.append(event_from_row(row))
    return sorted(merged, key=lambda e: (e.date, e.time))


def _event_fields(body: CalendarEventInput, couple_id: Optional[str]) -> Dict[str, Any]:
    return {
        "title": body.title,
        "description": body.notes or None,
        "start_time": body.start_time().isoformat(),
        "end_time": None,
        "location": body.location or None,
        "event_type": body.type,
        "couple_id": couple_id,
    }


@router.get("")
async def list_events(
    year: Optional[int] = Query(None, ge=1970, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    user: CurrentUser = Depends(require_current_user),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    """Events of the requested month (default: current) plus the next upcoming ones."""
    now = datetime.now(timezone.utc)
    start, end = month_range(year or now.year, month or now.month)

    try:
        month_rows = await supabase.table("calendar_events")\
            .select(EVENT_COLUMNS)\
            .eq("user_id", user.id)\
            .gte("start_time", start.isoformat())\
            .lte("start_time", end.isoformat())\
            .order("start_time")\
            .execute()
        upcoming_rows = await supabase.table("calendar_events")\
            .select(EVENT_COLUMNS)\
            .eq("user_id", user.id)\
            .gte("start_time", now.isoformat())\
            .order("start_time")\
            .limit(UPCOMING_LIMIT)\
            .execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    events = merge_events(month_rows.data or [], upcoming_rows.data or [])
    return {"events": events, "total": len(events)}


@router.get("/upcoming")
async def upcoming_events(
    limit: int = Query(3, ge=1, le=50),
    user: CurrentUser = Depends(require_current_user),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    now = datetime.now(timezone.utc)
    try:
        response = await supabase.table("calendar_events")\
            .select(EVENT_COLUMNS)\
            .eq("user_id", user.id)\
            .gte("start_time", now.isoformat())\
            .order("start_time")\
            .limit(limit)\
            .execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    return {"events": merge_events(response.data or [])}


@router.post("", status_code=201)
@limiter.limit(WRITE_RATE_LIMIT)
async def create_event(
    request: Request,
    body: CalendarEventInput,
    user: CurrentUser = Depends(require_current_user),
    couple_id: Optional[str] = Depends(get_couple_id),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    try:
        response = await supabase.table("calendar_events")\
            .insert({**_event_fields(body, couple_id), "is_all_day": False, "user_id": user.id})\
            .execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    if not response.data:
        raise HTTPException(status_code=500, detail="Save failed: no row returned")
    return {"event": event_from_row(response.data[0])}


@router.put("/{event_id}")
@limiter.limit(WRITE_RATE_LIMIT)
async def update_event(
    request: Request,
    event_id: str,
    body: CalendarEventInput,
    user: CurrentUser = Depends(require_current_user),
    couple_id: Optional[str] = Depends(get_couple_id),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    validate_uuid_or_400(event_id, "event_id")
    try:
        response = await supabase.table("calendar_events")\
            .update(_event_fields(body, couple_id))\
            .eq("id", event_id)\
            .eq("user_id", user.id)\
            .execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    if not response.data:
        raise HTTPException(status_code=404, detail="Event not found")
    return {"event": event_from_row(response.data[0])}


@router.delete("/{event_id}")
@limiter.limit(WRITE_RATE_LIMIT)
async def delete_event(
    request: Request,
    event_id: str,
    user: CurrentUser = Depends(require_current_user),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    validate_uuid_or_400(event_id, "event_id")
    try:
        response = await supabase.table("calendar_events")\
            .delete()\
            .eq("id", event_id)\
            .eq("user_id", user.id)\
            .execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    if not response.data:
        raise HTTPException(status_code=404, detail="Event not found")
    return {"status": "deleted", "id": event_id}
