# api/couples.py
"""
Couple linking: owner creates a couple group, a guardian joins it and can
then follow the owner's mood stream.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from postgrest.exceptions import APIError
from supabase import AsyncClient

from api.dependencies import (
    CurrentUser,
    get_session_owner,
    get_supabase_client,
    require_current_user,
)
from api.rate_limiter import limiter, WRITE_RATE_LIMIT
from api.schemas import ActiveCouple, CoupleResponse, FeedEntry, FeedResponse, SetActiveCouple
from api.utils import handle_postgrest_error, hash_user_id_for_logging, validate_uuid_or_400
from services.couple_store import get_couple_store
from services.guardian_monitor import get_guardian_registry

logger = logging.getLogger("wellness-api.couples")

router = APIRouter(prefix="/couples", tags=["Couples"])


async def _is_member(supabase: AsyncClient, couple_id: str, user_id: str) -> bool:
    response = await supabase.table("couple_members")\
        .select("couple_id, role")\
        .eq("couple_id", couple_id)\
        .eq("user_id", user_id)\
        .limit(1)\
        .execute()
    return bool(response.data)


@router.post("", response_model=CoupleResponse, status_code=201)
@limiter.limit(WRITE_RATE_LIMIT)
async def create_couple(
    request: Request,
    user: CurrentUser = Depends(require_current_user),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    """Create a couple group owned by the caller and make it their active couple."""
    try:
        created = await supabase.table("couples").insert({"created_by": user.id}).execute()
        if not created.data:
            raise HTTPException(status_code=500, detail="Couple creation returned no row")
        couple_id = str(created.data[0]["id"])
        await supabase.table("couple_members").insert({
            "couple_id": couple_id,
            "user_id": user.id,
            "role": "owner",
        }).execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    await get_couple_store().set(user.id, couple_id)
    logger.info(f"Couple {couple_id[:8]}... created by {hash_user_id_for_logging(user.id)}")
    return CoupleResponse(couple_id=couple_id, role="owner")


@router.post("/{couple_id}/join", response_model=CoupleResponse)
@limiter.limit(WRITE_RATE_LIMIT)
async def join_as_guardian(
    request: Request,
    couple_id: str,
    user: CurrentUser = Depends(require_current_user),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    validate_uuid_or_400(couple_id, "couple_id")
    try:
        await supabase.table("couple_members").insert({
            "couple_id": couple_id,
            "user_id": user.id,
            "role": "guardian",
        }).execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    await get_couple_store().set(user.id, couple_id)
    logger.info(f"{hash_user_id_for_logging(user.id)} joined couple {couple_id[:8]}... as guardian")
    return CoupleResponse(couple_id=couple_id, role="guardian")


@router.get("/active", response_model=ActiveCouple)
async def get_active_couple(owner: str = Depends(get_session_owner)):
    return ActiveCouple(couple_id=await get_couple_store().get(owner))


@router.put("/active", response_model=ActiveCouple)
async def set_active_couple(body: SetActiveCouple, owner: str = Depends(get_session_owner)):
    couple_id = validate_uuid_or_400(body.couple_id, "couple_id")
    await get_couple_store().set(owner, couple_id)
    return ActiveCouple(couple_id=couple_id)


@router.delete("/active", response_model=ActiveCouple)
async def forget_active_couple(owner: str = Depends(get_session_owner)):
    await get_couple_store().clear(owner)
    return ActiveCouple(couple_id=None)


@router.get("/{couple_id}/feed", response_model=FeedResponse)
async def guardian_feed(
    couple_id: str,
    user: CurrentUser = Depends(require_current_user),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    """
    Mood stream of the couple: the 20 latest entries at first subscription,
    then every insert pushed by Realtime prepended to the list.
    """
    validate_uuid_or_400(couple_id, "couple_id")
    try:
        if not await _is_member(supabase, couple_id, user.id):
            raise HTTPException(status_code=403, detail="Not a member of this couple")
        monitor = await get_guardian_registry().get_or_start(supabase, couple_id)
    except APIError as e:
        handle_postgrest_error(e, user.id)

    return FeedResponse(
        couple_id=couple_id,
        live=monitor.subscribed,
        moods=[FeedEntry(**{k: row.get(k) for k in ("created_at", "score", "mood_id", "note")})
               for row in monitor.moods],
    )
