# api/medications.py
"""
Medication definitions, today's schedule and intake actions.

Reads come from the caller's session store (hydrated from Supabase for
signed-in users). Intake actions go through ScheduleReconciler: the store
changes first, the database second, and the outcome of the database call is
reported in the response's notifications.
"""
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from postgrest.exceptions import APIError
from supabase import AsyncClient

from api.dependencies import (
    CurrentUser,
    get_couple_id,
    get_current_user,
    get_session_owner,
    get_supabase_client,
)
from api.rate_limiter import limiter, WRITE_RATE_LIMIT
from api.schemas import (
    IntakeRequest,
    IntakeResponse,
    MedicationInput,
    MedicationListResponse,
    MedicationResponse,
    ScheduleResponse,
    SlotOut,
)
from api.utils import handle_postgrest_error, hash_user_id_for_logging, postgrest_error_message
from services.medication_reconciler import ScheduleReconciler
from services.medication_repository import (
    MedicationRepository,
    medication_from_row,
    medication_payload,
)
from services.medication_schedule import Medication, MedicationStore, summarize
from services.notifications import NotificationSink
from services.session_store import get_session_registry

logger = logging.getLogger("wellness-api.medications")

router = APIRouter(prefix="/medications", tags=["Medications"])


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


async def get_repository(client: AsyncClient = Depends(get_supabase_client)) -> MedicationRepository:
    return MedicationRepository(client)


async def _load_store(
    owner: str,
    user: Optional[CurrentUser],
    repository: MedicationRepository,
    on_date: date,
) -> MedicationStore:
    user_id = user.id if user else None
    try:
        return await get_session_registry().get_store(
            owner, user_id, repository if user_id else None, on_date
        )
    except APIError as e:
        handle_postgrest_error(e, user_id)


def _get_or_404(store: MedicationStore, medication_id: str) -> Medication:
    try:
        return store.get_medication(medication_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Medication {medication_id} not found")


@router.get("", response_model=MedicationListResponse)
async def list_medications(
    user: Optional[CurrentUser] = Depends(get_current_user),
    owner: str = Depends(get_session_owner),
    repository: MedicationRepository = Depends(get_repository),
):
    store = await _load_store(owner, user, repository, today_utc())
    medications = store.medications()
    return MedicationListResponse(medications=medications, total=len(medications))


@router.post("", response_model=MedicationResponse, status_code=201)
@limiter.limit(WRITE_RATE_LIMIT)
async def create_medication(
    request: Request,
    body: MedicationInput,
    user: Optional[CurrentUser] = Depends(get_current_user),
    owner: str = Depends(get_session_owner),
    couple_id: Optional[str] = Depends(get_couple_id),
    repository: MedicationRepository = Depends(get_repository),
):
    """
    Create a medication.

    Signed in: the row is inserted first and the local entry is created
    with the id the database returns, so a medication never exists under
    two ids. Signed out: a local UUID is generated and nothing is persisted.
    """
    store = await _load_store(owner, user, repository, today_utc())
    notifier = NotificationSink()

    if user is None:
        medication = Medication(
            id=str(uuid.uuid4()),
            created_at=datetime.now(timezone.utc),
            **body.model_dump(),
        )
        notifier.sync_skipped()
    else:
        try:
            row = await repository.insert_medication(user.id, couple_id, body.model_dump())
        except APIError as e:
            handle_postgrest_error(e, user.id)
        medication = medication_from_row({**body.model_dump(), **row})
        notifier.saved("Medication saved.")

    store.add_medication(medication)
    return MedicationResponse(medication=medication, notifications=notifier.items)


@router.put("/{medication_id}", response_model=MedicationResponse)
@limiter.limit(WRITE_RATE_LIMIT)
async def replace_medication(
    request: Request,
    medication_id: str,
    body: MedicationInput,
    user: Optional[CurrentUser] = Depends(get_current_user),
    owner: str = Depends(get_session_owner),
    repository: MedicationRepository = Depends(get_repository),
):
    """Full replace of the mutable fields; local first, then the database."""
    store = await _load_store(owner, user, repository, today_utc())
    existing = _get_or_404(store, medication_id)
    notifier = NotificationSink()

    medication = Medication(id=existing.id, created_at=existing.created_at, **body.model_dump())
    store.replace_medication(medication)

    if user is None:
        notifier.sync_skipped()
    else:
        try:
            await repository.update_medication(user.id, medication_id, medication_payload(medication))
            notifier.saved("Medication updated.")
        except APIError as e:
            logger.error(f"Medication update failed for {hash_user_id_for_logging(user.id)}: {e}")
            notifier.sync_failed(postgrest_error_message(e))

    return MedicationResponse(medication=medication, notifications=notifier.items)


@router.delete("/{medication_id}")
@limiter.limit(WRITE_RATE_LIMIT)
async def delete_medication(
    request: Request,
    medication_id: str,
    user: Optional[CurrentUser] = Depends(get_current_user),
    owner: str = Depends(get_session_owner),
    repository: MedicationRepository = Depends(get_repository),
):
    """Delete a medication and its intake logs."""
    store = await _load_store(owner, user, repository, today_utc())
    _get_or_404(store, medication_id)
    notifier = NotificationSink()

    store.remove_medication(medication_id)

    if user is None:
        notifier.sync_skipped()
    else:
        try:
            await repository.delete_medication(user.id, medication_id)
            notifier.saved("Medication deleted.")
        except APIError as e:
            logger.error(f"Medication delete failed for {hash_user_id_for_logging(user.id)}: {e}")
            notifier.sync_failed(postgrest_error_message(e))

    return {"status": "deleted", "medication_id": medication_id, "notifications": notifier.items}


@router.get("/schedule", response_model=ScheduleResponse)
async def get_schedule(
    on_date: Optional[date] = Query(None, alias="date", description="Defaults to today (UTC)"),
    user: Optional[CurrentUser] = Depends(get_current_user),
    owner: str = Depends(get_session_owner),
    repository: MedicationRepository = Depends(get_repository),
):
    on_date = on_date or today_utc()
    store = await _load_store(owner, user, repository, on_date)
    slots = store.schedule(on_date)
    return ScheduleResponse(
        date=on_date,
        slots=[SlotOut.from_slot(slot) for slot in slots],
        summary=summarize(slots),
    )


async def _intake(
    action: str,
    medication_id: str,
    body: IntakeRequest,
    user: Optional[CurrentUser],
    owner: str,
    couple_id: Optional[str],
    repository: MedicationRepository,
) -> IntakeResponse:
    on_date = body.date or today_utc()
    store = await _load_store(owner, user, repository, on_date)
    _get_or_404(store, medication_id)

    notifier = NotificationSink()
    reconciler = ScheduleReconciler(
        store,
        repository if user else None,
        notifier,
        user_id=user.id if user else None,
        couple_id=couple_id,
    )
    try:
        log = await getattr(reconciler, action)(medication_id, body.time, on_date)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return IntakeResponse(
        log=log,
        summary=summarize(store.schedule(on_date)),
        notifications=notifier.items,
    )


@router.post("/{medication_id}/take", response_model=IntakeResponse)
@limiter.limit(WRITE_RATE_LIMIT)
async def take_medication(
    request: Request,
    medication_id: str,
    body: IntakeRequest,
    user: Optional[CurrentUser] = Depends(get_current_user),
    owner: str = Depends(get_session_owner),
    couple_id: Optional[str] = Depends(get_couple_id),
    repository: MedicationRepository = Depends(get_repository),
):
    return await _intake("take", medication_id, body, user, owner, couple_id, repository)


@router.post("/{medication_id}/skip", response_model=IntakeResponse)
@limiter.limit(WRITE_RATE_LIMIT)
async def skip_medication(
    request: Request,
    medication_id: str,
    body: IntakeRequest,
    user: Optional[CurrentUser] = Depends(get_current_user),
    owner: str = Depends(get_session_owner),
    couple_id: Optional[str] = Depends(get_couple_id),
    repository: MedicationRepository = Depends(get_repository),
):
    return await _intake("skip", medication_id, body, user, owner, couple_id, repository)


@router.post("/{medication_id}/clear", response_model=IntakeResponse)
@limiter.limit(WRITE_RATE_LIMIT)
async def clear_medication(
    request: Request,
    medication_id: str,
    body: IntakeRequest,
    user: Optional[CurrentUser] = Depends(get_current_user),
    owner: str = Depends(get_session_owner),
    couple_id: Optional[str] = Depends(get_couple_id),
    repository: MedicationRepository = Depends(get_repository),
):
    return await _intake("clear", medication_id, body, user, owner, couple_id, repository)


@router.post("/reload")
async def reload_medications(owner: str = Depends(get_session_owner)):
    """Drop the session store; the next read fetches everything again."""
    dropped = get_session_registry().reset(owner)
    return {"status": "reloaded" if dropped else "empty"}
