# services/medication_repository.py
"""
Supabase persistence for medications and medication intake logs.

All calls go through the async Supabase client and are scoped by user_id;
row level security on the database side does the rest.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from postgrest.exceptions import APIError
from supabase import AsyncClient

from api.utils import hash_user_id_for_logging
from services.medication_schedule import Medication, MedicationLog, normalize_time

logger = logging.getLogger("wellness-api.medication_repository")

MEDICATIONS_TABLE = "medications"
LOGS_TABLE = "medication_logs"
LOG_CONFLICT_TARGET = "medication_id,scheduled_time,scheduled_date,user_id"

MEDICATION_COLUMNS = "id, name, dosage, frequency, times, color, notes, created_at"
LOG_COLUMNS = "id, medication_id, scheduled_time, scheduled_date, user_id, taken_at, skipped, notes"

# PostgreSQL error codes surfaced by PostgREST
NO_UNIQUE_CONSTRAINT_FOR_CONFLICT = "42P10"
UNIQUE_VIOLATION = "23505"


def medication_from_row(row: Dict[str, Any]) -> Medication:
    return Medication(
        id=str(row["id"]),
        name=row["name"],
        dosage=row["dosage"],
        frequency=row.get("frequency") or "daily",
        times=row.get("times") or [],
        color=row.get("color") or "bg-pink-400",
        notes=row.get("notes") or None,
        created_at=row["created_at"],
    )


def log_from_row(row: Dict[str, Any]) -> MedicationLog:
    return MedicationLog(
        id=str(row["id"]) if row.get("id") is not None else None,
        medication_id=str(row["medication_id"]),
        scheduled_time=normalize_time(row["scheduled_time"]),
        scheduled_date=row["scheduled_date"],
        user_id=row.get("user_id"),
        taken_at=row.get("taken_at"),
        skipped=bool(row.get("skipped")),
        notes=row.get("notes") or None,
    )


def medication_payload(medication: Medication) -> Dict[str, Any]:
    """Mutable medication columns, used for both insert and full-replace update."""
    return {
        "name": medication.name,
        "dosage": medication.dosage,
        "frequency": medication.frequency,
        "times": list(medication.times),
        "color": medication.color,
        "notes": medication.notes,
    }


def log_payload(log: MedicationLog, couple_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Full row for a medication log.

    The upsert, the insert fallback and the update fallback all write this
    exact dict, so whichever path lands the row ends up identical.
    """
    return {
        "user_id": log.user_id,
        "couple_id": couple_id,
        "medication_id": log.medication_id,
        "scheduled_time": normalize_time(log.scheduled_time),
        "scheduled_date": log.scheduled_date.isoformat(),
        "taken_at": log.taken_at.isoformat() if log.taken_at else None,
        "skipped": log.skipped,
        "notes": log.notes,
    }


class MedicationRepository:
    """Medication and medication_logs tables."""

    def __init__(self, client: AsyncClient):
        self.client = client

    async def list_medications(self, user_id: str, limit: int = 100) -> List[Medication]:
        response = await self.client.table(MEDICATIONS_TABLE)\
            .select(MEDICATION_COLUMNS)\
            .eq("user_id", user_id)\
            .order("created_at", desc=True)\
            .limit(limit)\
            .execute()
        return [medication_from_row(row) for row in (response.data or [])]

    async def insert_medication(
        self,
        user_id: str,
        couple_id: Optional[str],
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Insert a medication and return the persisted row.

        The returned row carries the server issued id and created_at; callers
        must not create the local entry before this returns.
        """
        response = await self.client.table(MEDICATIONS_TABLE)\
            .insert({**payload, "user_id": user_id, "couple_id": couple_id})\
            .execute()
        if not response.data:
            raise APIError({"message": "Insert returned no row", "code": "PGRST116"})
        row = response.data[0]
        logger.info(f"Medication {row.get('id')} created for user {hash_user_id_for_logging(user_id)}")
        return row

    async def update_medication(self, user_id: str, medication_id: str, payload: Dict[str, Any]) -> None:
        await self.client.table(MEDICATIONS_TABLE)\
            .update(payload)\
            .eq("id", medication_id)\
            .eq("user_id", user_id)\
            .execute()

    async def delete_medication(self, user_id: str, medication_id: str) -> None:
        # logs first, they reference the medication
        await self.client.table(LOGS_TABLE)\
            .delete()\
            .eq("medication_id", medication_id)\
            .eq("user_id", user_id)\
            .execute()
        await self.client.table(MEDICATIONS_TABLE)\
            .delete()\
            .eq("id", medication_id)\
            .eq("user_id", user_id)\
            .execute()
        logger.info(f"Medication {medication_id} deleted for user {hash_user_id_for_logging(user_id)}")

    async def list_logs(self, user_id: str, on_date: date, limit: int = 500) -> List[MedicationLog]:
        response = await self.client.table(LOGS_TABLE)\
            .select(LOG_COLUMNS)\
            .eq("user_id", user_id)\
            .eq("scheduled_date", on_date.isoformat())\
            .limit(limit)\
            .execute()
        return [log_from_row(row) for row in (response.data or [])]

    async def upsert_log(self, log: MedicationLog, couple_id: Optional[str] = None) -> None:
        """
        Write the log keyed on (medication_id, scheduled_time, scheduled_date, user_id).

        Uses a native upsert. Databases without the unique index reject the
        conflict target with 42P10; those get insert, then an update of the
        same fields when the insert hits a unique violation.
        """
        payload = log_payload(log, couple_id)
        try:
            await self.client.table(LOGS_TABLE)\
                .upsert(payload, on_conflict=LOG_CONFLICT_TARGET)\
                .execute()
            return
        except APIError as e:
            if getattr(e, "code", None) != NO_UNIQUE_CONSTRAINT_FOR_CONFLICT:
                raise
            logger.warning("medication_logs has no unique index for upsert, falling back to insert/update")

        try:
            await self.client.table(LOGS_TABLE).insert(payload).execute()
        except APIError as e:
            if getattr(e, "code", None) != UNIQUE_VIOLATION:
                raise
            await self.client.table(LOGS_TABLE)\
                .update(payload)\
                .eq("medication_id", payload["medication_id"])\
                .eq("scheduled_time", payload["scheduled_time"])\
                .eq("scheduled_date", payload["scheduled_date"])\
                .eq("user_id", payload["user_id"])\
                .execute()
