# services/medication_reconciler.py
"""
Take / skip / clear actions on today's medication schedule.

Each action rewrites the slot's log in the session store first and only then
persists it. The local write is never rolled back: if the database call
fails the user is told through the notification sink and the store keeps the
new state until the next reload.
"""
import logging
from datetime import date, datetime, timezone
from typing import Callable, Optional

from services.medication_repository import MedicationRepository
from services.medication_schedule import (
    MedicationLog,
    MedicationStore,
    normalize_time,
)
from services.notifications import NotificationSink

logger = logging.getLogger("wellness-api.medication_reconciler")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ScheduleReconciler:
    """Applies intake actions for one user session."""

    def __init__(
        self,
        store: MedicationStore,
        repository: Optional[MedicationRepository],
        notifier: NotificationSink,
        user_id: Optional[str] = None,
        couple_id: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.repository = repository
        self.notifier = notifier
        self.user_id = user_id
        self.couple_id = couple_id
        self.clock = clock

    def today(self) -> date:
        return self.clock().date()

    async def take(self, medication_id: str, time: str, on_date: Optional[date] = None) -> MedicationLog:
        return await self._apply(medication_id, time, on_date, taken=True, skipped=False)

    async def skip(self, medication_id: str, time: str, on_date: Optional[date] = None) -> MedicationLog:
        return await self._apply(medication_id, time, on_date, taken=False, skipped=True)

    async def clear(self, medication_id: str, time: str, on_date: Optional[date] = None) -> MedicationLog:
        return await self._apply(medication_id, time, on_date, taken=False, skipped=False)

    async def _apply(
        self,
        medication_id: str,
        time: str,
        on_date: Optional[date],
        taken: bool,
        skipped: bool,
    ) -> MedicationLog:
        # raises KeyError before anything is touched
        medication = self.store.get_medication(medication_id)
        scheduled_time = normalize_time(time)
        if scheduled_time not in {normalize_time(t) for t in medication.times}:
            raise ValueError(f"{medication.name} is not scheduled at {time}")

        log = MedicationLog(
            medication_id=medication_id,
            scheduled_time=scheduled_time,
            scheduled_date=on_date or self.today(),
            user_id=self.user_id,
            taken_at=self.clock() if taken else None,
            skipped=skipped,
        )
        self.store.put_log(log)

        if not self.user_id or self.repository is None:
            self.notifier.sync_skipped()
            return log

        try:
            await self.repository.upsert_log(log, self.couple_id)
        except Exception as e:
            # optimistic state stays; the user sees the raw message
            logger.error(f"Medication log sync failed for {medication_id} at {log.scheduled_time}: {e}")
            self.notifier.sync_failed(getattr(e, "message", None) or str(e))
            return log

        self.notifier.saved(_describe(log))
        return log


def _describe(log: MedicationLog) -> str:
    state = log.state
    if state == "taken":
        return "Medication mark synced."
    if state == "skipped":
        return "Medication skip synced."
    return "Medication mark cleared."
