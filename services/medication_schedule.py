# services/medication_schedule.py
"""
Daily medication schedule: slot expansion, log matching and aggregation.

Everything here is pure and synchronous. The only stateful piece is
MedicationStore, which holds one session's medication and log collections
so that the reconciler and the routers can read and write them without any
rendering layer involved.
"""
import logging
import re
from datetime import date, datetime
from typing import Dict, Iterable, List, Literal, NamedTuple, Optional, Tuple

from pydantic import BaseModel, Field, computed_field

from api.utils import hash_user_id_for_logging

logger = logging.getLogger("wellness-api.medication_schedule")

Frequency = Literal["daily", "weekly", "as_needed"]
LogState = Literal["taken", "skipped", "pending"]

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$")


def is_valid_time(value: str) -> bool:
    """True for 24-hour HH:MM or HH:MM:SS strings."""
    return bool(value) and _TIME_PATTERN.match(value) is not None


def normalize_time(value: str) -> str:
    """
    Normalize a time-of-day string to the persisted HH:MM:SS form.

    "08:00" becomes "08:00:00"; anything that is not exactly five
    characters long is returned unchanged.
    """
    if len(value) == 5:
        return f"{value}:00"
    return value


class Medication(BaseModel):
    """A prescribed item the user tracks."""
    id: str
    name: str
    dosage: str
    frequency: Frequency = "daily"
    times: List[str] = Field(default_factory=list)
    color: str = "bg-pink-400"
    notes: Optional[str] = None
    created_at: datetime


class LogKey(NamedTuple):
    medication_id: str
    scheduled_time: str
    scheduled_date: date
    user_id: Optional[str]


class MedicationLog(BaseModel):
    """Intake decision for one scheduled slot on one date."""
    id: Optional[str] = None
    medication_id: str
    scheduled_time: str
    scheduled_date: date
    user_id: Optional[str] = None
    taken_at: Optional[datetime] = None
    skipped: bool = False
    notes: Optional[str] = None

    @property
    def key(self) -> LogKey:
        return LogKey(
            self.medication_id,
            normalize_time(self.scheduled_time),
            self.scheduled_date,
            self.user_id,
        )

    @computed_field
    @property
    def state(self) -> LogState:
        # taken_at wins so a log can never count as both taken and skipped
        if self.taken_at is not None:
            return "taken"
        if self.skipped:
            return "skipped"
        return "pending"


class ScheduleSlot(BaseModel):
    """One (medication, time-of-day) obligation for a date. Never persisted."""
    medication: Medication
    time: str
    log: Optional[MedicationLog] = None

    @property
    def state(self) -> LogState:
        return self.log.state if self.log else "pending"


class ScheduleSummary(BaseModel):
    completed: int = 0
    skipped: int = 0
    pending: int = 0
    total: int = 0
    completion_percentage: float = 0.0


def index_logs(logs: Iterable[MedicationLog]) -> Dict[LogKey, MedicationLog]:
    """
    Index logs by their normalized composite key.

    If two logs share a key the one loaded last wins. The unique index on
    medication_logs should make that impossible, but a duplicate must not
    break the schedule.
    """
    index: Dict[LogKey, MedicationLog] = {}
    for log in logs:
        if log.key in index:
            logger.warning(
                "Duplicate medication log for %s at %s on %s, keeping the latest",
                hash_user_id_for_logging(log.medication_id), log.scheduled_time, log.scheduled_date,
            )
        index[log.key] = log
    return index


def find_log(
    index: Dict[LogKey, MedicationLog],
    medication_id: str,
    time: str,
    on_date: date,
    user_id: Optional[str] = None,
) -> Optional[MedicationLog]:
    return index.get(LogKey(medication_id, normalize_time(time), on_date, user_id))


def build_schedule(
    medications: Iterable[Medication],
    logs: Iterable[MedicationLog],
    on_date: date,
    user_id: Optional[str] = None,
) -> List[ScheduleSlot]:
    """
    Expand medications x scheduled times into slots for one date.

    Args:
        medications: Medication definitions
        logs: Known intake logs (any dates; only on_date matches)
        on_date: Calendar date of the schedule
        user_id: Owner of the logs, None in local-only sessions

    Returns:
        Slots sorted by normalized time of day. Slots at the same time keep
        the order of the medication collection.
    """
    index = index_logs(logs)
    slots: List[ScheduleSlot] = []
    for medication in medications:
        for time in medication.times or []:
            slots.append(ScheduleSlot(
                medication=medication,
                time=time,
                log=find_log(index, medication.id, time, on_date, user_id),
            ))
    # sorted() is stable, ties stay in insertion order
    return sorted(slots, key=lambda slot: normalize_time(slot.time))


def summarize(slots: Iterable[ScheduleSlot]) -> ScheduleSummary:
    """Count completed, skipped and pending slots."""
    completed = skipped = total = 0
    for slot in slots:
        total += 1
        state = slot.state
        if state == "taken":
            completed += 1
        elif state == "skipped":
            skipped += 1

    pending = max(total - completed - skipped, 0)
    percentage = round(completed / total * 100, 1) if total else 0.0
    return ScheduleSummary(
        completed=completed,
        skipped=skipped,
        pending=pending,
        total=total,
        completion_percentage=percentage,
    )


class MedicationStore:
    """
    In-memory medication and log collections for one session.

    Every write bumps a revision counter; schedule() is memoized on
    (revision, date) so repeated reads between writes reuse the
    previous expansion.
    """

    def __init__(self, user_id: Optional[str] = None):
        self.user_id = user_id
        self._medications: List[Medication] = []
        self._logs: List[MedicationLog] = []
        self._revision = 0
        self._schedule_cache: Optional[Tuple[Tuple[int, date], List[ScheduleSlot]]] = None
        self.loaded = False

    @property
    def revision(self) -> int:
        return self._revision

    def _touch(self) -> None:
        self._revision += 1
        self._schedule_cache = None

    def load(self, medications: List[Medication], logs: List[MedicationLog]) -> None:
        """Replace both collections with freshly fetched rows."""
        self._medications = list(medications)
        self._logs = list(logs)
        self.loaded = True
        self._touch()

    def medications(self) -> List[Medication]:
        return list(self._medications)

    def logs(self) -> List[MedicationLog]:
        return list(self._logs)

    def get_medication(self, medication_id: str) -> Medication:
        for medication in self._medications:
            if medication.id == medication_id:
                return medication
        raise KeyError(medication_id)

    def add_medication(self, medication: Medication) -> Medication:
        self._medications.append(medication)
        self._touch()
        return medication

    def replace_medication(self, medication: Medication) -> Medication:
        for i, existing in enumerate(self._medications):
            if existing.id == medication.id:
                self._medications[i] = medication
                self._touch()
                return medication
        raise KeyError(medication.id)

    def remove_medication(self, medication_id: str) -> None:
        """Remove a medication and every log that references it."""
        self.get_medication(medication_id)
        self._medications = [m for m in self._medications if m.id != medication_id]
        self._logs = [log for log in self._logs if log.medication_id != medication_id]
        self._touch()

    def put_log(self, log: MedicationLog) -> MedicationLog:
        """Replace whatever log holds the same key with this one."""
        key = log.key
        self._logs = [existing for existing in self._logs if existing.key != key]
        self._logs.append(log)
        self._touch()
        return log

    def schedule(self, on_date: date) -> List[ScheduleSlot]:
        cache_key = (self._revision, on_date)
        if self._schedule_cache and self._schedule_cache[0] == cache_key:
            return list(self._schedule_cache[1])
        slots = build_schedule(self._medications, self._logs, on_date, self.user_id)
        self._schedule_cache = (cache_key, slots)
        return list(slots)
