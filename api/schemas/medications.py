"""
Pydantic schemas for medication and schedule endpoints.
"""
import datetime as dt
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

from services.medication_schedule import (
    Medication,
    MedicationLog,
    ScheduleSlot,
    ScheduleSummary,
    is_valid_time,
)
from services.notifications import Notification

MEDICATION_COLORS = [
    "bg-pink-400",
    "bg-blue-400",
    "bg-green-400",
    "bg-purple-400",
    "bg-orange-400",
    "bg-yellow-400",
]


def _check_time(value: str) -> str:
    value = value.strip()
    if not is_valid_time(value):
        raise ValueError(f"'{value}' is not a 24-hour HH:MM or HH:MM:SS time")
    return value


class MedicationInput(BaseModel):
    """Create/replace body. Editing replaces every mutable field."""
    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "Morning Vitamin",
                "dosage": "1 tablet",
                "frequency": "daily",
                "times": ["08:00", "20:00"],
                "color": "bg-pink-400",
                "notes": "With breakfast"
            }
        }
    }

    name: str = Field(..., min_length=1, description="Medication name")
    dosage: str = Field(..., min_length=1, description="Dosage text, e.g. '2 capsules'")
    frequency: Literal["daily", "weekly", "as_needed"] = Field(default="daily")
    times: List[str] = Field(..., min_length=1, description="Scheduled times of day (HH:MM)")
    color: str = Field(default="bg-pink-400", description="Display color tag")
    notes: Optional[str] = None

    @field_validator("name", "dosage")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @field_validator("times")
    @classmethod
    def valid_times(cls, values: List[str]) -> List[str]:
        return [_check_time(v) for v in values]


class IntakeRequest(BaseModel):
    """Body of take / skip / clear."""
    time: str = Field(..., description="Scheduled time of the slot (HH:MM)")
    date: Optional[dt.date] = Field(None, description="Slot date, defaults to today")

    @field_validator("time")
    @classmethod
    def valid_time(cls, value: str) -> str:
        return _check_time(value)


class SlotOut(BaseModel):
    medication_id: str
    name: str
    dosage: str
    color: str
    time: str
    state: Literal["taken", "skipped", "pending"]
    taken_at: Optional[dt.datetime] = None
    skipped: bool = False

    @classmethod
    def from_slot(cls, slot: ScheduleSlot) -> "SlotOut":
        log = slot.log
        return cls(
            medication_id=slot.medication.id,
            name=slot.medication.name,
            dosage=slot.medication.dosage,
            color=slot.medication.color,
            time=slot.time,
            state=slot.state,
            taken_at=log.taken_at if log else None,
            skipped=log.skipped if log else False,
        )


class ScheduleResponse(BaseModel):
    date: dt.date
    slots: List[SlotOut]
    summary: ScheduleSummary
    notifications: List[Notification] = []


class IntakeResponse(BaseModel):
    log: MedicationLog
    summary: ScheduleSummary
    notifications: List[Notification] = []


class MedicationResponse(BaseModel):
    medication: Medication
    notifications: List[Notification] = []


class MedicationListResponse(BaseModel):
    medications: List[Medication]
    total: int
