"""Pydantic schemas for API models."""
from .medications import (
    MedicationInput,
    IntakeRequest,
    SlotOut,
    ScheduleResponse,
    IntakeResponse,
    MedicationResponse,
    MedicationListResponse,
)
from .mood import MoodOption, MoodCreate, MoodEntryOut, MOOD_OPTIONS, mood_option
from .sleep import SleepInput, SleepStats
from .calendar import CalendarEventInput, CalendarEventOut
from .todos import TodoInput, TodoOut, TodoListResponse
from .couples import (
    CoupleResponse,
    ActiveCouple,
    SetActiveCouple,
    FeedEntry,
    FeedResponse,
    ActivityInput,
    ActivityStatusUpdate,
)


__all__ = [
    "MedicationInput",
    "IntakeRequest",
    "SlotOut",
    "ScheduleResponse",
    "IntakeResponse",
    "MedicationResponse",
    "MedicationListResponse",
    "MoodOption",
    "MoodCreate",
    "MoodEntryOut",
    "MOOD_OPTIONS",
    "mood_option",
    "SleepInput",
    "SleepStats",
    "CalendarEventInput",
    "CalendarEventOut",
    "TodoInput",
    "TodoOut",
    "TodoListResponse",
    "CoupleResponse",
    "ActiveCouple",
    "SetActiveCouple",
    "FeedEntry",
    "FeedResponse",
    "ActivityInput",
    "ActivityStatusUpdate",
]
