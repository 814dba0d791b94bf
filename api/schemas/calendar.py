"""
Calendar event schemas.
"""
import datetime as dt
from typing import Literal, Optional
from pydantic import BaseModel, Field

EventType = Literal["appointment", "therapy", "social", "self-care", "other"]


class CalendarEventInput(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "title": "Therapy session",
                "date": "2024-03-05",
                "time": "15:30",
                "type": "therapy",
                "location": "Clinic, room 2",
                "notes": "Bring the sleep diary"
            }
        }
    }

    title: str = Field(..., min_length=1)
    date: dt.date
    time: dt.time
    type: EventType = "other"
    location: Optional[str] = None
    notes: Optional[str] = None

    def start_time(self) -> dt.datetime:
        return dt.datetime.combine(self.date, self.time)


class CalendarEventOut(BaseModel):
    id: str
    title: str
    date: dt.date
    time: str
    type: EventType = "other"
    location: str = ""
    notes: str = ""
    created_at: Optional[str] = None
