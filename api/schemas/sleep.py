"""
Sleep entry schemas.
"""
import datetime as dt
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from services.medication_schedule import is_valid_time

SLEEP_QUALITY_LABELS = {
    1: "Restless",
    2: "Light",
    3: "Good",
    4: "Deep",
    5: "Perfect",
}


class SleepInput(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "date": "2024-03-02",
                "bedtime": "23:30",
                "wake_time": "07:15",
                "quality": 4,
                "notes": "Woke up once"
            }
        }
    }

    date: dt.date
    bedtime: str = Field(..., description="HH:MM")
    wake_time: str = Field(..., description="HH:MM")
    quality: int = Field(default=3, ge=1, le=5, description="1 (restless) to 5 (perfect)")
    notes: Optional[str] = None

    @field_validator("bedtime", "wake_time")
    @classmethod
    def valid_time(cls, value: str) -> str:
        if not is_valid_time(value):
            raise ValueError(f"'{value}' is not a 24-hour HH:MM time")
        return value


class SleepStats(BaseModel):
    entries: int
    average_duration: float
    average_quality: float
    restful_nights: int
