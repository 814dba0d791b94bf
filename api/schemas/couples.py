"""
Couple linking, guardian feed and shared activity schemas.
"""
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

ActivityType = Literal["movie", "game", "date", "other"]
ActivityStatus = Literal["wishlist", "planned", "completed"]


class CoupleResponse(BaseModel):
    couple_id: str
    role: Literal["owner", "guardian"]


class ActiveCouple(BaseModel):
    couple_id: Optional[str] = None


class SetActiveCouple(BaseModel):
    couple_id: str = Field(..., description="Couple group UUID")


class FeedEntry(BaseModel):
    created_at: Optional[str] = None
    score: Optional[int] = None
    mood_id: Optional[str] = None
    note: Optional[str] = None


class FeedResponse(BaseModel):
    couple_id: str
    live: bool
    moods: List[FeedEntry]


class ActivityInput(BaseModel):
    title: str = Field(..., min_length=1)
    type: ActivityType = "movie"
    description: Optional[str] = None
    priority: Literal["low", "medium", "high"] = "medium"


class ActivityStatusUpdate(BaseModel):
    status: ActivityStatus
