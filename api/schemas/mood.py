"""
Mood catalog and mood entry schemas.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class MoodOption(BaseModel):
    """One of the weather moods a user can pick."""
    id: str
    name: str
    icon: str
    description: str
    color: str
    value: int = Field(..., ge=1, le=5, description="Score stored with the entry")


MOOD_OPTIONS: List[MoodOption] = [
    MoodOption(id="sunny", name="Sunny & Bright", icon="☀️",
               description="Feeling wonderful and energetic",
               color="from-yellow-200 to-orange-200", value=5),
    MoodOption(id="partly-cloudy", name="Partly Cloudy", icon="⛅",
               description="Good with some mixed feelings",
               color="from-blue-100 to-yellow-100", value=4),
    MoodOption(id="cloudy", name="Cloudy", icon="☁️",
               description="Feeling okay, a bit neutral",
               color="from-gray-100 to-blue-100", value=3),
    MoodOption(id="rainy", name="Rainy", icon="🌧️",
               description="Feeling down or sad",
               color="from-blue-200 to-gray-200", value=2),
    MoodOption(id="stormy", name="Stormy", icon="⛈️",
               description="Struggling or very difficult",
               color="from-gray-300 to-blue-300", value=1),
    MoodOption(id="rainbow", name="Rainbow", icon="🌈",
               description="Mixed but hopeful",
               color="from-pink-200 to-purple-200", value=4),
    MoodOption(id="starry", name="Starry Night", icon="🌌",
               description="Peaceful and reflective",
               color="from-indigo-200 to-purple-200", value=3),
]

MOODS_BY_ID: Dict[str, MoodOption] = {m.id: m for m in MOOD_OPTIONS}


def mood_option(mood_id: Optional[str]) -> MoodOption:
    """Catalog entry for a stored mood id; unknown ids read as the first option."""
    return MOODS_BY_ID.get(mood_id or "", MOOD_OPTIONS[0])


class MoodCreate(BaseModel):
    mood_id: str = Field(..., description="Catalog id, e.g. 'sunny'")
    note: Optional[str] = Field(None, max_length=2000)


class MoodEntryOut(BaseModel):
    id: Optional[str] = None
    mood: MoodOption
    note: str = ""
    created_at: Optional[str] = None
