"""
Todo schemas.
"""
import datetime as dt
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

TodoCategory = Literal["wellness", "daily", "social", "work", "other"]
Priority = Literal["low", "medium", "high"]


class TodoInput(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: TodoCategory = "daily"
    priority: Priority = "medium"
    due_date: Optional[dt.date] = None


class TodoOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    category: TodoCategory = "other"
    priority: Priority = "medium"
    completed: bool = False
    due_date: Optional[dt.date] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None


class TodoListResponse(BaseModel):
    active: List[TodoOut]
    completed: List[TodoOut]
    done: int
    total: int
