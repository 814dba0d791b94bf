# api/todos.py
"""
Todo items ("small steps").
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from postgrest.exceptions import APIError
from supabase import AsyncClient

from api.dependencies import CurrentUser, get_couple_id, require_current_user, get_supabase_client
from api.rate_limiter import limiter, WRITE_RATE_LIMIT
from api.schemas import TodoInput, TodoListResponse, TodoOut
from api.utils import handle_postgrest_error, validate_uuid_or_400

logger = logging.getLogger("wellness-api.todos")

router = APIRouter(prefix="/todos", tags=["Todos"])

TODO_COLUMNS = "id, title, description, category, priority, completed, due_date, created_at, completed_at"


def todo_from_row(row: Dict[str, Any]) -> TodoOut:
    return TodoOut(
        id=str(row["id"]),
        title=row["title"],
        description=row.get("description"),
        category=row.get("category") or "other",
        priority=row.get("priority") or "medium",
        completed=bool(row.get("completed")),
        due_date=row.get("due_date"),
        created_at=row.get("created_at"),
        completed_at=row.get("completed_at"),
    )


def _todo_fields(body: TodoInput) -> Dict[str, Any]:
    return {
        "title": body.title,
        "description": body.description,
        "category": body.category,
        "priority": body.priority,
        "due_date": body.due_date.isoformat() if body.due_date else None,
    }


async def _fetch_todo(supabase: AsyncClient, user_id: str, todo_id: str) -> Dict[str, Any]:
    response = await supabase.table("todos")\
        .select(TODO_COLUMNS)\
        .eq("id", todo_id)\
        .eq("user_id", user_id)\
        .limit(1)\
        .execute()
    if not response.data:
        raise HTTPException(status_code=404, detail="Todo not found")
    return response.data[0]


@router.get("", response_model=TodoListResponse)
async def list_todos(
    user: CurrentUser = Depends(require_current_user),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    try:
        response = await supabase.table("todos")\
            .select(TODO_COLUMNS)\
            .eq("user_id", user.id)\
            .order("created_at")\
            .execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    todos = [todo_from_row(row) for row in (response.data or [])]
    active = [t for t in todos if not t.completed]
    completed = [t for t in todos if t.completed]
    return TodoListResponse(active=active, completed=completed, done=len(completed), total=len(todos))


@router.post("", status_code=201)
@limiter.limit(WRITE_RATE_LIMIT)
async def create_todo(
    request: Request,
    body: TodoInput,
    user: CurrentUser = Depends(require_current_user),
    couple_id: Optional[str] = Depends(get_couple_id),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    try:
        response = await supabase.table("todos")\
            .insert({**_todo_fields(body), "completed": False, "user_id": user.id, "couple_id": couple_id})\
            .execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    if not response.data:
        raise HTTPException(status_code=500, detail="Save failed: no row returned")
    return {"todo": todo_from_row(response.data[0])}


@router.put("/{todo_id}")
@limiter.limit(WRITE_RATE_LIMIT)
async def update_todo(
    request: Request,
    todo_id: str,
    body: TodoInput,
    user: CurrentUser = Depends(require_current_user),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    validate_uuid_or_400(todo_id, "todo_id")
    try:
        response = await supabase.table("todos")\
            .update(_todo_fields(body))\
            .eq("id", todo_id)\
            .eq("user_id", user.id)\
            .execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    if not response.data:
        raise HTTPException(status_code=404, detail="Todo not found")
    return {"todo": todo_from_row(response.data[0])}


@router.post("/{todo_id}/toggle")
@limiter.limit(WRITE_RATE_LIMIT)
async def toggle_todo(
    request: Request,
    todo_id: str,
    user: CurrentUser = Depends(require_current_user),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    """Flip completion; completed_at is set on completion and cleared on reopen."""
    validate_uuid_or_400(todo_id, "todo_id")
    try:
        current = await _fetch_todo(supabase, user.id, todo_id)
        completed = not bool(current.get("completed"))
        response = await supabase.table("todos")\
            .update({
                "completed": completed,
                "completed_at": datetime.now(timezone.utc).isoformat() if completed else None,
            })\
            .eq("id", todo_id)\
            .eq("user_id", user.id)\
            .execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    row = response.data[0] if response.data else {**current, "completed": completed}
    return {"todo": todo_from_row(row)}


@router.delete("/{todo_id}")
@limiter.limit(WRITE_RATE_LIMIT)
async def delete_todo(
    request: Request,
    todo_id: str,
    user: CurrentUser = Depends(require_current_user),
    supabase: AsyncClient = Depends(get_supabase_client),
):
    validate_uuid_or_400(todo_id, "todo_id")
    try:
        response = await supabase.table("todos")\
            .delete()\
            .eq("id", todo_id)\
            .eq("user_id", user.id)\
            .execute()
    except APIError as e:
        handle_postgrest_error(e, user.id)

    if not response.data:
        raise HTTPException(status_code=404, detail="Todo not found")
    return {"status": "deleted", "id": todo_id}
