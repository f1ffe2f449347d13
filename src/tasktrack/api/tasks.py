"""Task API routes.

Learn: These routes are the HTTP interface to TaskService. The service
owns every ownership and cache rule; routes just translate HTTP to
service calls. Authentication is applied at include_router level, and
each handler also asks for the identity (FastAPI resolves it once).

Key patterns:
- GET /tasks answers with source="cache" or source="db"
- PUT is a partial update: only fields present in the body change
- Query params for filtering (status, search; owner for admins only)
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tasktrack.auth.dependencies import CurrentIdentity, get_current_user
from tasktrack.cache import TaskCache, get_cache
from tasktrack.db.engine import get_db
from tasktrack.schemas.task import (
    STATUS_PATTERN,
    TaskCreate,
    TaskListResponse,
    TaskRead,
    TaskUpdate,
)
from tasktrack.services.task_service import TaskFilters, TaskService, normalize_page

router = APIRouter(prefix="/tasks")


def _task_svc(
    db: AsyncSession = Depends(get_db),
    cache: TaskCache = Depends(get_cache),
) -> TaskService:
    return TaskService(db, cache)


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    page: Optional[int] = Query(None, description="Page number, clamped to >= 1"),
    limit: Optional[int] = Query(None, description="Page size, clamped to 1..100"),
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    search: Optional[str] = Query(None, max_length=200, description="Title substring"),
    owner: Optional[uuid.UUID] = Query(None, description="Owner filter (admins only)"),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TaskService = Depends(_task_svc),
):
    """List tasks. Users see their own, admins see everyone's."""
    result = await svc.list_tasks_cached(
        identity,
        TaskFilters(owner_id=owner, status=status, search=search or None),
        normalize_page(page, limit),
    )
    return {"success": True, "source": result.source, **result.payload}


@router.get("/{task_id}")
async def get_task(
    task_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TaskService = Depends(_task_svc),
):
    """Get a single task by ID."""
    task = await svc.get_task(identity, task_id)
    return {"success": True, "data": TaskRead.model_validate(task)}


@router.post("", status_code=201)
async def create_task(
    body: TaskCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TaskService = Depends(_task_svc),
):
    """Create a task owned by the caller."""
    task = await svc.create_task(
        identity,
        title=body.title,
        description=body.description,
        status=body.status,
    )
    return {
        "success": True,
        "message": "Task created",
        "data": TaskRead.model_validate(task),
    }


@router.put("/{task_id}")
async def update_task(
    task_id: uuid.UUID,
    body: TaskUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TaskService = Depends(_task_svc),
):
    """Partially update a task (title, description, status)."""
    task = await svc.update_task(
        identity,
        task_id,
        body.model_dump(exclude_unset=True),
    )
    return {
        "success": True,
        "message": "Task updated",
        "data": TaskRead.model_validate(task),
    }


@router.delete("/{task_id}")
async def delete_task(
    task_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TaskService = Depends(_task_svc),
):
    """Delete a task."""
    await svc.delete_task(identity, task_id)
    return {"success": True, "message": "Task deleted"}
