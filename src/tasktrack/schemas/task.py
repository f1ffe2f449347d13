"""Pydantic schemas for tasks.

Learn: Separate schemas for create/update/read keeps the API clean.
- TaskCreate: what you POST to create a task
- TaskUpdate: what you PUT to modify a task (all optional, partial)
- TaskRead: what the API returns, also the shape stored in the list cache

Neither input schema has an owner field. Unknown keys (owner_id included)
are dropped by pydantic before the service sees them.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from tasktrack.db.models import DEFAULT_TASK_STATUS, TASK_STATUSES

STATUS_PATTERN = "^(" + "|".join(TASK_STATUSES) + ")$"


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    description: str = Field(default="", max_length=1000)
    status: str = Field(default=DEFAULT_TASK_STATUS, pattern=STATUS_PATTERN)

    model_config = {"str_strip_whitespace": True}


class TaskUpdate(BaseModel):
    """Partial update — only fields present in the body are applied."""
    title: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=1000)
    status: Optional[str] = Field(None, pattern=STATUS_PATTERN)

    model_config = {"str_strip_whitespace": True}


class TaskRead(BaseModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    title: str
    description: str
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PageMeta(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class TaskListResponse(BaseModel):
    success: bool = True
    source: str  # "cache" or "db"
    data: list[TaskRead]
    meta: PageMeta
