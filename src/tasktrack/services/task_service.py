"""Task service — ownership-scoped task CRUD behind a read-through list cache.

Learn: Two rules hold for every operation here:
1. Ownership: a non-admin caller only ever touches tasks whose owner_id
   is their own user id. For list queries that is enforced by
   scope_filter() (a pure function, tested on its own); for single-task
   operations by _load_owned().
2. Cache coherence: list results may come from the cache, and every
   successful create/update/delete drops the whole list namespace
   before returning. A stale list can't outlive a successful write.

Ownership failures are 403, not 404: the existence of another user's task
is not hidden. That is the current product behaviour; switching to 404
would be a deliberate change.
"""

import math
import uuid
from dataclasses import asdict, dataclass, replace
from typing import Any, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tasktrack.auth.dependencies import CurrentIdentity
from tasktrack.cache import TASK_LIST_PATTERN, NullCache, TaskCache, list_cache_key
from tasktrack.config import settings
from tasktrack.db.models import DEFAULT_TASK_STATUS, Task
from tasktrack.errors import ForbiddenError, NotFoundError
from tasktrack.schemas.task import TaskRead

logger = structlog.get_logger()

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100

MUTABLE_FIELDS = ("title", "description", "status")


# ═══════════════════════════════════════════════════════════
# Query building (pure)
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TaskFilters:
    owner_id: Optional[uuid.UUID] = None
    status: Optional[str] = None
    search: Optional[str] = None


@dataclass(frozen=True)
class Page:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def scope_filter(caller: CurrentIdentity, raw: TaskFilters) -> TaskFilters:
    """Apply the caller's capability to the requested filters.

    Admins see every owner, and may narrow to one. Everyone else is pinned
    to their own tasks, whatever owner they asked for.
    """
    if caller.is_admin:
        return raw
    return replace(raw, owner_id=caller.user_id)


def normalize_page(page: Optional[int] = None, limit: Optional[int] = None) -> Page:
    """Clamp pagination so no request can force an unbounded scan.

    Missing or zero values fall back to the defaults; page < 1 becomes 1;
    limit is clamped into [1, MAX_LIMIT].
    """
    page = max(page or DEFAULT_PAGE, 1)
    limit = min(max(limit or DEFAULT_LIMIT, 1), MAX_LIMIT)
    return Page(page=page, limit=limit)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _conditions(filters: TaskFilters) -> list:
    conditions = []
    if filters.owner_id is not None:
        conditions.append(Task.owner_id == filters.owner_id)
    if filters.status:
        conditions.append(Task.status == filters.status)
    if filters.search:
        conditions.append(
            Task.title.ilike(f"%{_escape_like(filters.search)}%", escape="\\")
        )
    return conditions


# ═══════════════════════════════════════════════════════════
# Results
# ═══════════════════════════════════════════════════════════


@dataclass
class TaskPage:
    items: list[Task]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready {data, meta}, the exact shape stored in the cache."""
        return {
            "data": [
                TaskRead.model_validate(t).model_dump(mode="json") for t in self.items
            ],
            "meta": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "totalPages": self.total_pages,
            },
        }


@dataclass
class CachedList:
    payload: dict[str, Any]
    source: str  # "cache" or "db"


# ═══════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════


class TaskService:
    """Business logic for task CRUD, scoped by caller ownership."""

    def __init__(
        self,
        db: AsyncSession,
        cache: Optional[TaskCache] = None,
        cache_ttl: Optional[int] = None,
    ):
        self.db = db
        self.cache = cache if cache is not None else NullCache()
        self.cache_ttl = cache_ttl or settings.task_list_cache_ttl_seconds

    # ─── Read ────────────────────────────────────────────

    async def list_tasks(
        self,
        caller: CurrentIdentity,
        filters: TaskFilters,
        page: Page,
    ) -> TaskPage:
        """Scoped, filtered, newest-first page of tasks plus the total count."""
        conditions = _conditions(scope_filter(caller, filters))

        count_q = select(func.count()).select_from(Task)
        items_q = (
            select(Task)
            .order_by(Task.created_at.desc(), Task.id.desc())
            .offset(page.offset)
            .limit(page.limit)
        )
        for cond in conditions:
            count_q = count_q.where(cond)
            items_q = items_q.where(cond)

        total = await self.db.scalar(count_q) or 0
        items: list[Task] = []
        # A page past the end is empty; its offset may not even fit a BIGINT.
        if page.offset < total:
            result = await self.db.execute(items_q)
            items = list(result.scalars().all())
        return TaskPage(
            items=items,
            total=total,
            page=page.page,
            limit=page.limit,
        )

    async def list_tasks_cached(
        self,
        caller: CurrentIdentity,
        filters: TaskFilters,
        page: Page,
    ) -> CachedList:
        """list_tasks() through the read-through cache.

        Learn: The key is built from the *scoped* filters and the *clamped*
        page, so "limit=1000" and "limit=100" share an entry, and a user who
        passes someone else's owner id still lands on their own key.
        """
        scoped = scope_filter(caller, filters)
        params = {**asdict(scoped), "page": page.page, "limit": page.limit}
        key = list_cache_key(caller.role, caller.user_id, params)

        cached = await self.cache.get(key)
        if cached is not None:
            return CachedList(payload=cached, source="cache")

        payload = (await self.list_tasks(caller, filters, page)).to_payload()
        await self.cache.set(key, payload, self.cache_ttl)
        return CachedList(payload=payload, source="db")

    async def get_task(self, caller: CurrentIdentity, task_id: uuid.UUID) -> Task:
        return await self._load_owned(caller, task_id, "access")

    # ─── Create ──────────────────────────────────────────

    async def create_task(
        self,
        caller: CurrentIdentity,
        title: str,
        description: str = "",
        status: str = DEFAULT_TASK_STATUS,
    ) -> Task:
        """Create a task owned by the caller. There is no way to pick another owner."""
        task = Task(
            owner_id=caller.user_id,
            title=title,
            description=description,
            status=status,
        )
        self.db.add(task)
        await self.db.commit()
        await self.db.refresh(task)

        await self._invalidate_lists()
        logger.info("tasks.created", task_id=str(task.id), owner_id=str(caller.user_id))
        return task

    # ─── Update ──────────────────────────────────────────

    async def update_task(
        self,
        caller: CurrentIdentity,
        task_id: uuid.UUID,
        changes: dict[str, Any],
    ) -> Task:
        """Apply a partial update. Only title/description/status are writable."""
        task = await self._load_owned(caller, task_id, "update")

        applied = {}
        for field in MUTABLE_FIELDS:
            if changes.get(field) is not None:
                setattr(task, field, changes[field])
                applied[field] = changes[field]

        await self.db.commit()
        await self.db.refresh(task)

        await self._invalidate_lists()
        logger.info("tasks.updated", task_id=str(task.id), fields=sorted(applied))
        return task

    # ─── Delete ──────────────────────────────────────────

    async def delete_task(self, caller: CurrentIdentity, task_id: uuid.UUID) -> None:
        task = await self._load_owned(caller, task_id, "delete")
        await self.db.delete(task)
        await self.db.commit()

        await self._invalidate_lists()
        logger.info("tasks.deleted", task_id=str(task_id))

    # ─── Helpers ─────────────────────────────────────────

    async def _load_owned(
        self,
        caller: CurrentIdentity,
        task_id: uuid.UUID,
        action: str,
    ) -> Task:
        task = await self.db.get(Task, task_id)
        if not task:
            raise NotFoundError("Task not found")
        if not caller.is_admin and task.owner_id != caller.user_id:
            raise ForbiddenError(f"You can only {action} your own tasks")
        return task

    async def _invalidate_lists(self) -> None:
        # Runs after commit. A cache failure must never turn a
        # successful write into an error response.
        try:
            await self.cache.invalidate(TASK_LIST_PATTERN)
        except Exception:
            logger.warning("tasks.cache_invalidation_failed", exc_info=True)
