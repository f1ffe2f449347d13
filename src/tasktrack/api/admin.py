"""Admin API — platform-wide stats.

Every route here sits behind both gates (see api/__init__.py): a valid
bearer token, and role == "admin".
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tasktrack.db.engine import get_db
from tasktrack.services.user_service import UserService

router = APIRouter(prefix="/admin")


@router.get("/stats")
async def platform_stats(db: AsyncSession = Depends(get_db)):
    """Counts of users, admins and tasks."""
    return {"success": True, "data": await UserService(db).platform_stats()}
