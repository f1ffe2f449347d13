"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter, so the authentication gate runs before any
handler in the router. The admin router adds the role gate on top.
Health and auth routers are open (no auth required); /auth/me asks for
the identity itself.
"""

from fastapi import APIRouter, Depends

from tasktrack.api.admin import router as admin_router
from tasktrack.api.auth import router as auth_router
from tasktrack.api.health import router as health_router
from tasktrack.api.tasks import router as tasks_router
from tasktrack.auth.dependencies import get_current_user, require_role
from tasktrack.db.models import ROLE_ADMIN

_auth = [Depends(get_current_user)]
_admin = [Depends(require_role(ROLE_ADMIN))]

api_router = APIRouter(prefix="/api/v1")

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes — require a valid bearer token
api_router.include_router(tasks_router, tags=["tasks"], dependencies=_auth)
api_router.include_router(admin_router, tags=["admin"], dependencies=_admin)
