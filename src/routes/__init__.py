"""API routes package.

This package contains all FastAPI route modules organized by resource.
Routers carry no version prefix; the application mounts them once per
supported API version.
"""

from src.routes.groups import router as groups_router
from src.routes.health import router as health_router
from src.routes.homes import router as homes_router
from src.routes.profile import router as profile_router
from src.routes.users import router as users_router

# Routers mounted under every /api/v<N> prefix
VERSIONED_ROUTERS = (
    health_router,
    users_router,
    profile_router,
    homes_router,
    groups_router,
)

__all__ = [
    "VERSIONED_ROUTERS",
    "groups_router",
    "health_router",
    "homes_router",
    "profile_router",
    "users_router",
]
