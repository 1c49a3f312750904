"""Route modules."""

from .jobs import router as jobs_router
from .media import router as media_router
from .projects import router as projects_router
from .webhooks import router as webhooks_router

__all__ = ["jobs_router", "media_router", "projects_router", "webhooks_router"]
