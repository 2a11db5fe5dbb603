"""API routers.

Exports:
    - health_router: GET /health, /health/ready, /health/live
    - briefs_router: /v1/briefs/{brief_id}
"""

from forge.api.routes.briefs import router as briefs_router
from forge.api.routes.health import router as health_router


__all__ = [
    "briefs_router",
    "health_router",
]
