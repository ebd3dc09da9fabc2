"""API route aggregation.

All routers registered here get mounted in main.py under /api/v1.
No auth layer: request submission is public and SSE subscribers are
anonymous.
"""

from fastapi import APIRouter

from droneflow.api.health import router as health_router
from droneflow.api.requests import router as requests_router
from droneflow.realtime.sse import router as events_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(requests_router, tags=["requests"])
api_router.include_router(events_router, tags=["events"])
