"""
Main API Router Aggregator

Collects the endpoint routers. The publish endpoint is mounted at the root so
its path stays ``/publish``.
"""

from fastapi import APIRouter

from apppublisher.api.v1.health import router as health_router
from apppublisher.api.v1.publish import router as publish_router

api_router = APIRouter()

api_router.include_router(publish_router, tags=["Publish"])
api_router.include_router(health_router, tags=["Health"])
