"""
FastAPI Dependency Injection utilities.

Provides the process-wide environment router and the publish service
configured with the active creation policy. Both come from the settings the
app was created with (``app.state``), never from module globals.
"""

from typing import Annotated

from fastapi import Depends, Request

from apppublisher.core.config import Settings
from apppublisher.services.environment_router import EnvironmentRouter
from apppublisher.services.publish_service import PublishService


def get_app_settings(request: Request) -> Settings:
    """Settings passed to ``create_app``."""
    return request.app.state.settings


def get_environment_router(request: Request) -> EnvironmentRouter:
    """Router built once in ``create_app`` and stored on app state."""
    return request.app.state.environment_router


def get_publish_service(settings: Annotated[Settings, Depends(get_app_settings)]) -> PublishService:
    return PublishService(policy=settings.creation_policy)


SettingsDep = Annotated[Settings, Depends(get_app_settings)]
EnvironmentRouterDep = Annotated[EnvironmentRouter, Depends(get_environment_router)]
PublishServiceDep = Annotated[PublishService, Depends(get_publish_service)]
