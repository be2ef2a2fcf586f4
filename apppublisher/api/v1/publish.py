"""
Publish API Endpoint

Single write endpoint: create or update an app record in the datastore of the
requested environment.
"""

import logging

from fastapi import APIRouter, Request

from apppublisher.api.deps import EnvironmentRouterDep, PublishServiceDep
from apppublisher.models.schemas import PublishResponse, parse_descriptor

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/publish",
    response_model=PublishResponse,
    response_model_exclude_none=True,
)
async def publish_app(
    request: Request,
    environments: EnvironmentRouterDep,
    service: PublishServiceDep,
) -> PublishResponse:
    """
    Publish an app descriptor.

    The raw body is parsed here rather than by FastAPI so that malformed JSON,
    schema violations and missing required fields map to distinct errors.
    """
    descriptor = parse_descriptor(await request.body())
    result = await service.publish_descriptor(descriptor, environments)

    stamp_field = "created_at" if result.action == "created" else "updated_at"
    return PublishResponse(
        action=result.action,
        environment=descriptor.env,
        app_id=result.app_id,
        timestamp=result.timestamp,
        **{stamp_field: result.timestamp},
    )
