"""
Services module - publish orchestration and environment routing.
"""

from apppublisher.services.environment_router import DatastoreEndpoint, EnvironmentRouter
from apppublisher.services.publish_service import Created, PublishService, Updated

__all__ = [
    "DatastoreEndpoint",
    "EnvironmentRouter",
    "PublishService",
    "Created",
    "Updated",
]
