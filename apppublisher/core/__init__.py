"""
Core module - Application infrastructure and configuration.
"""

from apppublisher.core.config import CreationPolicy, settings
from apppublisher.core.database import Base, Datastore, get_engine
from apppublisher.core.exceptions import (
    AppNotFoundError,
    MalformedInputError,
    PublishError,
    StoreFailureError,
    UnknownEnvironmentError,
    ValidationFailedError,
)

__all__ = [
    "settings",
    "CreationPolicy",
    "Base",
    "Datastore",
    "get_engine",
    "PublishError",
    "MalformedInputError",
    "ValidationFailedError",
    "UnknownEnvironmentError",
    "AppNotFoundError",
    "StoreFailureError",
]
