"""
Models module - ORM table and request/response schemas.
"""

from apppublisher.models.app import AppRecord
from apppublisher.models.schemas import AppDescriptor, PublishResponse

__all__ = ["AppRecord", "AppDescriptor", "PublishResponse"]
