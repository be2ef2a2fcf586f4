"""
Environment Router

Maps a publish environment tag to the datastore that backs it. The mapping is
built once from settings at startup and never changes afterwards; resolving
an environment does no I/O.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from apppublisher.core.config import PUBLISH_ENVIRONMENTS, Settings
from apppublisher.core.database import redact_database_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatastoreEndpoint:
    """Connection target for one environment."""

    env: str
    url: str

    def __repr__(self) -> str:
        return f"DatastoreEndpoint(env={self.env!r}, url={redact_database_url(self.url)!r})"


class EnvironmentRouter:
    """Resolve environment tags to datastore endpoints."""

    def __init__(self, urls: Mapping[str, Optional[str]]):
        endpoints = {}
        for env in PUBLISH_ENVIRONMENTS:
            url = urls.get(env)
            if url:
                endpoints[env] = DatastoreEndpoint(env=env, url=url)
        self._endpoints = MappingProxyType(endpoints)

    @classmethod
    def from_settings(cls, settings: Settings) -> "EnvironmentRouter":
        router = cls(settings.datastore_urls)
        for env in PUBLISH_ENVIRONMENTS:
            endpoint = router.resolve(env)
            if endpoint:
                logger.info(f"Environment {env} -> {redact_database_url(endpoint.url)}")
            else:
                logger.warning(f"Environment {env} has no datastore configured")
        return router

    @property
    def environments(self) -> list[str]:
        """Environments that have a datastore configured."""
        return list(self._endpoints)

    def resolve(self, env: Optional[str]) -> Optional[DatastoreEndpoint]:
        """Return the endpoint for ``env``, or None if it is not routable."""
        if not env:
            return None
        return self._endpoints.get(env)
