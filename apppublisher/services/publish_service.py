"""
Publish Service

Creates or updates an app record in the datastore of the requested
environment. Two creation policies are supported:

- ``upsert``: update the fields the caller supplied when the app exists,
  otherwise insert it (all creation fields required).
- ``strict_update``: only ever update ``app_code`` of an existing app; an
  unknown app is reported as not found.

Statements are built with SQLAlchemy Core. Update SET clauses come from an
ordered list of ``(column, value)`` pairs and every value is a bound
parameter, so the clause order and the bound value order always match.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, ClassVar, Optional, Union

from sqlalchemy import Column, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlalchemy.sql.dml import Insert, Update

from apppublisher.core.config import CreationPolicy
from apppublisher.core.database import Datastore
from apppublisher.core.exceptions import (
    AppNotFoundError,
    StoreFailureError,
    UnknownEnvironmentError,
    ValidationFailedError,
)
from apppublisher.models.app import app_table
from apppublisher.models.schemas import AppDescriptor
from apppublisher.services.environment_router import DatastoreEndpoint, EnvironmentRouter

logger = logging.getLogger(__name__)


# Fields a publish may change on an existing app, in SET clause order.
# Descriptor attribute names match the column names.
UPDATABLE_FIELDS: tuple[str, ...] = (
    "app_name",
    "app_version",
    "app_code",
    "has_triggers",
    "has_actions",
    "git_sha",
    "tags",
)

# Required when an app is created: (attribute, wire name)
CREATION_TEXT_FIELDS: tuple[tuple[str, str], ...] = (
    ("app_name", "appName"),
    ("app_version", "appVersion"),
    ("app_code", "appCode"),
)
CREATION_FLAG_FIELDS: tuple[tuple[str, str], ...] = (
    ("has_triggers", "hasTriggers"),
    ("has_actions", "hasActions"),
)


@dataclass(frozen=True)
class Created:
    app_id: str
    created_at: datetime

    action: ClassVar[str] = "created"

    @property
    def timestamp(self) -> datetime:
        return self.created_at


@dataclass(frozen=True)
class Updated:
    app_id: str
    updated_at: datetime

    action: ClassVar[str] = "updated"

    @property
    def timestamp(self) -> datetime:
        return self.updated_at


PublishResult = Union[Created, Updated]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _store_error_message(exc: Exception) -> str:
    """The datastore's own message, without SQLAlchemy's wrapping."""
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


def build_update_values(descriptor: AppDescriptor, now: datetime) -> list[tuple[Column, Any]]:
    """
    Ordered ``(column, value)`` pairs for the fields present in ``descriptor``.

    ``updated_at`` is always appended last.

    Raises:
        ValidationFailedError: no updatable field is present
    """
    pairs: list[tuple[Column, Any]] = [
        (app_table.c[name], getattr(descriptor, name))
        for name in UPDATABLE_FIELDS
        if descriptor.is_present(name)
    ]
    if not pairs:
        raise ValidationFailedError("No fields provided to update")

    pairs.append((app_table.c.updated_at, now))
    return pairs


def build_update_statement(app_id: str, pairs: list[tuple[Column, Any]]) -> Update:
    return (
        update(app_table)
        .where(app_table.c.app_id == app_id)
        .ordered_values(*pairs)
        .returning(app_table.c.app_id, app_table.c.updated_at)
    )


def build_insert_statement(descriptor: AppDescriptor, now: datetime) -> Insert:
    return (
        insert(app_table)
        .values(
            app_id=descriptor.app_id,
            app_name=descriptor.app_name,
            app_version=descriptor.app_version,
            app_code=descriptor.app_code,
            has_triggers=descriptor.has_triggers,
            has_actions=descriptor.has_actions,
            git_sha=descriptor.git_sha,
            tags=descriptor.tags if descriptor.tags is not None else [],
            created_at=now,
            updated_at=now,
        )
        .returning(app_table.c.app_id, app_table.c.created_at)
    )


def missing_creation_fields(descriptor: AppDescriptor) -> list[str]:
    """Wire names of the fields a new app still needs."""
    missing = [
        wire_name
        for name, wire_name in CREATION_TEXT_FIELDS
        if not getattr(descriptor, name)
    ]
    missing.extend(
        wire_name
        for name, wire_name in CREATION_FLAG_FIELDS
        if getattr(descriptor, name) is None
    )
    return missing


class PublishService:
    """Publish orchestrator for a single creation policy."""

    def __init__(
        self,
        policy: CreationPolicy = CreationPolicy.STRICT_UPDATE,
        clock: Callable[[], datetime] = utcnow,
        datastore_factory: Optional[Callable[[DatastoreEndpoint], Datastore]] = None,
    ):
        self.policy = CreationPolicy(policy)
        self.clock = clock
        self.datastore_factory = datastore_factory or (
            lambda endpoint: Datastore(endpoint.url, name=endpoint.env)
        )

    async def publish_descriptor(
        self,
        descriptor: AppDescriptor,
        router: EnvironmentRouter,
    ) -> PublishResult:
        """Route ``descriptor`` to its environment's datastore and publish it."""
        if not descriptor.app_id:
            raise ValidationFailedError("Missing required fields: env, appId", fields=["appId"])

        endpoint = router.resolve(descriptor.env)
        if endpoint is None:
            raise UnknownEnvironmentError(descriptor.env)

        return await self.publish(descriptor, self.datastore_factory(endpoint))

    async def publish(self, descriptor: AppDescriptor, datastore: Datastore) -> PublishResult:
        """
        Create or update the app described by ``descriptor`` in ``datastore``.

        Opens exactly one connection, released on every exit path.

        Raises:
            ValidationFailedError: required fields missing or nothing to update
            AppNotFoundError: strict policy and no such app
            StoreFailureError: any datastore error, message passed through
        """
        if not descriptor.app_id:
            raise ValidationFailedError("Missing required fields: env, appId", fields=["appId"])

        if self.policy == CreationPolicy.STRICT_UPDATE and descriptor.app_code is None:
            raise ValidationFailedError("Missing required fields: appCode", fields=["appCode"])

        try:
            async with datastore.connect() as conn:
                async with conn.begin():
                    if self.policy == CreationPolicy.STRICT_UPDATE:
                        result = await self._update_code(conn, descriptor)
                    else:
                        result = await self._upsert(conn, descriptor)
        except SQLAlchemyError as exc:
            logger.error(f"Publish of {descriptor.app_id} to {datastore.name} failed: {exc}")
            raise StoreFailureError(_store_error_message(exc), operation="publish") from exc
        except OSError as exc:
            # Driver-level connect failures (refused, DNS) are not wrapped by SQLAlchemy
            logger.error(f"Cannot reach datastore {datastore.name}: {exc}")
            raise StoreFailureError(str(exc), operation="connect") from exc

        logger.info(
            f"App {result.app_id} {result.action} in {datastore.name}",
            extra={"app_id": result.app_id, "action": result.action},
        )
        return result

    async def _update_code(self, conn: AsyncConnection, descriptor: AppDescriptor) -> Updated:
        pairs = [
            (app_table.c.app_code, descriptor.app_code),
            (app_table.c.updated_at, self.clock()),
        ]
        row = (await conn.execute(build_update_statement(descriptor.app_id, pairs))).first()
        if row is None:
            raise AppNotFoundError(descriptor.app_id)
        return Updated(app_id=row.app_id, updated_at=row.updated_at)

    async def _upsert(self, conn: AsyncConnection, descriptor: AppDescriptor) -> PublishResult:
        exists = await conn.execute(
            select(app_table.c.app_id).where(app_table.c.app_id == descriptor.app_id)
        )
        if exists.first() is not None:
            return await self._update_fields(conn, descriptor)
        return await self._create(conn, descriptor)

    async def _update_fields(self, conn: AsyncConnection, descriptor: AppDescriptor) -> Updated:
        pairs = build_update_values(descriptor, self.clock())
        row = (await conn.execute(build_update_statement(descriptor.app_id, pairs))).one_or_none()
        if row is None:
            # Existence was confirmed in this transaction
            raise StoreFailureError(
                f"Update of app {descriptor.app_id} matched no rows",
                operation="update",
            )
        return Updated(app_id=row.app_id, updated_at=row.updated_at)

    async def _create(self, conn: AsyncConnection, descriptor: AppDescriptor) -> Created:
        missing = missing_creation_fields(descriptor)
        if missing:
            raise ValidationFailedError(
                f"{', '.join(missing)} required when creating a new app",
                fields=missing,
            )
        row = (await conn.execute(build_insert_statement(descriptor, self.clock()))).one()
        return Created(app_id=row.app_id, created_at=row.created_at)
