"""
Publish request/response schemas.

The request body is validated against a fixed schema before it reaches the
publish service. Field presence matters: a key the caller sent (even with an
explicit ``null``) is "present", a key they left out is not. Pydantic tracks
this in ``model_fields_set``.
"""

import json
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictStr,
    ValidationError,
    field_validator,
)

from apppublisher.core.exceptions import MalformedInputError, ValidationFailedError


class AppDescriptor(BaseModel):
    """Caller-supplied desired state of an app for one publish call."""

    # Wire (camelCase) names only; snake_case keys are unknown fields
    model_config = ConfigDict(extra="forbid")

    env: Optional[StrictStr] = None
    app_id: Optional[StrictStr] = Field(None, alias="appId")
    app_name: Optional[StrictStr] = Field(None, alias="appName")
    app_version: Optional[StrictStr] = Field(None, alias="appVersion")
    app_code: Optional[StrictStr] = Field(None, alias="appCode")
    has_triggers: Optional[StrictBool] = Field(None, alias="hasTriggers")
    has_actions: Optional[StrictBool] = Field(None, alias="hasActions")
    git_sha: Optional[StrictStr] = Field(None, alias="gitSha")
    tags: Any = None

    @field_validator("app_name", "app_version", "app_code", "has_triggers", "has_actions")
    @classmethod
    def reject_explicit_null(cls, v: Any) -> Any:
        # Only runs for keys the caller sent; defaults are not validated
        if v is None:
            raise ValueError("may not be null")
        return v

    def is_present(self, field_name: str) -> bool:
        """True when the caller supplied ``field_name`` in the body."""
        return field_name in self.model_fields_set


def _describe_errors(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "body"
        parts.append(f"{location}: {error['msg']}")
    return "Invalid request body: " + "; ".join(parts)


def parse_descriptor(raw: bytes | str) -> AppDescriptor:
    """
    Parse and validate a raw request body.

    Raises:
        MalformedInputError: body is not a JSON object matching the schema
        ValidationFailedError: ``env`` or ``appId`` is missing
    """
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedInputError("Invalid JSON") from exc

    if not isinstance(payload, dict):
        raise MalformedInputError("Request body must be a JSON object")

    try:
        descriptor = AppDescriptor.model_validate(payload)
    except ValidationError as exc:
        raise MalformedInputError(
            _describe_errors(exc),
            details={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc

    if not descriptor.env or not descriptor.app_id:
        raise ValidationFailedError(
            "Missing required fields: env, appId",
            fields=["env", "appId"],
        )

    return descriptor


class PublishResponse(BaseModel):
    """Successful publish response body."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    action: Literal["created", "updated"]
    environment: Optional[str] = None
    app_id: str = Field(..., alias="appId")
    timestamp: datetime
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
