"""
Custom exceptions for the publish service.

Every failure a caller can observe is one of these. The API layer turns them
into ``{"success": false, "error": <message>}`` responses using the
``status_code`` carried by each class.
"""

from typing import Any, Optional


class PublishError(Exception):
    """Base exception for all publish failures."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "PUBLISH_ERROR",
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        return {
            "success": False,
            "error": self.message,
        }


class MalformedInputError(PublishError):
    """Request body is not JSON or does not match the descriptor schema."""

    status_code = 400

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message=message, code="MALFORMED_INPUT", details=details)


class ValidationFailedError(PublishError):
    """Required fields missing, or nothing to update."""

    status_code = 400

    def __init__(self, message: str, fields: Optional[list[str]] = None):
        super().__init__(
            message=message,
            code="VALIDATION_FAILED",
            details={"fields": fields} if fields else {},
        )
        self.fields = fields or []


class UnknownEnvironmentError(PublishError):
    """Environment tag is not routable to a datastore."""

    status_code = 400

    def __init__(self, env: Optional[str]):
        super().__init__(
            message="Invalid environment",
            code="UNKNOWN_ENVIRONMENT",
            details={"env": env},
        )
        self.env = env


class AppNotFoundError(PublishError):
    """No app record matched the update."""

    status_code = 404

    def __init__(self, app_id: str):
        super().__init__(
            message=f"App not found: {app_id}",
            code="NOT_FOUND",
            details={"app_id": app_id},
        )
        self.app_id = app_id


class StoreFailureError(PublishError):
    """Datastore connection or query failed.

    The message is the datastore's own error text, unclassified.
    """

    status_code = 500

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(
            message=message,
            code="STORE_FAILURE",
            details={"operation": operation} if operation else {},
        )
        self.operation = operation
