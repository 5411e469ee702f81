"""Summary: Application error taxonomy.

Importance: Gives every layer a shared set of machine-readable error kinds.
Alternatives: Raise built-in exceptions and map them at the edges.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Summary: Domain error carrying a code, message, status, and details.

    Importance: Lets use cases pass known failures through to users unchanged.
    Alternatives: Return error tuples from every service call.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload

    @classmethod
    def bad_request(cls, message: str, details: dict[str, Any] | None = None) -> "AppError":
        return cls("BAD_REQUEST", message, 400, details)

    @classmethod
    def unauthorized(cls, message: str = "Unauthorized") -> "AppError":
        return cls("UNAUTHORIZED", message, 401)

    @classmethod
    def forbidden(cls, message: str = "Forbidden") -> "AppError":
        return cls("FORBIDDEN", message, 403)

    @classmethod
    def not_found(cls, message: str = "Resource not found") -> "AppError":
        return cls("NOT_FOUND", message, 404)

    @classmethod
    def conflict(cls, message: str, details: dict[str, Any] | None = None) -> "AppError":
        return cls("CONFLICT", message, 409, details)

    @classmethod
    def validation_error(
        cls, message: str, details: dict[str, Any] | None = None
    ) -> "AppError":
        return cls("VALIDATION_ERROR", message, 422, details)

    @classmethod
    def internal(cls, message: str = "Internal server error") -> "AppError":
        return cls("INTERNAL_ERROR", message, 500)

    @classmethod
    def database(cls, message: str, details: dict[str, Any] | None = None) -> "AppError":
        return cls("DATABASE_ERROR", message, 500, details)

    @classmethod
    def external_service(
        cls, message: str, details: dict[str, Any] | None = None
    ) -> "AppError":
        return cls("EXTERNAL_SERVICE_ERROR", message, 502, details)


class RecordNotFoundError(AppError):
    """Raised when an update or soft delete matches no row."""

    def __init__(self, table: str, record_id: str) -> None:
        super().__init__(
            "NOT_FOUND",
            "Record not found",
            404,
            {"table": table, "id": record_id},
        )


class RecordNotCreatedError(AppError):
    """Raised when an insert does not produce a row."""

    def __init__(self, table: str) -> None:
        super().__init__("DATABASE_ERROR", "Failed to create record", 500, {"table": table})


class ConfigError(ValueError):
    """Summary: Raised when startup configuration is missing or invalid.

    Importance: Aborts startup before any service touches a bad setting.
    Alternatives: Fail lazily on first use of the setting.
    """
