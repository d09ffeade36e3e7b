from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    """Base for failures surfaced to clients as ``{ok: false, error: {...}}``."""

    code = "INTERNAL_ERROR"
    status = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(ServiceError):
    code = "VALIDATION_ERROR"
    status = 400


class UnknownFieldError(ValidationError):
    """A patch named a field outside the allow-list; raised before any field rule runs."""


class NotFoundError(ServiceError):
    code = "NOT_FOUND"
    status = 404


class VersionConflictError(ServiceError):
    code = "VERSION_CONFLICT"
    status = 409

    def __init__(self, task_id: str, current_version: int, expected_version: int | None = None) -> None:
        details: dict[str, Any] = {"taskId": task_id, "currentVersion": current_version}
        if expected_version is not None:
            details["expectedVersion"] = expected_version
        super().__init__(f"Task {task_id} is at version {current_version}", details)
        self.current_version = current_version


class MissingIdempotencyKeyError(ServiceError):
    code = "MISSING_IDEMPOTENCY_KEY"
    status = 400

    def __init__(self) -> None:
        super().__init__(
            "Mutating requests require an Idempotency-Key header or idempotencyKey body field"
        )


class IdempotencyConflictError(ServiceError):
    code = "IDEMPOTENCY_CONFLICT"
    status = 409


CORRUPT_STORED_RESPONSE = "CORRUPT_STORED_RESPONSE"
