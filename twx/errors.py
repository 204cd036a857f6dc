"""Domain error taxonomy for TWX.

Each error carries the HTTP status it maps to and a JSON payload. Handlers
in ``twx.web.app`` render them; services raise them and never catch them.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class PreconditionReason(str, Enum):
    """Named workflow precondition failures."""

    ELEMENT_NOT_TRANSFERABLE = "element_not_transferable"
    ELEMENT_NOT_IN_TRANSIT = "element_not_in_transit"
    NO_PENDING_TRANSFER = "no_pending_transfer"
    APPROVALS_MISSING = "approvals_missing"
    APPROVAL_REQUIRED = "approval_required"
    ILLEGAL_STATUS_TRANSITION = "illegal_status_transition"


class TwxError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, Any]:
        return {"detail": self.message}


class ValidationError(TwxError):
    """Missing or malformed required field."""

    status_code = 400

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"Missing required field: {field}")
        self.field = field

    def to_payload(self) -> dict[str, Any]:
        return {"detail": self.message, "field": self.field}


class NotFoundError(TwxError):
    status_code = 404

    def __init__(self, resource: str, key: object | None = None):
        message = f"{resource.capitalize()} not found"
        if key is not None:
            message = f"{message}: {key}"
        super().__init__(message)
        self.resource = resource

    def to_payload(self) -> dict[str, Any]:
        return {"detail": self.message, "resource": self.resource}


class UnauthenticatedError(TwxError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class WorkflowPreconditionError(TwxError):
    """A transfer or lifecycle move was attempted from the wrong state.

    ``approvals`` is populated for receipt attempts so clients can show which
    sign-off is outstanding.
    """

    status_code = 400

    def __init__(
        self,
        reason: PreconditionReason,
        message: str,
        approvals: dict[str, bool] | None = None,
        current_status: str | None = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.approvals = approvals
        self.current_status = current_status

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"detail": self.message, "reason": self.reason.value}
        if self.approvals is not None:
            payload["approvals"] = self.approvals
        if self.current_status is not None:
            payload["currentStatus"] = self.current_status
        return payload


class ConflictError(TwxError):
    """A concurrent writer won the race; the caller may retry."""

    status_code = 409


class PersistenceError(TwxError):
    """Unexpected store failure. The message is never sent to clients."""

    status_code = 500

    def to_payload(self) -> dict[str, Any]:
        return {"detail": "Internal server error"}
