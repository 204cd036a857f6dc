"""Unit tests for the domain error taxonomy."""

from __future__ import annotations

from twx.errors import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    PreconditionReason,
    UnauthenticatedError,
    ValidationError,
    WorkflowPreconditionError,
)


def test_validation_error_names_field():
    exc = ValidationError("projectId")

    assert exc.status_code == 400
    assert exc.to_payload() == {
        "detail": "Missing required field: projectId",
        "field": "projectId",
    }


def test_not_found_payload():
    exc = NotFoundError("element", "abc")

    assert exc.status_code == 404
    assert exc.to_payload() == {"detail": "Element not found: abc", "resource": "element"}


def test_precondition_payload_includes_approvals():
    exc = WorkflowPreconditionError(
        PreconditionReason.APPROVALS_MISSING,
        "Transfer requires approval from both project managers",
        approvals={"source": True, "destination": False},
    )

    payload = exc.to_payload()

    assert exc.status_code == 400
    assert payload["reason"] == "approvals_missing"
    assert payload["approvals"] == {"source": True, "destination": False}
    assert "currentStatus" not in payload


def test_precondition_payload_includes_current_status():
    exc = WorkflowPreconditionError(
        PreconditionReason.ELEMENT_NOT_TRANSFERABLE,
        "Element cannot be transferred",
        current_status="retired",
    )

    assert exc.to_payload()["currentStatus"] == "retired"


def test_status_codes():
    assert UnauthenticatedError().status_code == 401
    assert ConflictError("race").status_code == 409


def test_persistence_error_hides_message():
    exc = PersistenceError("counter table corrupted")

    assert exc.status_code == 500
    assert exc.to_payload() == {"detail": "Internal server error"}
