"""Unit tests for TWX Pydantic models."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from twx.models import (
    ApprovalRole,
    Condition,
    ElementAttributes,
    ElementStatus,
    Inspection,
    LinkStatus,
    TransferRecord,
)


class TestEnums:
    def test_condition_values(self):
        assert [c.value for c in Condition] == ["Excellent", "Good", "Fair", "Poor"]

    def test_unknown_condition_rejected(self):
        with pytest.raises(ValueError):
            Condition("Broken")

    def test_status_values(self):
        assert {s.value for s in ElementStatus} == {
            "active",
            "in_transit",
            "in_storage",
            "retired",
            "scrapped",
        }

    def test_roles(self):
        assert ApprovalRole("source") is ApprovalRole.SOURCE
        assert ApprovalRole("destination") is ApprovalRole.DESTINATION


class TestElementAttributes:
    def test_accepts_camel_case(self):
        attrs = ElementAttributes.model_validate(
            {"serialNumber": "SN-1", "purchaseValue": "1250.50", "rfidTag": "RF-9"}
        )

        assert attrs.serial_number == "SN-1"
        assert attrs.purchase_value == Decimal("1250.50")
        assert attrs.rfid_tag == "RF-9"

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            ElementAttributes.model_validate({"colour": "red"})

    def test_purchase_value_precision(self):
        with pytest.raises(ValidationError):
            ElementAttributes.model_validate({"purchaseValue": "1.999"})


class TestReadModels:
    def test_transfer_record_serialises_camel_case(self):
        now = datetime.now(timezone.utc)
        record = TransferRecord(
            id=uuid4(),
            element_id=uuid4(),
            project_id="proj-b",
            status="pending_approval",
            source_approved=True,
            created_at=now,
            updated_at=now,
        )

        data = record.model_dump(by_alias=True)

        assert data["projectId"] == "proj-b"
        assert data["sourceApproved"] is True
        assert data["destinationApproved"] is False
        assert record.both_approved is False

    def test_inspection_attributes_are_camel_cased(self):
        inspection = Inspection(
            id=uuid4(),
            element_id="speckle-obj-1",
            project_id="proj-a",
            version=2,
            inspector="Dana",
            status="pass",
            date="2026-01-15",
            last_modified_by="Dana",
            timestamp=datetime.now(timezone.utc),
            attributes={"permit_to_load_date": "2026-01-20", "loading_criteria": "5kN/m2"},
        )

        data = inspection.model_dump(by_alias=True)

        assert data["elementId"] == "speckle-obj-1"
        assert data["attributes"] == {
            "permitToLoadDate": "2026-01-20",
            "loadingCriteria": "5kN/m2",
        }

    def test_unlinked_status(self):
        assert LinkStatus(linked=False).model_dump(by_alias=True) == {
            "linked": False,
            "asset": None,
        }
