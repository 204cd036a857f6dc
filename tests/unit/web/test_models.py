"""Tests for twx.web.models - Request bodies."""

from twx.web.models import (
    ApprovalRequest,
    InspectionFiling,
    LinkRequest,
    ProjectCreate,
    RegisterElementRequest,
)


class TestRegisterElementRequest:
    def test_splits_descriptive_attributes(self):
        body = RegisterElementRequest.model_validate(
            {
                "ifcType": "IfcColumn",
                "projectId": "proj-a",
                "condition": "Good",
                "manufacturer": "PERI",
                "serialNumber": "SN-77",
            }
        )

        attrs = body.attributes()

        assert body.ifc_type == "IfcColumn"
        assert attrs.manufacturer == "PERI"
        assert attrs.serial_number == "SN-77"
        assert attrs.model_dump(exclude_unset=True) == {
            "manufacturer": "PERI",
            "serial_number": "SN-77",
        }

    def test_required_fields_are_left_to_the_service(self):
        body = RegisterElementRequest.model_validate({})
        assert body.ifc_type is None
        assert body.condition is None


class TestLinkRequest:
    def test_accepts_legacy_speckle_keys(self):
        body = LinkRequest.model_validate(
            {
                "projectId": "proj-b",
                "speckleElementId": "obj-1",
                "speckleObjectUrl": "https://app.speckle.systems/projects/x/models/y",
            }
        )

        assert body.external_element_id == "obj-1"
        assert body.external_object_url.endswith("models/y")

    def test_accepts_camel_keys(self):
        body = LinkRequest.model_validate({"projectId": "p", "externalElementId": "obj-2"})
        assert body.external_element_id == "obj-2"


def test_approval_role_accepts_approval_type():
    body = ApprovalRequest.model_validate({"projectId": "proj-b", "approvalType": "source"})
    assert body.role == "source"


class TestInspectionFiling:
    def test_server_fields_are_dropped(self):
        body = InspectionFiling.model_validate(
            {
                "elementId": "obj-1",
                "projectId": "proj-a",
                "inspector": "Dana",
                "createdByUserId": "mallory",
                "lastModifiedByUserId": "mallory",
                "version": 99,
                "permitToLoadDate": "2026-02-01",
            }
        )

        payload = body.payload()

        assert payload == {"inspector": "Dana", "permit_to_load_date": "2026-02-01"}

    def test_payload_only_contains_sent_fields(self):
        body = InspectionFiling.model_validate({"elementId": "obj-1", "projectId": "p"})
        assert body.payload() == {}


def test_project_create_accepts_speckle_url():
    body = ProjectCreate.model_validate(
        {"name": "Bridge", "speckleUrl": "https://app.speckle.systems/projects/abc"}
    )
    assert body.model_url == "https://app.speckle.systems/projects/abc"
