"""Request bodies for the TWX HTTP API.

Clients send camelCase keys; snake_case is accepted as well. Required
identifiers are declared optional here so the services can reject them with
a 400 naming the missing field.

Usage:
    from twx.web.models import LinkRequest

    @router.post("/elements/{element_id}/link")
    async def link_element(element_id: UUID, body: LinkRequest):
        ...
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, ConfigDict, Field
from pydantic.alias_generators import to_camel

from twx.models import CamelModel, ElementAttributes


# ============================================================================
# Element Models
# ============================================================================


class RegisterElementRequest(ElementAttributes):
    """Used by: POST /elements"""

    ifc_type: str | None = None
    project_id: str | None = None
    condition: str | None = None

    def attributes(self) -> ElementAttributes:
        return ElementAttributes.model_validate(
            self.model_dump(include=set(ElementAttributes.model_fields), exclude_unset=True)
        )


class LinkRequest(CamelModel):
    """Used by: POST /elements/{id}/link"""

    project_id: str | None = None
    external_element_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "externalElementId", "external_element_id", "speckleElementId"
        ),
    )
    external_object_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "externalObjectUrl", "external_object_url", "speckleObjectUrl"
        ),
    )
    notes: str | None = None


class TransferRequest(CamelModel):
    """Used by: POST /elements/{id}/transfer"""

    destination_project_id: str | None = None
    transfer_condition: str | None = None
    condition_notes: str | None = None
    transfer_inspection_id: str | None = None


class ApprovalRequest(CamelModel):
    """Used by: POST /elements/{id}/approve"""

    project_id: str | None = None
    role: str | None = Field(
        default=None,
        validation_alias=AliasChoices("role", "approvalType", "approval_type"),
    )


class ReceiveRequest(CamelModel):
    """Used by: POST /elements/{id}/receive"""

    project_id: str | None = None
    received_condition: str | None = None
    condition_notes: str | None = None
    actual_location: str | None = None
    receipt_inspection_id: str | None = None


class StatusChangeRequest(CamelModel):
    """Used by: POST /elements/{id}/status"""

    status: str | None = None


# ============================================================================
# Inspection Models
# ============================================================================


class InspectionFiling(CamelModel):
    """Inspection upsert payload.

    Server-assigned keys (id, version, createdByUserId, lastModifiedByUserId,
    timestamp) are not fields and are dropped if sent.

    Used by: POST /inspections
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    element_id: str | None = None
    project_id: str | None = None
    inspector: str | None = None
    status: str | None = None
    notes: str | None = None
    date: str | None = None
    last_modified_by: str | None = None
    global_element_id: str | None = None
    inspection_type: str | None = None

    # TW package
    design_package_number: str | None = None
    design_package_description: str | None = None
    risk_categories: str | None = None

    # Planning & scheduling
    planned_erection_date: str | None = None
    planned_dismantle_date: str | None = None
    actual_erection_date: str | None = None
    actual_dismantle_date: str | None = None

    # Location & environment
    planned_location: str | None = None
    actual_location: str | None = None
    environmental_conditions: str | None = None

    # Technical requirements
    loading_criteria: str | None = None
    survey_data: str | None = None
    material_requirements: str | None = None
    installation_method_statement: str | None = None
    removal_method_statement: str | None = None

    # Commercial
    estimated_quantities: str | None = None
    estimated_cost_design: str | None = None
    estimated_cost_construction: str | None = None
    procurement_reference: str | None = None
    budget_comparison: str | None = None
    material_cost_codes: str | None = None

    # Quality & compliance
    twc_checking_remarks: str | None = None
    ice_checking_remarks: str | None = None
    material_certificates: str | None = None
    lab_test_results: str | None = None
    usage_history: str | None = None
    overstressing_record: str | None = None

    # Stakeholders
    responsible_site_person: str | None = None
    temporary_works_coordinator: str | None = None
    temporary_works_designer: str | None = None
    independent_checking_engineer: str | None = None

    # Documentation
    design_documentation_ref: str | None = None
    approval_date: str | None = None
    construction_completion_date: str | None = None
    permit_to_load_date: str | None = None
    permit_to_remove_date: str | None = None

    def payload(self) -> dict[str, Any]:
        """Fields the client actually sent, minus the pair identifiers."""
        return self.model_dump(exclude_unset=True, exclude={"element_id", "project_id"})


# ============================================================================
# Project Models
# ============================================================================


class ProjectCreate(CamelModel):
    """Used by: POST /projects"""

    name: str | None = None
    model_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("modelUrl", "model_url", "speckleUrl"),
    )
    status: str | None = None
