"""TWX Pydantic models for type-safe data validation.

Closed vocabularies (status, condition, approval role) are ``str`` Enums so
that illegal values are rejected at the boundary. Read models serialise with
camelCase aliases, matching what viewer clients send and expect.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


class ElementStatus(str, Enum):
    ACTIVE = "active"
    IN_TRANSIT = "in_transit"
    IN_STORAGE = "in_storage"
    RETIRED = "retired"
    SCRAPPED = "scrapped"


class TransferStatus(str, Enum):
    PENDING_APPROVAL = "pending_approval"
    ACTIVE = "active"
    COMPLETED = "completed"  # Element has since left this project


class Condition(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"


class ApprovalRole(str, Enum):
    SOURCE = "source"
    DESTINATION = "destination"


class CompletionPath(str, Enum):
    """How a TransferRecord became active."""

    REGISTRATION = "registration"
    DIRECT_LINK = "direct_link"
    APPROVED_RECEIPT = "approved_receipt"


class InspectionType(str, Enum):
    RECEIPT = "receipt"
    PERIODIC = "periodic"
    TRANSFER = "transfer"
    FINAL = "final"
    MAINTENANCE = "maintenance"


COMMON_IFC_TYPES = (
    "IfcBuildingElementProxy",
    "IfcMember",
    "IfcColumn",
    "IfcBeam",
    "IfcSlab",
    "IfcWall",
    "IfcElementAssembly",
    "IfcDiscreteAccessory",
    "IfcPlate",
    "IfcRailing",
)

# Optional inspection attributes kept in the ledger's opaque bag
INSPECTION_ATTRIBUTES = (
    # TW package
    "design_package_number",
    "design_package_description",
    "risk_categories",
    # Planning & scheduling
    "planned_erection_date",
    "planned_dismantle_date",
    "actual_erection_date",
    "actual_dismantle_date",
    # Location & environment
    "planned_location",
    "actual_location",
    "environmental_conditions",
    # Technical requirements
    "loading_criteria",
    "survey_data",
    "material_requirements",
    "installation_method_statement",
    "removal_method_statement",
    # Commercial
    "estimated_quantities",
    "estimated_cost_design",
    "estimated_cost_construction",
    "procurement_reference",
    "budget_comparison",
    "material_cost_codes",
    # Quality & compliance
    "twc_checking_remarks",
    "ice_checking_remarks",
    "material_certificates",
    "lab_test_results",
    "usage_history",
    "overstressing_record",
    # Stakeholders
    "responsible_site_person",
    "temporary_works_coordinator",
    "temporary_works_designer",
    "independent_checking_engineer",
    # Documentation
    "design_documentation_ref",
    "approval_date",
    "construction_completion_date",
    "permit_to_load_date",
    "permit_to_remove_date",
)


class Actor(BaseModel):
    """Resolved identity performing a request."""

    id: str
    email: str | None = None
    display_name: str | None = None


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        protected_namespaces=(),  # Project.model_url
    )


class ElementAttributes(CamelModel):
    """Descriptive element fields a client may set at registration or later."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    asset_type: str | None = None
    category: str | None = None
    description: str | None = None
    manufacturer: str | None = None
    serial_number: str | None = None
    rfid_tag: str | None = None
    specifications: dict[str, Any] | None = None
    purchase_date: date | None = None
    purchase_value: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    remarks: str | None = None


class Element(CamelModel):
    """Registered physical asset."""

    id: UUID
    asset_number: str
    ifc_type: str
    scan_code: str
    status: ElementStatus
    current_project_id: str | None = None
    current_condition: Condition | None = None

    asset_type: str | None = None
    category: str | None = None
    description: str | None = None
    manufacturer: str | None = None
    serial_number: str | None = None
    rfid_tag: str | None = None
    specifications: dict[str, Any] | None = None
    purchase_date: date | None = None
    purchase_value: Decimal | None = None
    remarks: str | None = None

    created_by_user_id: str | None = None
    created_at: datetime
    updated_at: datetime


class TransferRecord(CamelModel):
    """One row of an element's project history."""

    id: UUID
    element_id: UUID
    project_id: str
    status: TransferStatus
    transferred_from_project_id: str | None = None

    requested_by_user_id: str | None = None
    requested_at: datetime | None = None

    source_approved: bool = False
    source_approver_id: str | None = None
    source_approved_at: datetime | None = None
    destination_approved: bool = False
    destination_approver_id: str | None = None
    destination_approved_at: datetime | None = None

    received_condition: Condition | None = None
    transferred_condition: Condition | None = None
    condition_notes: str | None = None
    actual_location: str | None = None
    receipt_inspection_id: str | None = None
    transfer_inspection_id: str | None = None

    activated_date: datetime | None = None
    deactivated_date: datetime | None = None
    completed_via: CompletionPath | None = None

    created_at: datetime
    updated_at: datetime

    @property
    def both_approved(self) -> bool:
        return self.source_approved and self.destination_approved


class ModelMapping(CamelModel):
    """Link between an element and an object in an external BIM model."""

    id: UUID
    element_id: UUID
    project_id: str
    external_element_id: str
    external_object_url: str | None = None
    is_active: bool
    mapped_by_user_id: str | None = None
    mapped_at: datetime
    notes: str | None = None


class LinkedAsset(CamelModel):
    id: UUID
    asset_number: str
    status: ElementStatus
    condition: Condition | None = None
    project_id: str
    is_active: bool


class LinkStatus(CamelModel):
    """Reverse lookup result for an external model object."""

    linked: bool
    asset: LinkedAsset | None = None


class Inspection(CamelModel):
    """Versioned inspection for one (element, project) pair."""

    id: UUID
    element_id: str
    project_id: str
    version: int
    inspector: str
    status: str
    notes: str | None = None
    date: str
    last_modified_by: str
    global_element_id: str | None = None
    inspection_type: str | None = None
    created_by_user_id: str | None = None
    last_modified_by_user_id: str | None = None
    timestamp: datetime
    attributes: dict[str, Any] = Field(default_factory=dict)

    @field_serializer("attributes")
    def _camel_attributes(self, attributes: dict[str, Any]) -> dict[str, Any]:
        return {to_camel(key): value for key, value in attributes.items()}


class Project(CamelModel):
    id: str
    name: str
    status: str
    model_url: str | None = None
    created_at: datetime
    last_modified: datetime


class ElementDetails(CamelModel):
    element: Element
    scan_code_image: str | None = None
    mappings: list[ModelMapping] = Field(default_factory=list)
    inspections: list[Inspection] = Field(default_factory=list)


class ApprovalResult(CamelModel):
    message: str
    record: TransferRecord
    both_approved: bool


class TransferResult(CamelModel):
    """Outcome of a transfer request or receipt."""

    message: str
    element: Element
    record: TransferRecord | None = None


class InspectionExport(CamelModel):
    project_name: str = "TWX Inspection Export"
    project_id: str
    export_date: datetime
    total_inspections: int
    inspections: list[Inspection]
