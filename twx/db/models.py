"""SQLAlchemy async database models for TWX.

Partial unique indexes carry the workflow invariants: one active mapping per
element, one active history row per element, one pending transfer per
(element, project).
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class ProjectModel(Base):
    """Construction project (external entity, referenced by id)."""

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="active")
    model_url: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    last_modified: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        Index("idx_projects_status", "status"),
        Index("idx_projects_last_modified", "last_modified"),
    )


class ElementModel(Base):
    """Physical temporary-works asset tracked across projects."""

    __tablename__ = "elements"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    asset_number: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    ifc_type: Mapped[str] = mapped_column(String(100), nullable=False)
    scan_code: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    # Workflow-owned state
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="active")
    current_project_id: Mapped[str | None] = mapped_column(String(255))
    current_condition: Mapped[str | None] = mapped_column(String(50))

    # Descriptive attributes
    asset_type: Mapped[str | None] = mapped_column(String(100))
    category: Mapped[str | None] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text)
    manufacturer: Mapped[str | None] = mapped_column(String(255))
    serial_number: Mapped[str | None] = mapped_column(String(255))
    rfid_tag: Mapped[str | None] = mapped_column(String(255))
    specifications: Mapped[dict | None] = mapped_column(JSON)
    purchase_date: Mapped[date | None] = mapped_column(Date)
    purchase_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    remarks: Mapped[str | None] = mapped_column(Text)

    # Audit
    created_by_user_id: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'in_transit', 'in_storage', 'retired', 'scrapped')",
            name="check_element_status",
        ),
        Index("idx_elements_current_project", "current_project_id"),
        Index("idx_elements_status", "status"),
        Index("idx_elements_ifc_type", "ifc_type"),
    )


class AssetCounterModel(Base):
    """Last issued asset number suffix per IFC type."""

    __tablename__ = "asset_counters"

    ifc_type: Mapped[str] = mapped_column(String(100), primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("last_value > 0", name="check_counter_positive"),
    )


class TransferRecordModel(Base):
    """Append-only element project history with transfer approvals."""

    __tablename__ = "transfer_records"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    element_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("elements.id"), nullable=False
    )
    project_id: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    transferred_from_project_id: Mapped[str | None] = mapped_column(String(255))

    # Request
    requested_by_user_id: Mapped[str | None] = mapped_column(String(255))
    requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Dual sign-off
    source_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    source_approver_id: Mapped[str | None] = mapped_column(String(255))
    source_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    destination_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    destination_approver_id: Mapped[str | None] = mapped_column(String(255))
    destination_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Receipt / departure
    received_condition: Mapped[str | None] = mapped_column(String(50))
    transferred_condition: Mapped[str | None] = mapped_column(String(50))
    condition_notes: Mapped[str | None] = mapped_column(Text)
    actual_location: Mapped[str | None] = mapped_column(Text)
    receipt_inspection_id: Mapped[str | None] = mapped_column(String(255))
    transfer_inspection_id: Mapped[str | None] = mapped_column(String(255))

    activated_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deactivated_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_via: Mapped[str | None] = mapped_column(String(50))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending_approval', 'active', 'completed')",
            name="check_transfer_status",
        ),
        Index("idx_transfer_element", "element_id"),
        Index("idx_transfer_element_project", "element_id", "project_id"),
        # At most one open request per (element, target project)
        Index(
            "idx_transfer_pending_unique",
            "element_id",
            "project_id",
            unique=True,
            postgresql_where=text("status = 'pending_approval'"),
            sqlite_where=text("status = 'pending_approval'"),
        ),
        # An element occupies at most one project at a time
        Index(
            "idx_transfer_active_unique",
            "element_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )


class ModelMappingModel(Base):
    """Link from an element to an object in an external BIM model."""

    __tablename__ = "model_mappings"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    element_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("elements.id"), nullable=False
    )
    project_id: Mapped[str] = mapped_column(String(255), nullable=False)
    external_element_id: Mapped[str] = mapped_column(String(255), nullable=False)
    external_object_url: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    mapped_by_user_id: Mapped[str | None] = mapped_column(String(255))
    mapped_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (
        Index("idx_mapping_external", "external_element_id"),
        Index("idx_mapping_element_project", "element_id", "project_id"),
        # At most one active mapping per element
        Index(
            "idx_mapping_active_unique",
            "element_id",
            unique=True,
            postgresql_where=text("is_active = true"),
            sqlite_where=text("is_active = 1"),
        ),
    )


class InspectionModel(Base):
    """Inspection record, one per (element, project), versioned on every filing."""

    __tablename__ = "inspections"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    element_id: Mapped[str] = mapped_column(String(255), nullable=False)
    project_id: Mapped[str] = mapped_column(String(255), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    inspector: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    notes: Mapped[str | None] = mapped_column(Text)
    date: Mapped[str] = mapped_column(String(50), nullable=False)
    last_modified_by: Mapped[str] = mapped_column(String(255), nullable=False, default="user")
    global_element_id: Mapped[str | None] = mapped_column(String(255))
    inspection_type: Mapped[str | None] = mapped_column(String(50))

    # Server-assigned only
    created_by_user_id: Mapped[str | None] = mapped_column(String(255))
    last_modified_by_user_id: Mapped[str | None] = mapped_column(String(255))
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Flexible attributes for domain-specific data
    attributes: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("element_id", "project_id", name="uq_inspection_element_project"),
        Index("idx_inspections_project_id", "project_id"),
        Index("idx_inspections_global_element", "global_element_id"),
        Index("idx_inspections_timestamp", "timestamp"),
    )
