"""Element routes: registry reads, model links and the transfer workflow.

Fixed paths (``/elements/qr/...``, ``/elements/check-linking/...``) are
declared before ``/elements/{element_id}`` so they are not captured by it.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Body, Depends, Query, status

from twx.db.connection import get_session
from twx.inspections.ledger import InspectionLedger
from twx.mapping.directory import MappingDirectory
from twx.models import (
    Actor,
    ApprovalResult,
    Element,
    ElementDetails,
    ElementStatus,
    Inspection,
    LinkStatus,
    ModelMapping,
    TransferRecord,
    TransferResult,
)
from twx.registry.service import AssetRegistry
from twx.web.auth import require_actor
from twx.web.dependencies import get_element_id
from twx.web.models import (
    ApprovalRequest,
    LinkRequest,
    ReceiveRequest,
    RegisterElementRequest,
    StatusChangeRequest,
    TransferRequest,
)
from twx.workflow.engine import TransferWorkflow

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/elements", tags=["elements"])


@router.get("", response_model=list[Element])
async def list_elements(
    project_id: str | None = Query(default=None, alias="projectId"),
    element_status: ElementStatus | None = Query(default=None, alias="status"),
    ifc_type: str | None = Query(default=None, alias="ifcType"),
    actor: Actor = Depends(require_actor),
):
    """List registered elements, newest first."""
    async with get_session() as session:
        elements = await AssetRegistry(session).list(
            project_id=project_id, status=element_status, ifc_type=ifc_type
        )
        return [Element.model_validate(e) for e in elements]


@router.post("", response_model=Element, status_code=status.HTTP_201_CREATED)
async def register_element(
    body: RegisterElementRequest,
    actor: Actor = Depends(require_actor),
):
    """Register a new element and open its project history."""
    async with get_session() as session:
        element = await AssetRegistry(session).register(
            ifc_type=body.ifc_type,
            project_id=body.project_id,
            condition=body.condition,
            actor=actor,
            attributes=body.attributes(),
        )
        return Element.model_validate(element)


@router.get("/qr/{code}", response_model=Element)
async def get_element_by_scan_code(code: str, actor: Actor = Depends(require_actor)):
    async with get_session() as session:
        element = await AssetRegistry(session).get_by_scan_code(code)
        return Element.model_validate(element)


@router.get("/check-linking/{external_element_id}", response_model=LinkStatus)
async def check_linking(external_element_id: str, actor: Actor = Depends(require_actor)):
    """Which asset, if any, an external model object is linked to."""
    async with get_session() as session:
        return await MappingDirectory(session).check_linking(external_element_id)


@router.get("/{element_id}", response_model=Element)
async def get_element(
    element_id: UUID = Depends(get_element_id),
    actor: Actor = Depends(require_actor),
):
    async with get_session() as session:
        element = await AssetRegistry(session).get(element_id)
        return Element.model_validate(element)


@router.put("/{element_id}", response_model=Element)
async def update_element(
    changes: dict[str, Any] = Body(...),
    element_id: UUID = Depends(get_element_id),
    actor: Actor = Depends(require_actor),
):
    """Partially update descriptive attributes."""
    async with get_session() as session:
        element = await AssetRegistry(session).update(element_id, changes, actor)
        return Element.model_validate(element)


@router.get("/{element_id}/details", response_model=ElementDetails)
async def get_element_details(
    element_id: UUID = Depends(get_element_id),
    actor: Actor = Depends(require_actor),
):
    async with get_session() as session:
        return await AssetRegistry(session).details(element_id)


@router.get("/{element_id}/history", response_model=list[TransferRecord])
async def get_element_history(
    element_id: UUID = Depends(get_element_id),
    actor: Actor = Depends(require_actor),
):
    async with get_session() as session:
        records = await TransferWorkflow(session).history(element_id)
        return [TransferRecord.model_validate(r) for r in records]


@router.get("/{element_id}/inspections", response_model=list[Inspection])
async def get_element_inspections(
    element_id: UUID = Depends(get_element_id),
    actor: Actor = Depends(require_actor),
):
    async with get_session() as session:
        element = await AssetRegistry(session).get(element_id)
        inspections = await InspectionLedger(session).list_for_element(str(element.id))
        return [Inspection.model_validate(i) for i in inspections]


@router.get("/{element_id}/link", response_model=list[ModelMapping])
async def list_element_links(
    element_id: UUID = Depends(get_element_id),
    project_id: str | None = Query(default=None, alias="projectId"),
    actor: Actor = Depends(require_actor),
):
    async with get_session() as session:
        mappings = await MappingDirectory(session).list_mappings(element_id, project_id)
        return [ModelMapping.model_validate(m) for m in mappings]


@router.post(
    "/{element_id}/link",
    response_model=ModelMapping,
    status_code=status.HTTP_201_CREATED,
)
async def link_element(
    body: LinkRequest,
    element_id: UUID = Depends(get_element_id),
    actor: Actor = Depends(require_actor),
):
    """Link an element to an external model object.

    Linking into another project moves the element there.
    """
    async with get_session() as session:
        mapping = await MappingDirectory(session).link(
            element_id,
            project_id=body.project_id,
            external_element_id=body.external_element_id,
            actor=actor,
            external_object_url=body.external_object_url,
            notes=body.notes,
        )
        return ModelMapping.model_validate(mapping)


@router.post("/{element_id}/transfer", response_model=TransferResult)
async def request_transfer(
    body: TransferRequest,
    element_id: UUID = Depends(get_element_id),
    actor: Actor = Depends(require_actor),
):
    async with get_session() as session:
        workflow = TransferWorkflow(session)
        record = await workflow.request_transfer(
            element_id,
            body.destination_project_id,
            actor,
            transfer_condition=body.transfer_condition,
            condition_notes=body.condition_notes,
            transfer_inspection_id=body.transfer_inspection_id,
        )
        element = await workflow.registry.get(element_id)
        if record is None:
            message = "Element is already in the destination project"
        else:
            message = "Transfer initiated. Awaiting project manager approvals."
        return TransferResult(
            message=message,
            element=Element.model_validate(element),
            record=TransferRecord.model_validate(record) if record else None,
        )


@router.post("/{element_id}/approve", response_model=ApprovalResult)
async def approve_transfer(
    body: ApprovalRequest,
    element_id: UUID = Depends(get_element_id),
    actor: Actor = Depends(require_actor),
):
    async with get_session() as session:
        record, both_approved = await TransferWorkflow(session).approve(
            element_id, body.project_id, body.role, actor
        )
        return ApprovalResult(
            message=f"{body.role} project manager approval recorded",
            record=TransferRecord.model_validate(record),
            both_approved=both_approved,
        )


@router.post("/{element_id}/receive", response_model=TransferResult)
async def receive_element(
    body: ReceiveRequest,
    element_id: UUID = Depends(get_element_id),
    actor: Actor = Depends(require_actor),
):
    """Complete an approved transfer on physical receipt."""
    async with get_session() as session:
        element = await TransferWorkflow(session).receive(
            element_id,
            body.project_id,
            body.received_condition,
            actor,
            condition_notes=body.condition_notes,
            actual_location=body.actual_location,
            receipt_inspection_id=body.receipt_inspection_id,
        )
        return TransferResult(
            message="Element received and activated",
            element=Element.model_validate(element),
        )


@router.post("/{element_id}/status", response_model=Element)
async def change_element_status(
    body: StatusChangeRequest,
    element_id: UUID = Depends(get_element_id),
    actor: Actor = Depends(require_actor),
):
    """Move an element into storage, back out, into retirement or to scrap."""
    async with get_session() as session:
        element = await TransferWorkflow(session).change_status(
            element_id, body.status, actor
        )
        return Element.model_validate(element)
