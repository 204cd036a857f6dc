"""Inspection ledger routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from twx.db.connection import get_session
from twx.errors import NotFoundError
from twx.inspections.ledger import InspectionLedger
from twx.models import Actor, Inspection, InspectionExport
from twx.web.auth import require_actor
from twx.web.models import InspectionFiling

router = APIRouter(prefix="/inspections", tags=["inspections"])


@router.get("", response_model=list[Inspection])
async def list_inspections(
    project_id: str | None = Query(default=None, alias="projectId"),
    actor: Actor = Depends(require_actor),
):
    async with get_session() as session:
        rows = await InspectionLedger(session).list_by_project(project_id)
        return [Inspection.model_validate(row) for row in rows]


@router.post("", response_model=Inspection)
async def file_inspection(
    body: InspectionFiling,
    actor: Actor = Depends(require_actor),
):
    """Create or update the inspection for an (element, project) pair."""
    async with get_session() as session:
        record = await InspectionLedger(session).upsert(
            body.element_id, body.project_id, body.payload(), actor
        )
        return Inspection.model_validate(record)


@router.get("/export", response_model=InspectionExport)
async def export_inspections(
    project_id: str | None = Query(default=None, alias="projectId"),
    actor: Actor = Depends(require_actor),
):
    """JSON export of all inspections, optionally for one project."""
    async with get_session() as session:
        return await InspectionLedger(session).export(project_id)


@router.get("/element/{element_id}", response_model=Inspection)
async def get_inspection_for_element(
    element_id: str,
    project_id: str | None = Query(default=None, alias="projectId"),
    actor: Actor = Depends(require_actor),
):
    async with get_session() as session:
        record = await InspectionLedger(session).get(element_id, project_id)
        if record is None:
            raise NotFoundError("inspection", element_id)
        return Inspection.model_validate(record)
