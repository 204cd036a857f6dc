"""Inspection ledger: one versioned record per (element, project).

Filing an inspection for a pair that already has one merges the new values
over it. The mapper version counter makes every update a compare-and-set on
the stored version, so two concurrent filings never silently overwrite each
other: the loser gets a ConflictError and retries.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from twx.db.models import InspectionModel, utcnow
from twx.errors import ConflictError, ValidationError
from twx.models import Actor, InspectionExport, InspectionType
from twx.models import Inspection as InspectionRead

logger = structlog.get_logger(__name__)

CORE_FIELDS = (
    "inspector",
    "status",
    "notes",
    "date",
    "last_modified_by",
    "global_element_id",
    "inspection_type",
)
REQUIRED_CORE_FIELDS = frozenset({"inspector", "status", "date", "last_modified_by"})

# Never taken from the caller
SERVER_ASSIGNED = frozenset(
    {
        "id",
        "element_id",
        "project_id",
        "version",
        "created_by_user_id",
        "last_modified_by_user_id",
        "timestamp",
    }
)


class InspectionLedger:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert(
        self,
        element_id: str | None,
        project_id: str | None,
        payload: dict[str, Any],
        actor: Actor,
    ) -> InspectionModel:
        """File an inspection, creating or merging the pair's record.

        Args:
            element_id: Inspected object id (usually the external model id)
            project_id: Project the inspection belongs to
            payload: Core fields and optional attributes, snake_case keys
            actor: User filing the inspection

        Returns:
            The persisted record

        Raises:
            ValidationError: If element_id or project_id is blank, or the
                inspection type is unknown
            ConflictError: If a concurrent filing for the pair won the race
        """
        if not element_id or not str(element_id).strip():
            raise ValidationError("elementId")
        if not project_id or not str(project_id).strip():
            raise ValidationError("projectId")

        core, attributes = _split_payload(payload)

        result = await self.session.execute(
            select(InspectionModel)
            .where(
                InspectionModel.element_id == element_id,
                InspectionModel.project_id == project_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()

        if record is None:
            record = InspectionModel(
                element_id=element_id,
                project_id=project_id,
                inspector=core.pop("inspector", None) or "",
                status=core.pop("status", None) or "",
                notes=core.pop("notes", None) or "",
                date=core.pop("date", None) or date.today().isoformat(),
                last_modified_by=core.pop("last_modified_by", None) or "user",
                created_by_user_id=actor.id,
                last_modified_by_user_id=actor.id,
                timestamp=utcnow(),
                attributes=attributes,
                **core,
            )
            self.session.add(record)
            action = "created"
        else:
            for name, value in core.items():
                if value is None and name in REQUIRED_CORE_FIELDS:
                    continue
                setattr(record, name, value)
            if attributes:
                record.attributes = {**(record.attributes or {}), **attributes}
            record.last_modified_by_user_id = actor.id
            record.timestamp = utcnow()
            action = "updated"

        try:
            await self.session.flush()
        except (StaleDataError, IntegrityError) as exc:
            logger.warning(
                "inspection_conflict",
                element_id=element_id,
                project_id=project_id,
                actor=actor.id,
            )
            raise ConflictError(
                "Inspection was modified concurrently; reload and retry"
            ) from exc

        logger.info(
            "inspection_filed",
            element_id=element_id,
            project_id=project_id,
            version=record.version,
            action=action,
            actor=actor.id,
        )
        return record

    async def get(
        self, element_id: str, project_id: str | None = None
    ) -> InspectionModel | None:
        stmt = select(InspectionModel).where(InspectionModel.element_id == element_id)
        if project_id:
            stmt = stmt.where(InspectionModel.project_id == project_id)
        stmt = stmt.order_by(InspectionModel.timestamp.desc()).limit(1)

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_element(self, element_id: str) -> list[InspectionModel]:
        """Inspections filed against an element or its registry id, newest first."""
        result = await self.session.execute(
            select(InspectionModel)
            .where(
                or_(
                    InspectionModel.global_element_id == element_id,
                    InspectionModel.element_id == element_id,
                )
            )
            .order_by(InspectionModel.timestamp.desc())
        )
        return list(result.scalars().all())

    async def list_by_project(self, project_id: str | None = None) -> list[InspectionModel]:
        stmt = select(InspectionModel)
        if project_id:
            stmt = stmt.where(InspectionModel.project_id == project_id)
        stmt = stmt.order_by(InspectionModel.timestamp.desc())

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def export(self, project_id: str | None = None) -> InspectionExport:
        rows = await self.list_by_project(project_id)
        return InspectionExport(
            project_id=project_id or "all",
            export_date=utcnow(),
            total_inspections=len(rows),
            inspections=[InspectionRead.model_validate(row) for row in rows],
        )


def _split_payload(payload: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Separate core columns from the attribute bag, dropping server fields."""
    core: dict[str, Any] = {}
    attributes: dict[str, Any] = {}
    for key, value in payload.items():
        if key in SERVER_ASSIGNED:
            continue
        if key in CORE_FIELDS:
            core[key] = value
        else:
            attributes[key] = value

    inspection_type = core.get("inspection_type")
    if inspection_type:
        try:
            core["inspection_type"] = InspectionType(inspection_type).value
        except ValueError:
            raise ValidationError(
                "inspectionType", f"Invalid inspectionType: {inspection_type!r}"
            ) from None
    return core, attributes
