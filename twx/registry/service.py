"""Asset registry: canonical Element records."""

from __future__ import annotations

from typing import Any
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel, to_snake
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from twx.config import AppConfig, get_config
from twx.db.models import (
    ElementModel,
    InspectionModel,
    ModelMappingModel,
    TransferRecordModel,
    utcnow,
)
from twx.errors import NotFoundError, ValidationError
from twx.models import (
    Actor,
    CompletionPath,
    Condition,
    Element,
    ElementAttributes,
    ElementDetails,
    ElementStatus,
    Inspection,
    ModelMapping,
    TransferStatus,
)
from twx.registry.numbering import reserve_asset_number, scan_code_for
from twx.rendering.scan_code import render_scan_code_data_url

logger = structlog.get_logger(__name__)

IMMUTABLE_FIELDS = frozenset(
    {"id", "asset_number", "scan_code", "ifc_type", "created_at", "created_by_user_id"}
)
WORKFLOW_FIELDS = frozenset({"status", "current_project_id", "current_condition"})


def parse_condition(value: Condition | str | None, field: str = "condition") -> Condition:
    if value is None or value == "":
        raise ValidationError(field)
    try:
        return Condition(value)
    except ValueError:
        allowed = ", ".join(c.value for c in Condition)
        raise ValidationError(field, f"Invalid {field}: {value!r} (expected one of {allowed})") from None


class AssetRegistry:
    """Registers elements and serves element reads."""

    def __init__(self, session: AsyncSession, config: AppConfig | None = None):
        self.session = session
        self.config = config or get_config()

    async def register(
        self,
        ifc_type: str | None,
        project_id: str | None,
        condition: Condition | str | None,
        actor: Actor,
        attributes: ElementAttributes | None = None,
    ) -> ElementModel:
        """Register a new element in a project.

        The asset number reservation, the element row and the opening history
        record are written in the caller's transaction.

        Raises:
            ValidationError: If ifcType, projectId or condition is missing/invalid
        """
        if not ifc_type:
            raise ValidationError("ifcType")
        if not project_id:
            raise ValidationError("projectId")
        condition = parse_condition(condition)

        # Counter update must be the first write of the transaction
        asset_number = await reserve_asset_number(
            self.session, ifc_type, self.config.workflow
        )
        now = utcnow()

        element = ElementModel(
            asset_number=asset_number,
            ifc_type=ifc_type.strip(),
            scan_code=scan_code_for(asset_number, self.config.workflow.scan_code_prefix),
            status=ElementStatus.ACTIVE.value,
            current_project_id=project_id,
            current_condition=condition.value,
            created_by_user_id=actor.id,
            created_at=now,
            updated_at=now,
            **(attributes.model_dump() if attributes else {}),
        )
        self.session.add(element)
        await self.session.flush()

        self.session.add(
            TransferRecordModel(
                element_id=element.id,
                project_id=project_id,
                status=TransferStatus.ACTIVE.value,
                activated_date=now,
                received_condition=condition.value,
                requested_by_user_id=actor.id,
                requested_at=now,
                completed_via=CompletionPath.REGISTRATION.value,
            )
        )
        await self.session.flush()

        logger.info(
            "element_registered",
            element_id=str(element.id),
            asset_number=asset_number,
            project_id=project_id,
            actor=actor.id,
        )
        return element

    async def get(self, element_id: UUID, for_update: bool = False) -> ElementModel:
        """Fetch an element by id.

        Args:
            for_update: Lock the row (PostgreSQL) for a read-modify-write

        Raises:
            NotFoundError: If the element does not exist
        """
        stmt = select(ElementModel).where(ElementModel.id == element_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        element = result.scalar_one_or_none()
        if element is None:
            raise NotFoundError("element", element_id)
        return element

    async def get_by_scan_code(self, code: str) -> ElementModel:
        result = await self.session.execute(
            select(ElementModel).where(ElementModel.scan_code == code)
        )
        element = result.scalar_one_or_none()
        if element is None:
            raise NotFoundError("element for scan code", code)
        return element

    async def list(
        self,
        project_id: str | None = None,
        status: ElementStatus | None = None,
        ifc_type: str | None = None,
    ) -> list[ElementModel]:
        stmt = select(ElementModel)
        if project_id:
            stmt = stmt.where(ElementModel.current_project_id == project_id)
        if status:
            stmt = stmt.where(ElementModel.status == ElementStatus(status).value)
        if ifc_type:
            stmt = stmt.where(ElementModel.ifc_type == ifc_type)
        stmt = stmt.order_by(ElementModel.created_at.desc())

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def update(
        self, element_id: UUID, changes: dict[str, Any], actor: Actor
    ) -> ElementModel:
        """Partially update descriptive attributes.

        Keys may be camelCase or snake_case.

        Raises:
            NotFoundError: If the element does not exist
            ValidationError: If a change touches an immutable, workflow-owned
                or unknown field, or carries an invalid value
        """
        normalized: dict[str, Any] = {}
        for key, value in changes.items():
            name = to_snake(key)
            if name in IMMUTABLE_FIELDS:
                raise ValidationError(to_camel(name), f"Field is immutable: {to_camel(name)}")
            if name in WORKFLOW_FIELDS:
                raise ValidationError(
                    to_camel(name),
                    f"Field is managed by the transfer workflow: {to_camel(name)}",
                )
            normalized[name] = value

        try:
            parsed = ElementAttributes.model_validate(normalized)
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            field = to_camel(str(first["loc"][0])) if first["loc"] else "body"
            raise ValidationError(field, f"Invalid field {field}: {first['msg']}") from None

        element = await self.get(element_id, for_update=True)
        for name in normalized:
            setattr(element, name, getattr(parsed, name))
        element.updated_at = utcnow()
        await self.session.flush()

        logger.info(
            "element_updated",
            element_id=str(element.id),
            fields=sorted(normalized),
            actor=actor.id,
        )
        return element

    async def details(self, element_id: UUID) -> ElementDetails:
        """Element with all its model mappings, linked inspections and tag image.

        Inspections are linked when filed against one of the element's mapped
        external ids or against the element id itself. A tag rendering failure
        yields no image rather than failing the read.
        """
        element = await self.get(element_id)

        mappings_result = await self.session.execute(
            select(ModelMappingModel)
            .where(ModelMappingModel.element_id == element.id)
            .order_by(ModelMappingModel.mapped_at.desc())
        )
        mappings = list(mappings_result.scalars().all())

        external_ids = {m.external_element_id for m in mappings}
        criteria = [InspectionModel.global_element_id == str(element.id)]
        if external_ids:
            criteria.append(InspectionModel.element_id.in_(external_ids))
        inspections_result = await self.session.execute(
            select(InspectionModel)
            .where(or_(*criteria))
            .order_by(InspectionModel.timestamp.desc())
        )
        inspections = inspections_result.scalars().all()

        return ElementDetails(
            element=Element.model_validate(element),
            scan_code_image=scan_code_image(element.scan_code),
            mappings=[ModelMapping.model_validate(m) for m in mappings],
            inspections=[Inspection.model_validate(i) for i in inspections],
        )


def scan_code_image(code: str) -> str | None:
    """Tag image as a data URL, or None if it could not be rendered."""
    try:
        return render_scan_code_data_url(code)
    except Exception:
        logger.exception("scan_code_render_failed", scan_code=code)
        return None
