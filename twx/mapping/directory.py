"""Mapping directory: links elements to objects in external BIM models.

Enforces invariant: at most one active mapping per element. Older mappings
are deactivated, never deleted, so the link history stays auditable.
"""

from __future__ import annotations

from uuid import UUID

import structlog
from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from twx.config import AppConfig, get_config
from twx.db.models import ElementModel, ModelMappingModel, utcnow
from twx.errors import ValidationError
from twx.models import Actor, LinkedAsset, LinkStatus
from twx.registry.service import AssetRegistry
from twx.workflow.engine import TransferWorkflow

logger = structlog.get_logger(__name__)


class MappingDirectory:
    """Element <-> external model object links."""

    def __init__(self, session: AsyncSession, config: AppConfig | None = None):
        """Initialize mapping directory with database session.

        Args:
            session: SQLAlchemy async session
            config: Application config (defaults to the environment singleton)
        """
        self.session = session
        self.config = config or get_config()
        self.registry = AssetRegistry(session, self.config)
        self.workflow = TransferWorkflow(session, self.config)

    async def link(
        self,
        element_id: UUID,
        project_id: str | None,
        external_element_id: str | None,
        actor: Actor,
        external_object_url: str | None = None,
        notes: str | None = None,
    ) -> ModelMappingModel:
        """Atomic link: close the active mapping and insert the new one.

        When the target project differs from the element's current project
        the transfer workflow moves the element there in the same transaction.

        Args:
            element_id: Registry element id
            project_id: Project of the external model
            external_element_id: Object id in the external model
            actor: User performing the link

        Returns:
            The new active mapping

        Raises:
            ValidationError: If project_id or external_element_id is missing
            NotFoundError: If the element does not exist
            WorkflowPreconditionError: If the move to another project is refused
        """
        if not project_id:
            raise ValidationError("projectId")
        if not external_element_id:
            raise ValidationError("externalElementId")

        element = await self.registry.get(element_id, for_update=True)

        # Transfer first so a refused move leaves the mappings untouched
        from_project = element.current_project_id
        if from_project != project_id:
            await self.workflow.complete_via_link(element, project_id, actor)

        # Step 1: Close current active mapping (if exists)
        await self.session.execute(
            update(ModelMappingModel)
            .where(
                and_(
                    ModelMappingModel.element_id == element.id,
                    ModelMappingModel.is_active.is_(True),
                )
            )
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.flush()

        # Step 2: Insert new active mapping
        mapping = ModelMappingModel(
            element_id=element.id,
            project_id=project_id,
            external_element_id=external_element_id,
            external_object_url=external_object_url,
            is_active=True,
            mapped_by_user_id=actor.id,
            mapped_at=utcnow(),
            notes=notes,
        )
        self.session.add(mapping)
        await self.session.flush()

        logger.info(
            "mapping_linked",
            element_id=str(element.id),
            project_id=project_id,
            external_element_id=external_element_id,
            moved=from_project != project_id,
            actor=actor.id,
        )
        return mapping

    async def check_linking(self, external_element_id: str) -> LinkStatus:
        """Reverse lookup: which asset is an external object linked to.

        Active mappings win over inactive ones, newest first.
        """
        stmt = (
            select(ModelMappingModel, ElementModel)
            .join(ElementModel, ElementModel.id == ModelMappingModel.element_id)
            .where(ModelMappingModel.external_element_id == external_element_id)
            .order_by(
                ModelMappingModel.is_active.desc(),
                ModelMappingModel.mapped_at.desc(),
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        row = result.first()
        if row is None:
            return LinkStatus(linked=False, asset=None)

        mapping, element = row
        return LinkStatus(
            linked=True,
            asset=LinkedAsset(
                id=element.id,
                asset_number=element.asset_number,
                status=element.status,
                condition=element.current_condition,
                project_id=mapping.project_id,
                is_active=mapping.is_active,
            ),
        )

    async def list_mappings(
        self, element_id: UUID, project_id: str | None = None
    ) -> list[ModelMappingModel]:
        """All mappings of an element, newest first."""
        element = await self.registry.get(element_id)
        stmt = select(ModelMappingModel).where(ModelMappingModel.element_id == element.id)
        if project_id:
            stmt = stmt.where(ModelMappingModel.project_id == project_id)
        stmt = stmt.order_by(ModelMappingModel.mapped_at.desc())

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def active_mapping(self, element_id: UUID) -> ModelMappingModel | None:
        """O(1) lookup of the active mapping."""
        result = await self.session.execute(
            select(ModelMappingModel).where(
                and_(
                    ModelMappingModel.element_id == element_id,
                    ModelMappingModel.is_active.is_(True),
                )
            )
        )
        return result.scalar_one_or_none()
