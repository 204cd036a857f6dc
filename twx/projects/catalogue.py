"""Project catalogue operations."""

from __future__ import annotations

import secrets
import string
import time

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from twx.config import AppConfig, get_config
from twx.db.models import ProjectModel, utcnow
from twx.errors import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_project_id() -> str:
    """Project id of the form ``proj_<epoch-ms>_<9 random chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"proj_{int(time.time() * 1000)}_{suffix}"


class ProjectCatalogue:
    def __init__(self, session: AsyncSession, config: AppConfig | None = None):
        self.session = session
        self.config = config or get_config()

    async def create(
        self, name: str | None, model_url: str | None, status: str | None = None
    ) -> ProjectModel:
        """Create a project.

        Raises:
            ValidationError: If name or model URL is missing, or the URL does
                not point at a model project
        """
        if not name or not name.strip():
            raise ValidationError("name", "Project name is required")
        if not model_url:
            raise ValidationError("modelUrl", "Model URL is required")
        if self.config.projects.model_url_marker not in model_url:
            raise ValidationError("modelUrl", "Invalid model URL format")

        now = utcnow()
        project = ProjectModel(
            id=new_project_id(),
            name=name.strip(),
            status=status or "active",
            model_url=model_url,
            created_at=now,
            last_modified=now,
        )
        self.session.add(project)
        await self.session.flush()

        logger.info("project_created", project_id=project.id, name=project.name)
        return project

    async def get(self, project_id: str) -> ProjectModel:
        project = await self.session.get(ProjectModel, project_id)
        if project is None:
            raise NotFoundError("project", project_id)
        return project

    async def list(self) -> list[ProjectModel]:
        result = await self.session.execute(
            select(ProjectModel).order_by(ProjectModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def delete(self, project_id: str) -> ProjectModel:
        project = await self.get(project_id)
        await self.session.delete(project)
        await self.session.flush()

        logger.info("project_deleted", project_id=project_id)
        return project
