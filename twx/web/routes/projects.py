"""Project catalogue routes.

Handles project creation, lookup and removal.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from twx.db.connection import get_session
from twx.errors import ValidationError
from twx.models import Actor, Project
from twx.projects.catalogue import ProjectCatalogue
from twx.web.auth import require_actor
from twx.web.models import ProjectCreate

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("", response_model=Project | list[Project])
async def get_projects(project_id: str | None = Query(default=None, alias="id")):
    """List all projects, or fetch one with ``?id=``.

    Readable without a session so viewers can pick a project before
    signing in; create and delete resolve the actor.
    """
    async with get_session() as session:
        catalogue = ProjectCatalogue(session)
        if project_id:
            return Project.model_validate(await catalogue.get(project_id))
        return [Project.model_validate(p) for p in await catalogue.list()]


@router.post("", response_model=Project)
async def create_project(
    body: ProjectCreate,
    actor: Actor = Depends(require_actor),
):
    async with get_session() as session:
        project = await ProjectCatalogue(session).create(
            body.name, body.model_url, body.status
        )
        return Project.model_validate(project)


@router.delete("", response_model=Project)
async def delete_project(
    project_id: str | None = Query(default=None, alias="id"),
    actor: Actor = Depends(require_actor),
):
    if not project_id:
        raise ValidationError("id", "Project ID is required")
    async with get_session() as session:
        project = await ProjectCatalogue(session).delete(project_id)
        return Project.model_validate(project)
