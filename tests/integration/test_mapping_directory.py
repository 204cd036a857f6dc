"""Integration tests for the mapping directory.

Tests the one-active-mapping invariant and link-triggered project moves.
"""

from __future__ import annotations

from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from twx.db.models import ModelMappingModel, TransferRecordModel
from twx.errors import NotFoundError, PreconditionReason, ValidationError, WorkflowPreconditionError
from twx.mapping.directory import MappingDirectory
from twx.registry.service import AssetRegistry


@pytest.mark.asyncio
async def test_relinking_keeps_exactly_one_active_mapping(db_session, app_config, alice):
    registry = AssetRegistry(db_session, app_config)
    directory = MappingDirectory(db_session, app_config)
    element = await registry.register("IfcColumn", "proj-a", "Good", alice)

    first = await directory.link(element.id, "proj-a", "obj-1", alice)
    second = await directory.link(element.id, "proj-a", "obj-2", alice, notes="remodelled")

    mappings = await directory.list_mappings(element.id)
    assert len(mappings) == 2
    assert [m.is_active for m in mappings].count(True) == 1

    active = await directory.active_mapping(element.id)
    assert active.id == second.id
    assert active.notes == "remodelled"
    assert first.is_active is False


@pytest.mark.asyncio
async def test_database_rejects_second_active_mapping(db_session, app_config, alice):
    """Test partial unique index prevents two active mappings per element."""
    registry = AssetRegistry(db_session, app_config)
    element = await registry.register("IfcColumn", "proj-a", "Good", alice)
    await db_session.commit()

    db_session.add(
        ModelMappingModel(element_id=element.id, project_id="proj-a", external_element_id="a")
    )
    db_session.add(
        ModelMappingModel(element_id=element.id, project_id="proj-a", external_element_id="b")
    )

    with pytest.raises(IntegrityError):
        await db_session.commit()


@pytest.mark.asyncio
async def test_link_same_project_does_not_touch_history(db_session, app_config, alice):
    registry = AssetRegistry(db_session, app_config)
    directory = MappingDirectory(db_session, app_config)
    element = await registry.register("IfcColumn", "proj-a", "Good", alice)

    await directory.link(element.id, "proj-a", "obj-1", alice)

    count = await db_session.scalar(
        select(func.count()).select_from(TransferRecordModel).where(
            TransferRecordModel.element_id == element.id
        )
    )
    assert count == 1
    assert element.current_project_id == "proj-a"


@pytest.mark.asyncio
async def test_link_to_other_project_moves_element(db_session, app_config, alice):
    registry = AssetRegistry(db_session, app_config)
    directory = MappingDirectory(db_session, app_config)
    element = await registry.register("IfcColumn", "proj-a", "Good", alice)

    mapping = await directory.link(element.id, "proj-b", "obj-9", alice)

    assert mapping.project_id == "proj-b"
    assert element.status == "active"
    assert element.current_project_id == "proj-b"


@pytest.mark.asyncio
async def test_link_validation(db_session, app_config, alice):
    registry = AssetRegistry(db_session, app_config)
    directory = MappingDirectory(db_session, app_config)
    element = await registry.register("IfcColumn", "proj-a", "Good", alice)

    with pytest.raises(ValidationError) as exc_info:
        await directory.link(element.id, "", "obj-1", alice)
    assert exc_info.value.field == "projectId"

    with pytest.raises(ValidationError) as exc_info:
        await directory.link(element.id, "proj-a", None, alice)
    assert exc_info.value.field == "externalElementId"

    with pytest.raises(NotFoundError):
        await directory.link(uuid4(), "proj-a", "obj-1", alice)


@pytest.mark.asyncio
async def test_refused_move_leaves_mappings_untouched(db_session, strict_config, alice):
    registry = AssetRegistry(db_session, strict_config)
    directory = MappingDirectory(db_session, strict_config)
    element = await registry.register("IfcColumn", "proj-a", "Good", alice)
    original = await directory.link(element.id, "proj-a", "obj-1", alice)

    with pytest.raises(WorkflowPreconditionError) as exc_info:
        await directory.link(element.id, "proj-b", "obj-2", alice)

    assert exc_info.value.reason is PreconditionReason.APPROVAL_REQUIRED
    mappings = await directory.list_mappings(element.id)
    assert [m.id for m in mappings] == [original.id]
    assert mappings[0].is_active is True
    assert element.current_project_id == "proj-a"


class TestCheckLinking:
    @pytest.mark.asyncio
    async def test_unknown_object(self, db_session, app_config):
        status = await MappingDirectory(db_session, app_config).check_linking("nope")

        assert status.linked is False
        assert status.asset is None

    @pytest.mark.asyncio
    async def test_linked_object(self, db_session, app_config, alice):
        registry = AssetRegistry(db_session, app_config)
        directory = MappingDirectory(db_session, app_config)
        element = await registry.register("IfcBeam", "proj-a", "Fair", alice)
        await directory.link(element.id, "proj-a", "obj-1", alice)

        status = await directory.check_linking("obj-1")

        assert status.linked is True
        assert status.asset.id == element.id
        assert status.asset.asset_number == "IfcBeam-000001"
        assert status.asset.condition == "Fair"
        assert status.asset.project_id == "proj-a"
        assert status.asset.is_active is True

    @pytest.mark.asyncio
    async def test_superseded_link_reports_inactive(self, db_session, app_config, alice):
        registry = AssetRegistry(db_session, app_config)
        directory = MappingDirectory(db_session, app_config)
        element = await registry.register("IfcBeam", "proj-a", "Good", alice)
        await directory.link(element.id, "proj-a", "obj-1", alice)
        await directory.link(element.id, "proj-a", "obj-2", alice)

        status = await directory.check_linking("obj-1")

        assert status.linked is True
        assert status.asset.is_active is False
