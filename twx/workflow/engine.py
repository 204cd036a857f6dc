"""Transfer workflow engine.

Governs an element's project assignment. Per (element, target project) a
TransferRecord moves ``pending_approval -> active -> completed``; the element
status mirrors it (``active -> in_transit -> active``). Every transition that
makes an element active in a project goes through ``_complete_transfer``.
"""

from __future__ import annotations

from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from twx.config import AppConfig, get_config
from twx.db.models import ElementModel, TransferRecordModel, utcnow
from twx.errors import (
    NotFoundError,
    PreconditionReason,
    ValidationError,
    WorkflowPreconditionError,
)
from twx.models import (
    Actor,
    ApprovalRole,
    CompletionPath,
    Condition,
    ElementStatus,
    TransferStatus,
)
from twx.registry.service import AssetRegistry, parse_condition

logger = structlog.get_logger(__name__)

# Lifecycle moves outside of transfers
STATUS_TRANSITIONS: dict[ElementStatus, frozenset[ElementStatus]] = {
    ElementStatus.ACTIVE: frozenset({ElementStatus.IN_STORAGE, ElementStatus.RETIRED}),
    ElementStatus.IN_STORAGE: frozenset({ElementStatus.ACTIVE, ElementStatus.RETIRED}),
    ElementStatus.RETIRED: frozenset({ElementStatus.SCRAPPED}),
}

LINK_TRANSFERABLE = frozenset({ElementStatus.ACTIVE.value, ElementStatus.IN_TRANSIT.value})


class TransferWorkflow:
    """State machine for moving elements between projects under dual sign-off."""

    def __init__(self, session: AsyncSession, config: AppConfig | None = None):
        self.session = session
        self.config = config or get_config()
        self.registry = AssetRegistry(session, self.config)

    async def request_transfer(
        self,
        element_id: UUID,
        target_project_id: str | None,
        actor: Actor,
        transfer_condition: Condition | str | None = None,
        condition_notes: str | None = None,
        transfer_inspection_id: str | None = None,
    ) -> TransferRecordModel | None:
        """Open a transfer of an element to another project.

        Returns:
            The pending record, or None when the element is already in the
            target project

        Raises:
            NotFoundError: If the element does not exist
            ValidationError: If the target project or condition is invalid
            WorkflowPreconditionError: If the element is not active
        """
        if not target_project_id:
            raise ValidationError("destinationProjectId")
        departing = (
            parse_condition(transfer_condition, "transferCondition")
            if transfer_condition
            else None
        )

        element = await self.registry.get(element_id, for_update=True)
        if element.current_project_id == target_project_id:
            logger.info(
                "transfer_request_noop",
                element_id=str(element.id),
                project_id=target_project_id,
            )
            return None

        pending = await self._pending_record(element.id, target_project_id)
        if (
            pending is not None
            and element.status == ElementStatus.IN_TRANSIT.value
            and pending.transferred_from_project_id == element.current_project_id
        ):
            return pending

        if element.status != ElementStatus.ACTIVE.value:
            raise WorkflowPreconditionError(
                PreconditionReason.ELEMENT_NOT_TRANSFERABLE,
                f"Element cannot be transferred. Current status: {element.status}",
                current_status=element.status,
            )

        now = utcnow()
        await self._close_active_record(
            element,
            now,
            departing.value if departing else element.current_condition,
            transfer_inspection_id,
        )

        if pending is None:
            pending = TransferRecordModel(
                element_id=element.id,
                project_id=target_project_id,
                status=TransferStatus.PENDING_APPROVAL.value,
                source_approved=False,
                destination_approved=False,
            )
            self.session.add(pending)
        else:
            # Left behind when the element was linked elsewhere; sign-off restarts
            _reset_approvals(pending)

        pending.transferred_from_project_id = element.current_project_id
        pending.requested_by_user_id = actor.id
        pending.requested_at = now
        pending.condition_notes = condition_notes

        element.status = ElementStatus.IN_TRANSIT.value
        element.updated_at = now
        await self.session.flush()

        logger.info(
            "transfer_requested",
            element_id=str(element.id),
            from_project=element.current_project_id,
            to_project=target_project_id,
            actor=actor.id,
        )
        return pending

    async def approve(
        self,
        element_id: UUID,
        target_project_id: str | None,
        role: ApprovalRole | str | None,
        actor: Actor,
    ) -> tuple[TransferRecordModel, bool]:
        """Record the source or destination approver's sign-off.

        Re-approving by the same role overwrites the approver and timestamp.

        Returns:
            (record, both_approved)

        Raises:
            ValidationError: If the project or role is missing/invalid
            NotFoundError: If the element or the pending transfer does not exist
        """
        if not target_project_id:
            raise ValidationError("projectId")
        if not role:
            raise ValidationError("role")
        try:
            role = ApprovalRole(role)
        except ValueError:
            raise ValidationError(
                "role", 'Invalid role. Must be "source" or "destination"'
            ) from None

        element = await self.registry.get(element_id, for_update=True)
        pending = await self._pending_record(element.id, target_project_id)
        if pending is None:
            raise NotFoundError("pending transfer", target_project_id)

        now = utcnow()
        if role is ApprovalRole.SOURCE:
            pending.source_approved = True
            pending.source_approver_id = actor.id
            pending.source_approved_at = now
        else:
            pending.destination_approved = True
            pending.destination_approver_id = actor.id
            pending.destination_approved_at = now
        await self.session.flush()

        both = pending.source_approved and pending.destination_approved
        logger.info(
            "transfer_approved",
            element_id=str(element.id),
            project_id=target_project_id,
            role=role.value,
            both_approved=both,
            actor=actor.id,
        )
        return pending, both

    async def receive(
        self,
        element_id: UUID,
        target_project_id: str | None,
        received_condition: Condition | str | None,
        actor: Actor,
        condition_notes: str | None = None,
        actual_location: str | None = None,
        receipt_inspection_id: str | None = None,
    ) -> ElementModel:
        """Complete an approved transfer on physical receipt.

        Raises:
            NotFoundError: If the element does not exist
            ValidationError: If the project or condition is missing/invalid
            WorkflowPreconditionError: If the element is not in transit, no
                pending transfer exists, or approvals are missing
        """
        if not target_project_id:
            raise ValidationError("projectId")
        condition = parse_condition(received_condition, "receivedCondition")

        element = await self.registry.get(element_id, for_update=True)
        pending = await self._require_approved_pending(element, target_project_id)

        await self._complete_transfer(
            element,
            pending,
            CompletionPath.APPROVED_RECEIPT,
            actor,
            condition=condition,
            condition_notes=condition_notes,
            actual_location=actual_location,
            receipt_inspection_id=receipt_inspection_id,
        )
        return element

    async def complete_via_link(
        self, element: ElementModel, target_project_id: str, actor: Actor
    ) -> TransferRecordModel:
        """Move an element into the project of a newly linked model object.

        With a pending transfer the approvals are forced and the destination
        sign-off is attributed to the linking actor. Without one a new history
        record is appended and activated directly. When direct link transfers
        are disabled the link must satisfy the same checks as ``receive``.

        Raises:
            WorkflowPreconditionError: If the element cannot move, or approval
                is required and missing
        """
        if not self.config.workflow.direct_link_transfers:
            try:
                pending = await self._require_approved_pending(element, target_project_id)
            except WorkflowPreconditionError as exc:
                raise WorkflowPreconditionError(
                    PreconditionReason.APPROVAL_REQUIRED,
                    "Linking to another project requires an approved transfer",
                    approvals=exc.approvals,
                    current_status=element.status,
                ) from exc
            await self._complete_transfer(element, pending, CompletionPath.DIRECT_LINK, actor)
            return pending

        if element.status not in LINK_TRANSFERABLE:
            raise WorkflowPreconditionError(
                PreconditionReason.ELEMENT_NOT_TRANSFERABLE,
                f"Element cannot be transferred. Current status: {element.status}",
                current_status=element.status,
            )

        now = utcnow()
        pending = await self._pending_record(element.id, target_project_id)
        if pending is not None:
            if not pending.source_approved:
                pending.source_approved = True
                pending.source_approver_id = actor.id
                pending.source_approved_at = now
            pending.destination_approved = True
            pending.destination_approver_id = actor.id
            pending.destination_approved_at = now
            record = pending
        else:
            record = TransferRecordModel(
                element_id=element.id,
                project_id=target_project_id,
                status=TransferStatus.PENDING_APPROVAL.value,
                transferred_from_project_id=element.current_project_id,
                requested_by_user_id=actor.id,
                requested_at=now,
            )
            self.session.add(record)

        await self._complete_transfer(element, record, CompletionPath.DIRECT_LINK, actor)
        return record

    async def change_status(
        self, element_id: UUID, status: ElementStatus | str | None, actor: Actor
    ) -> ElementModel:
        """Lifecycle move outside transfers (storage, retirement, scrapping).

        Raises:
            ValidationError: If the status is missing or unknown
            NotFoundError: If the element does not exist
            WorkflowPreconditionError: If the move is not allowed
        """
        if not status:
            raise ValidationError("status")
        try:
            target = ElementStatus(status)
        except ValueError:
            raise ValidationError("status", f"Invalid status: {status!r}") from None

        element = await self.registry.get(element_id, for_update=True)
        current = ElementStatus(element.status)
        if target not in STATUS_TRANSITIONS.get(current, frozenset()):
            raise WorkflowPreconditionError(
                PreconditionReason.ILLEGAL_STATUS_TRANSITION,
                f"Cannot change status from {current.value} to {target.value}",
                current_status=current.value,
            )

        element.status = target.value
        element.updated_at = utcnow()
        await self.session.flush()

        logger.info(
            "element_status_changed",
            element_id=str(element.id),
            from_status=current.value,
            to_status=target.value,
            actor=actor.id,
        )
        return element

    async def history(self, element_id: UUID) -> list[TransferRecordModel]:
        """Project history of an element, newest first."""
        element = await self.registry.get(element_id)
        result = await self.session.execute(
            select(TransferRecordModel)
            .where(TransferRecordModel.element_id == element.id)
            .order_by(
                func.coalesce(
                    TransferRecordModel.activated_date,
                    TransferRecordModel.requested_at,
                    TransferRecordModel.created_at,
                ).desc(),
                TransferRecordModel.created_at.desc(),
            )
        )
        return list(result.scalars().all())

    async def _complete_transfer(
        self,
        element: ElementModel,
        record: TransferRecordModel,
        via: CompletionPath,
        actor: Actor,
        condition: Condition | None = None,
        condition_notes: str | None = None,
        actual_location: str | None = None,
        receipt_inspection_id: str | None = None,
    ) -> None:
        now = utcnow()
        from_project = element.current_project_id

        # The previous active row must be closed before this one activates
        await self._close_active_record(element, now, element.current_condition)

        record.status = TransferStatus.ACTIVE.value
        record.activated_date = now
        record.completed_via = via.value
        if condition is not None:
            record.received_condition = condition.value
        if condition_notes is not None:
            record.condition_notes = condition_notes
        if actual_location is not None:
            record.actual_location = actual_location
        if receipt_inspection_id is not None:
            record.receipt_inspection_id = receipt_inspection_id

        element.status = ElementStatus.ACTIVE.value
        element.current_project_id = record.project_id
        if condition is not None:
            element.current_condition = condition.value
        element.updated_at = now
        await self.session.flush()

        # Sign-off on other open requests was given for the old source project
        result = await self.session.execute(
            select(TransferRecordModel).where(
                TransferRecordModel.element_id == element.id,
                TransferRecordModel.status == TransferStatus.PENDING_APPROVAL.value,
            )
        )
        for stale in result.scalars():
            _reset_approvals(stale)
        await self.session.flush()

        logger.info(
            "transfer_completed",
            element_id=str(element.id),
            from_project=from_project,
            to_project=record.project_id,
            via=via.value,
            actor=actor.id,
        )

    async def _require_approved_pending(
        self, element: ElementModel, target_project_id: str
    ) -> TransferRecordModel:
        if element.status != ElementStatus.IN_TRANSIT.value:
            raise WorkflowPreconditionError(
                PreconditionReason.ELEMENT_NOT_IN_TRANSIT,
                f"Element must be in transit to receive. Current status: {element.status}",
                current_status=element.status,
            )

        pending = await self._pending_record(element.id, target_project_id)
        if (
            pending is None
            or pending.transferred_from_project_id != element.current_project_id
        ):
            raise WorkflowPreconditionError(
                PreconditionReason.NO_PENDING_TRANSFER,
                "No pending transfer found for this project",
            )

        if not (pending.source_approved and pending.destination_approved):
            raise WorkflowPreconditionError(
                PreconditionReason.APPROVALS_MISSING,
                "Transfer requires approval from both project managers",
                approvals={
                    "source": pending.source_approved,
                    "destination": pending.destination_approved,
                },
            )
        return pending

    async def _pending_record(
        self, element_id: UUID, project_id: str
    ) -> TransferRecordModel | None:
        result = await self.session.execute(
            select(TransferRecordModel).where(
                TransferRecordModel.element_id == element_id,
                TransferRecordModel.project_id == project_id,
                TransferRecordModel.status == TransferStatus.PENDING_APPROVAL.value,
            )
        )
        return result.scalar_one_or_none()

    async def _close_active_record(
        self,
        element: ElementModel,
        now,
        transferred_condition: str | None,
        transfer_inspection_id: str | None = None,
    ) -> None:
        result = await self.session.execute(
            select(TransferRecordModel).where(
                TransferRecordModel.element_id == element.id,
                TransferRecordModel.status == TransferStatus.ACTIVE.value,
            )
        )
        active = result.scalar_one_or_none()
        if active is None:
            return

        active.status = TransferStatus.COMPLETED.value
        active.deactivated_date = now
        active.transferred_condition = transferred_condition
        if transfer_inspection_id is not None:
            active.transfer_inspection_id = transfer_inspection_id
        await self.session.flush()


def _reset_approvals(record: TransferRecordModel) -> None:
    record.source_approved = False
    record.source_approver_id = None
    record.source_approved_at = None
    record.destination_approved = False
    record.destination_approver_id = None
    record.destination_approved_at = None
