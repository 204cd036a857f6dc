"""Asset number reservation and scan codes.

Asset numbers look like ``IfcColumn-000042``: the IFC type, a hyphen and a
zero-padded sequence that is strictly increasing per IFC type. The next value
is reserved through a counter row that is incremented with a single
``UPDATE ... RETURNING``, so two concurrent registrations can never observe
the same value. The counter row is seeded from the highest existing asset
number the first time an IFC type is seen.
"""

from __future__ import annotations

import re

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from twx.config import WorkflowConfig, get_config
from twx.db.models import AssetCounterModel, ElementModel
from twx.errors import PersistenceError, ValidationError

logger = structlog.get_logger(__name__)

_IFC_TYPE_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")


def validate_ifc_type(ifc_type: str | None) -> str:
    if not ifc_type or not ifc_type.strip():
        raise ValidationError("ifcType")
    ifc_type = ifc_type.strip()
    if not _IFC_TYPE_PATTERN.match(ifc_type):
        raise ValidationError("ifcType", f"Invalid ifcType: {ifc_type!r}")
    return ifc_type


def format_asset_number(ifc_type: str, value: int, width: int = 6) -> str:
    return f"{ifc_type}-{value:0{width}d}"


def parse_asset_suffix(asset_number: str) -> int | None:
    """Numeric suffix of an asset number, or None if it has none."""
    _, sep, suffix = asset_number.rpartition("-")
    if not sep or not suffix.isdigit():
        return None
    return int(suffix)


def scan_code_for(asset_number: str, prefix: str | None = None) -> str:
    """Scan code printed on the asset tag. Pure function of the asset number."""
    if prefix is None:
        prefix = get_config().workflow.scan_code_prefix
    return f"{prefix}{asset_number}"


async def reserve_asset_number(
    session: AsyncSession,
    ifc_type: str,
    workflow: WorkflowConfig | None = None,
) -> str:
    """Reserve the next asset number for an IFC type.

    Must run inside the caller's transaction; the reservation is released if
    that transaction rolls back, so numbers have no gaps for committed
    registrations.

    Args:
        session: SQLAlchemy async session
        ifc_type: IFC element category, e.g. "IfcColumn"

    Returns:
        Asset number such as "IfcColumn-000001"

    Raises:
        ValidationError: If ifc_type is missing or malformed
        PersistenceError: If the counter could not be seeded after retries
    """
    ifc_type = validate_ifc_type(ifc_type)
    workflow = workflow or get_config().workflow

    for attempt in range(1, workflow.counter_retry_attempts + 1):
        value = await _increment_counter(session, ifc_type)
        if value is not None:
            return format_asset_number(ifc_type, value, workflow.asset_number_width)

        # First registration of this IFC type: seed from any existing numbers
        value = await _highest_existing_suffix(session, ifc_type) + 1
        try:
            async with session.begin_nested():
                session.add(AssetCounterModel(ifc_type=ifc_type, last_value=value))
        except IntegrityError:
            # A concurrent registration seeded the counter first
            logger.info("asset_counter_seed_conflict", ifc_type=ifc_type, attempt=attempt)
            continue

        logger.info("asset_counter_seeded", ifc_type=ifc_type, value=value)
        return format_asset_number(ifc_type, value, workflow.asset_number_width)

    raise PersistenceError(f"Could not reserve asset number for {ifc_type}")


async def _increment_counter(session: AsyncSession, ifc_type: str) -> int | None:
    stmt = (
        update(AssetCounterModel)
        .where(AssetCounterModel.ifc_type == ifc_type)
        .values(last_value=AssetCounterModel.last_value + 1)
        .returning(AssetCounterModel.last_value)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def _highest_existing_suffix(session: AsyncSession, ifc_type: str) -> int:
    # Longer strings first so IfcBeam-1000000 sorts above IfcBeam-999999
    stmt = (
        select(ElementModel.asset_number)
        .where(
            ElementModel.ifc_type == ifc_type,
            ElementModel.asset_number.startswith(f"{ifc_type}-", autoescape=True),
        )
        .order_by(
            func.length(ElementModel.asset_number).desc(),
            ElementModel.asset_number.desc(),
        )
        .limit(1)
    )
    result = await session.execute(stmt)
    last = result.scalar_one_or_none()
    if last is None:
        return 0
    return parse_asset_suffix(last) or 0
