"""Database layer for TWX with async SQLAlchemy."""

from twx.db.connection import get_session, init_db
from twx.db.models import (
    AssetCounterModel,
    Base,
    ElementModel,
    InspectionModel,
    ModelMappingModel,
    ProjectModel,
    TransferRecordModel,
)

__all__ = [
    "Base",
    "AssetCounterModel",
    "ElementModel",
    "InspectionModel",
    "ModelMappingModel",
    "ProjectModel",
    "TransferRecordModel",
    "get_session",
    "init_db",
]
