"""Transfer workflow engine."""

from twx.workflow.engine import TransferWorkflow

__all__ = ["TransferWorkflow"]
