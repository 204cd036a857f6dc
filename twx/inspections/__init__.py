"""Versioned inspection ledger."""

from twx.inspections.ledger import InspectionLedger

__all__ = ["InspectionLedger"]
