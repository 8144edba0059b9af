"""Canonical schema (Pydantic) - MarketRecord, OutcomeMapping, approval requests."""

from predintake.models.approval import (
    APPROVAL_TYPES,
    ApprovalRequest,
    BinaryApproval,
    EventData,
    GroupedBinaryApproval,
    MappingResult,
    MappingWarning,
    MultipleApproval,
    OutcomeMapping,
    RejectRequest,
    approval_request_adapter,
)
from predintake.models.market import IntakeOutcome, IntakeStatus, IntakeToken, MarketRecord, MarketType

__all__ = [
    "MarketRecord",
    "IntakeToken",
    "IntakeOutcome",
    "IntakeStatus",
    "MarketType",
    "OutcomeMapping",
    "MappingWarning",
    "MappingResult",
    "EventData",
    "ApprovalRequest",
    "BinaryApproval",
    "MultipleApproval",
    "GroupedBinaryApproval",
    "APPROVAL_TYPES",
    "approval_request_adapter",
    "RejectRequest",
]
