"""Intake reconciliation: token resolution, approval payloads, review session."""

from predintake.intake.client import IntakeClient
from predintake.intake.errors import IntakeAPIError, IntakeBusyError, IntakeError, MarketTypeOverrideError
from predintake.intake.payload import build_approval_request, build_outcome_mappings, select_legacy_token_id
from predintake.intake.resolver import normalize_probability, resolve_token_id
from predintake.intake.session import BulkApproveResult, BulkItemResult, IntakeSession

__all__ = [
    "IntakeClient",
    "IntakeSession",
    "BulkApproveResult",
    "BulkItemResult",
    "IntakeError",
    "IntakeAPIError",
    "IntakeBusyError",
    "MarketTypeOverrideError",
    "build_approval_request",
    "build_outcome_mappings",
    "select_legacy_token_id",
    "normalize_probability",
    "resolve_token_id",
]
