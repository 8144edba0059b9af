"""Intake error types."""

from __future__ import annotations


class IntakeError(Exception):
    """Base class for intake console errors."""


class IntakeAPIError(IntakeError):
    """Intake endpoint answered non-2xx, or the request never completed (status_code None)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class IntakeBusyError(IntakeError):
    """An action was requested for an item that already has a submission in flight."""


class MarketTypeOverrideError(IntakeError, ValueError):
    """Market type override not allowed for this record."""
