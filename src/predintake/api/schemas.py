"""Pydantic schemas for API responses and OpenAPI docs."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


# --- Health ---
class HealthResponse(BaseModel):
    status: str = "ok"


# --- Error (consistent shape for 4xx/5xx) ---
class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Human-readable message")
    code: str | None = Field(None, description="Machine-readable code, e.g. invalid_request, conflict")


# --- Intake decisions ---
class ApproveResponse(BaseModel):
    success: bool = True
    mapping: dict[str, Any] = Field(default_factory=dict)


class RejectResponse(BaseModel):
    success: bool = True
    mapping: dict[str, Any] = Field(default_factory=dict)
