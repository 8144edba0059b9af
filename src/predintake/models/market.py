"""MarketRecord, IntakeToken, IntakeOutcome - intake queue entities (camelCase on the wire)."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class MarketType(str, Enum):
    """Resolution strategy classification of an external market."""

    BINARY = "BINARY"
    MULTIPLE = "MULTIPLE"
    GROUPED_BINARY = "GROUPED_BINARY"


class IntakeStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_processed(self) -> bool:
        return self is not IntakeStatus.PENDING


def parse_status(v: Any) -> IntakeStatus:
    """Lifecycle status from the wire; the feed reports never-reviewed markets as "unmapped"."""
    if isinstance(v, IntakeStatus):
        return v
    s = str(v or "").strip().lower()
    for status in IntakeStatus:
        if status.value == s:
            return status
    return IntakeStatus.PENDING


class WireModel(BaseModel):
    """Base for models exchanged with the intake endpoints."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class IntakeToken(WireModel):
    """Tradable instrument for one outcome; `outcome` is a free-text label."""

    token_id: str
    outcome: str | None = None
    price: float | None = None


class IntakeOutcome(WireModel):
    """Human-facing outcome label in canonical display order."""

    id: str | None = None
    name: str = ""
    price: float | None = None
    probability: float | None = None


class MarketRecord(WireModel):
    """External candidate market awaiting admin review."""

    polymarket_id: str = Field(validation_alias=AliasChoices("polymarketId", "polymarket_id", "id"))
    polymarket_event_id: str | None = None
    variant_count: int | None = None
    condition_id: str | None = None
    question: str | None = None
    title: str | None = None
    description: str | None = None
    rules: str | None = None
    resolution_source: str | None = None
    categories: list[str] = Field(default_factory=list)
    category: str | None = None
    image: str | None = None
    end_date: str | None = None
    start_date: str | None = None
    created_at: str | None = None
    volume: float | None = None
    volume_24hr: float | None = Field(
        None, validation_alias=AliasChoices("volume24hr", "volume_24hr"), serialization_alias="volume24hr"
    )
    one_day_price_change: float | None = None
    one_hour_price_change: float | None = None
    last_trade_price: float | None = None
    best_bid: float | None = None
    best_ask: float | None = None
    accepting_orders: bool | None = None
    enable_order_book: bool | None = None
    tokens: list[IntakeToken] = Field(default_factory=list)
    outcomes: list[IntakeOutcome] = Field(default_factory=list)
    market_type: MarketType | None = None
    status: IntakeStatus = IntakeStatus.PENDING
    internal_event_id: str | None = None
    notes: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, v: Any) -> IntakeStatus:
        return parse_status(v)

    @field_validator("categories", mode="before")
    @classmethod
    def _drop_empty_categories(cls, v: Any) -> Any:
        if v is None:
            return []
        return [c for c in v if c]

    @property
    def display_title(self) -> str:
        return self.title or self.question or "Untitled market"

    @property
    def is_selectable(self) -> bool:
        """Only unprocessed markets can join a bulk batch."""
        return not self.status.is_processed
