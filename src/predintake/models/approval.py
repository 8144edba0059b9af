"""Outcome mapping and approve/reject request bodies."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import Field, TypeAdapter

from predintake.models.market import MarketType, WireModel


class OutcomeMapping(WireModel):
    """Internal outcome <-> external token link for one outcome of an event."""

    internal_outcome_id: str
    polymarket_token_id: str | None = None
    name: str
    probability: float | None = Field(None, ge=0, le=1)


class MappingWarning(WireModel):
    """Non-fatal problem found while building the mapping (admin follow-up)."""

    outcome_index: int
    code: Literal["token_unresolved", "probability_out_of_range"]
    message: str


class MappingResult(WireModel):
    mappings: list[OutcomeMapping] = Field(default_factory=list)
    warnings: list[MappingWarning] = Field(default_factory=list)

    @property
    def unresolved_indexes(self) -> list[int]:
        return [w.outcome_index for w in self.warnings if w.code == "token_unresolved"]


class EventData(WireModel):
    """Snapshot of event metadata sent with an approval."""

    title: str | None = None
    description: str = ""
    categories: list[str] = Field(default_factory=list)
    image: str | None = None
    resolution_date: str | None = None
    start_date: str | None = None
    created_at: str | None = None
    resolution_source: str | None = None
    volume: float | None = None
    bet_count: float | None = None


class _ApprovalBase(WireModel):
    polymarket_id: str
    polymarket_condition_id: str | None = None
    # Legacy single representative token id; always present.
    polymarket_token_id: str = Field(min_length=1)
    internal_event_id: str
    outcome_mapping: list[OutcomeMapping] = Field(default_factory=list)
    event_data: EventData | None = None
    notes: str | None = None


class BinaryApproval(_ApprovalBase):
    market_type: Literal["BINARY"] = "BINARY"
    is_grouped_binary: Literal[False] = False


class MultipleApproval(_ApprovalBase):
    market_type: Literal["MULTIPLE"] = "MULTIPLE"
    is_grouped_binary: Literal[False] = False


class GroupedBinaryApproval(_ApprovalBase):
    """Each outcome is an independent yes/no sub-market."""

    market_type: Literal["GROUPED_BINARY"] = "GROUPED_BINARY"
    is_grouped_binary: Literal[True] = True


ApprovalRequest = Annotated[
    Union[BinaryApproval, MultipleApproval, GroupedBinaryApproval],
    Field(discriminator="market_type"),
]

approval_request_adapter: TypeAdapter[ApprovalRequest] = TypeAdapter(ApprovalRequest)

APPROVAL_TYPES: dict[MarketType, type[_ApprovalBase]] = {
    MarketType.BINARY: BinaryApproval,
    MarketType.MULTIPLE: MultipleApproval,
    MarketType.GROUPED_BINARY: GroupedBinaryApproval,
}


class RejectRequest(WireModel):
    polymarket_id: str
    reason: str | None = None
