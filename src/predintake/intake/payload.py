"""Build approval requests from a MarketRecord."""

from __future__ import annotations

import random

import structlog

from predintake.intake.errors import MarketTypeOverrideError
from predintake.intake.resolver import is_out_of_range, normalize_probability, resolve_token_id
from predintake.models import (
    APPROVAL_TYPES,
    ApprovalRequest,
    EventData,
    MappingResult,
    MappingWarning,
    MarketRecord,
    MarketType,
    OutcomeMapping,
)

log = structlog.get_logger(__name__)

_OVERRIDABLE = {MarketType.MULTIPLE, MarketType.GROUPED_BINARY}


def make_internal_event_id(rng: random.Random | None = None) -> str:
    """Random 9-digit numeric id (no leading zero)."""
    r = rng or random
    return str(100_000_000 + r.randrange(900_000_000))


def classify_market_type(market: MarketRecord, override: MarketType | str | None = None) -> MarketType:
    """Market type for approval; override may only switch MULTIPLE <-> GROUPED_BINARY."""
    natural = market.market_type
    if natural is None:
        names = sorted((o.name or "").strip().lower() for o in market.outcomes)
        if names == ["no", "yes"]:
            natural = MarketType.BINARY
        else:
            natural = MarketType.MULTIPLE
    if override is None:
        return natural
    override = MarketType(override)
    if override == natural:
        return natural
    if natural not in _OVERRIDABLE or override not in _OVERRIDABLE:
        raise MarketTypeOverrideError(
            f"Cannot reclassify {market.polymarket_id} from {natural.value} to {override.value}"
        )
    return override


def build_outcome_mappings(market: MarketRecord, internal_event_id: str) -> MappingResult:
    """One OutcomeMapping per outcome, in declared order. Gaps become warnings, not errors."""
    result = MappingResult()
    for idx, outcome in enumerate(market.outcomes):
        token_id = resolve_token_id(market, idx, outcome.name)
        if token_id is None:
            result.warnings.append(
                MappingWarning(
                    outcome_index=idx,
                    code="token_unresolved",
                    message=f"No token matches outcome {outcome.name!r}",
                )
            )
        raw = outcome.probability if outcome.probability is not None else outcome.price
        if is_out_of_range(raw):
            result.warnings.append(
                MappingWarning(
                    outcome_index=idx,
                    code="probability_out_of_range",
                    message=f"Probability {raw} is outside 0-100",
                )
            )
        result.mappings.append(
            OutcomeMapping(
                internal_outcome_id=f"{internal_event_id}-{idx}",
                polymarket_token_id=token_id,
                name=outcome.name or f"Outcome {idx + 1}",
                probability=normalize_probability(raw),
            )
        )
    if result.warnings:
        log.warning(
            "outcome_mapping_gaps",
            polymarket_id=market.polymarket_id,
            warnings=[w.code for w in result.warnings],
        )
    return result


def select_legacy_token_id(market: MarketRecord) -> str:
    """Representative token: resolved first outcome, else first token, else the market id."""
    if market.outcomes:
        token_id = resolve_token_id(market, 0, market.outcomes[0].name)
        if token_id:
            return token_id
    if market.tokens and market.tokens[0].token_id:
        return market.tokens[0].token_id
    return market.polymarket_id


def build_event_data(market: MarketRecord) -> EventData:
    return EventData(
        title=market.title or market.question,
        description=market.description or "",
        categories=list(market.categories),
        image=market.image,
        resolution_date=market.end_date,
        start_date=market.start_date,
        created_at=market.created_at,
        resolution_source=market.resolution_source,
        volume=market.volume,
        bet_count=market.volume_24hr,
    )


def build_approval_request(
    market: MarketRecord,
    internal_event_id: str | None = None,
    market_type: MarketType | str | None = None,
    notes: str | None = None,
) -> tuple[ApprovalRequest, MappingResult]:
    """Auto-map every outcome of `market` and return the typed request plus mapping warnings."""
    event_id = internal_event_id or market.internal_event_id or make_internal_event_id()
    kind = classify_market_type(market, market_type)
    mapping = build_outcome_mappings(market, event_id)
    request_cls = APPROVAL_TYPES[kind]
    request = request_cls(
        polymarket_id=market.polymarket_id,
        polymarket_condition_id=market.condition_id,
        polymarket_token_id=select_legacy_token_id(market),
        internal_event_id=event_id,
        outcome_mapping=mapping.mappings,
        event_data=build_event_data(market),
        notes=notes or "",
    )
    return request, mapping


def build_manual_approval(
    market: MarketRecord,
    token_id: str,
    internal_event_id: str,
    notes: str | None = None,
    market_type: MarketType | str | None = None,
) -> ApprovalRequest:
    """Approval with an admin-supplied token and event id; no automatic outcome mapping."""
    kind = classify_market_type(market, market_type)
    return APPROVAL_TYPES[kind](
        polymarket_id=market.polymarket_id,
        polymarket_condition_id=market.condition_id,
        polymarket_token_id=token_id,
        internal_event_id=internal_event_id,
        notes=notes or None,
    )
