"""Outcome -> token resolution and probability normalization.

Token order in a market record is not guaranteed to follow outcome order, so a
YES/NO outcome is only ever matched by its label. Guessing by position there
would silently invert the market. Multi-outcome markets may fall back to the
token at the same index.
"""

from __future__ import annotations

import math
import re

import structlog

from predintake.models import MarketRecord

log = structlog.get_logger(__name__)

BINARY_NAMES = frozenset({"yes", "no"})


def _norm(label: str | None) -> str:
    return (label or "").strip().lower()


def is_binary_outcome(name: str | None) -> bool:
    return _norm(name) in BINARY_NAMES


def resolve_token_id(market: MarketRecord, idx: int, name: str | None) -> str | None:
    """Return the token id for outcome `idx` named `name`, or None if no safe match exists."""
    candidate = _norm(name)
    binary = candidate in BINARY_NAMES
    tokens = market.tokens

    # Exact label match is preferred for every outcome type.
    if candidate:
        for token in tokens:
            if _norm(token.outcome) == candidate:
                return token.token_id

    if binary:
        pattern = re.compile(rf"^\s*{re.escape(candidate)}\s*$", re.IGNORECASE)
        for token in tokens:
            if token.outcome and pattern.match(token.outcome):
                return token.token_id
    elif 0 <= idx < len(tokens):
        return tokens[idx].token_id

    if len(tokens) == 1:
        return tokens[0].token_id

    if binary:
        # No positional guess for YES/NO
        log.warning(
            "binary_outcome_unresolved",
            polymarket_id=market.polymarket_id,
            outcome=name,
            token_labels=[t.outcome for t in tokens],
        )
    return None


def normalize_probability(raw: float | int | str | None) -> float | None:
    """Map a raw probability/price onto [0, 1].

    Values in (1, 100] are read as percentages. Values above 100 and
    non-numeric input give None; negatives clamp to 0.
    """
    if raw is None or isinstance(raw, bool):
        return None
    try:
        n = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(n) or math.isinf(n):
        return None
    if n > 100:
        return None
    if n > 1:
        n = n / 100
    return max(0.0, min(1.0, n))


def is_out_of_range(raw: float | int | str | None) -> bool:
    """True when a numeric value was given but exceeds the percentage scale."""
    if raw is None or isinstance(raw, bool):
        return False
    try:
        n = float(raw)
    except (TypeError, ValueError):
        return False
    return not math.isnan(n) and n > 100
