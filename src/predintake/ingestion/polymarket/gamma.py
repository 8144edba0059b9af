"""Polymarket Gamma API - events feed -> intake MarketRecord list (one row per event)."""

from __future__ import annotations

import json
import math
from typing import Any

import httpx
import structlog

from predintake.models import IntakeOutcome, IntakeToken, MarketRecord
from predintake.models.market import parse_status

log = structlog.get_logger(__name__)

GAMMA_EVENTS_URL = "https://gamma-api.polymarket.com/events"
HEADERS = {"User-Agent": "predintake/0.1", "Accept": "application/json"}


def _to_list(raw: Any) -> list[Any]:
    """Gamma sends some arrays as JSON strings."""
    if not raw:
        return []
    if isinstance(raw, list):
        return raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def _to_number(v: Any, fallback: float | None = 0.0) -> float | None:
    try:
        n = float(v)
    except (TypeError, ValueError):
        return fallback
    return n if math.isfinite(n) else fallback


def _clamp01(n: float) -> float:
    return max(0.0, min(1.0, n))


def prob_from_value(raw: Any, fallback: float = 0.5) -> float:
    """Feed-side probability: (1, 100] read as percent, then clamped to [0, 1]."""
    n = _to_number(raw, None)
    if n is None:
        return fallback
    if 1 < n <= 100:
        return _clamp01(n / 100)
    return _clamp01(n)


def _parse_outcomes(raw: Any, prices: list[float]) -> list[IntakeOutcome]:
    out = []
    for idx, o in enumerate(_to_list(raw)):
        if isinstance(o, dict):
            name = o.get("name") or o.get("label") or o.get("ticker") or o.get("outcome") or "Outcome"
            price = o.get("price", o.get("probability", o.get("p")))
            oid = o.get("id") or o.get("slug") or o.get("ticker")
        else:
            name = str(o)
            price = prices[idx] if idx < len(prices) else None
            oid = None
        if not name:
            continue
        out.append(
            IntakeOutcome(
                id=str(oid) if oid is not None else None,
                name=name,
                price=_to_number(price, None) if price is not None else None,
                probability=prob_from_value(price) if price is not None else None,
            )
        )
    return out


def parse_market(raw: dict[str, Any], evt: dict[str, Any]) -> MarketRecord:
    """Convert one Gamma market (inside an event) to an intake MarketRecord."""
    evt_id = str(evt.get("id") or evt.get("slug") or "")
    evt_categories = [c for c in _to_list(evt.get("categories")) if c]
    evt_category = evt.get("category") or (evt_categories[0] if evt_categories else None)
    market_id = str(raw.get("id") or raw.get("slug") or raw.get("market_id") or "")

    prices = [p for p in (_to_number(v, None) for v in _to_list(raw.get("outcomePrices"))) if p is not None]
    outcomes = _parse_outcomes(raw.get("outcomes"), prices)
    if not outcomes:
        outcomes = [
            IntakeOutcome(
                id=f"{market_id or 'pm'}-{idx}",
                name="Yes" if idx == 0 else "No" if idx == 1 else f"Outcome {idx + 1}",
                price=p,
                probability=prob_from_value(p),
            )
            for idx, p in enumerate(prices)
        ]
    token_ids = [str(t) for t in _to_list(raw.get("clobTokenIds")) if t]
    tokens = []
    for idx, tid in enumerate(token_ids):
        o = outcomes[idx] if idx < len(outcomes) else None
        if o is not None and o.probability is not None:
            price = o.probability
        elif idx < len(prices):
            price = prob_from_value(prices[idx])
        else:
            price = None
        tokens.append(IntakeToken(token_id=tid, outcome=o.name if o else None, price=price))

    yes_price = prices[0] if prices else (outcomes[0].probability if outcomes else None)
    categories = [evt_category, *evt_categories, *_to_list(raw.get("categories"))]
    return MarketRecord(
        polymarket_id=market_id,
        polymarket_event_id=evt_id or None,
        condition_id=raw.get("conditionId") or raw.get("condition_id"),
        question=raw.get("question") or raw.get("title") or raw.get("slug"),
        title=evt.get("title") or raw.get("question") or raw.get("title") or "Untitled market",
        description=raw.get("description") or evt.get("description") or "",
        rules=raw.get("description") or evt.get("description") or "",
        resolution_source=raw.get("resolutionSource") or evt.get("resolutionSource"),
        categories=[c for c in categories if c],
        category=evt_category,
        image=raw.get("image") or evt.get("image") or evt.get("icon"),
        end_date=raw.get("endDate") or raw.get("end_date_iso") or evt.get("endDate"),
        start_date=raw.get("startDate") or evt.get("startDate"),
        created_at=raw.get("createdAt") or evt.get("createdAt"),
        volume=_to_number(raw.get("volumeNum", raw.get("volume", evt.get("volume")))),
        volume_24hr=_to_number(raw.get("volume24hr", evt.get("volume24hr"))),
        one_day_price_change=_to_number(raw.get("oneDayPriceChange")),
        one_hour_price_change=_to_number(raw.get("oneHourPriceChange")),
        last_trade_price=_to_number(raw.get("lastTradePrice"), yes_price or 0.0),
        best_bid=_to_number(raw.get("bestBid")),
        best_ask=_to_number(raw.get("bestAsk")),
        accepting_orders=raw.get("active") is not False and raw.get("closed") is not True,
        enable_order_book=bool(token_ids),
        tokens=tokens,
        outcomes=outcomes,
    )


def parse_events(events: list[dict[str, Any]]) -> list[MarketRecord]:
    """Flatten events into markets, keeping only markets with two or more outcomes."""
    markets = []
    for evt in events:
        if not isinstance(evt, dict):
            continue
        for raw in _to_list(evt.get("markets")):
            if not isinstance(raw, dict) or len(_to_list(raw.get("outcomes"))) < 2:
                continue
            try:
                markets.append(parse_market(raw, evt))
            except Exception as e:
                log.warning("skip_market", market_id=raw.get("id"), error=str(e))
    return markets


def aggregate_by_event(markets: list[MarketRecord], mappings: dict[str, dict[str, Any]]) -> list[MarketRecord]:
    """
    Collapse markets to one row per event. Primary market: an already-mapped one,
    else the one with tokens, then highest volume. Status comes from `mappings`
    (polymarket_id -> {status, internal_event_id, notes}).
    """
    grouped: dict[str, list[MarketRecord]] = {}
    for m in markets:
        grouped.setdefault(m.polymarket_event_id or m.polymarket_id, []).append(m)

    results = []
    for group in grouped.values():
        mapped = next((m for m in group if m.polymarket_id in mappings), None)
        by_liquidity = sorted(group, key=lambda m: (1 if m.tokens else 0, m.volume or 0), reverse=True)
        primary = mapped or by_liquidity[0]

        categories: list[str] = []
        for c in [*(c for g in group for c in g.categories), primary.category]:
            if c and c not in categories:
                categories.append(c)
        mapping = mappings.get(primary.polymarket_id) or next(
            (mappings[g.polymarket_id] for g in group if g.polymarket_id in mappings), None
        )
        mapping = mapping or {}
        results.append(
            primary.model_copy(
                update={
                    "categories": categories,
                    "volume": max(g.volume or 0 for g in group),
                    "volume_24hr": max(g.volume_24hr or 0 for g in group),
                    "variant_count": len(group),
                    "status": parse_status(mapping.get("status")),
                    "internal_event_id": mapping.get("internal_event_id"),
                    "notes": mapping.get("notes"),
                }
            )
        )
    return results


def filter_records(records: list[MarketRecord], search: str | None = None, status: str | None = None) -> list[MarketRecord]:
    """Case-insensitive search over title/question/id plus exact status filter."""
    out = records
    if search:
        needle = search.strip().lower()
        out = [
            r
            for r in out
            if needle in (r.title or "").lower()
            or needle in (r.question or "").lower()
            or needle in r.polymarket_id.lower()
        ]
    if status:
        wanted = status.strip().lower()
        if wanted == "unmapped":
            wanted = "pending"
        out = [r for r in out if r.status.value == wanted]
    return out


def fetch_events(base_url: str | None = None, limit: int = 150, timeout: float = 30.0) -> list[dict[str, Any]]:
    """Fetch open, non-archived events from Gamma."""
    base = (base_url or GAMMA_EVENTS_URL).rstrip("/")
    url = base if base.endswith("/events") else base + "/events"
    params = {"limit": limit, "closed": "false", "archived": "false"}
    with httpx.Client(timeout=timeout, headers=HEADERS) as client:
        resp = client.get(url, params=params)
        resp.raise_for_status()
        data = resp.json()
    if not isinstance(data, list):
        data = data.get("data", []) if isinstance(data, dict) else []
    return data
