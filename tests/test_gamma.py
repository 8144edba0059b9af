"""Gamma events feed normalization and per-event aggregation."""

import pytest

from predintake.ingestion.polymarket.gamma import aggregate_by_event, filter_records, parse_events, prob_from_value

EVENTS = [
    {
        "id": "e1",
        "title": "Election",
        "category": "Politics",
        "markets": [
            {
                "id": "m1",
                "question": "Will A win?",
                "conditionId": "0x1",
                "outcomes": '["Yes", "No"]',
                "outcomePrices": '["0.62", "0.38"]',
                "clobTokenIds": '["t1", "t2"]',
                "volume": "1000",
                "volume24hr": 50,
            },
            {
                "id": "m2",
                "question": "Will B win?",
                "outcomes": '["Yes", "No"]',
                "outcomePrices": '["0.3", "0.7"]',
                "clobTokenIds": '["t3", "t4"]',
                "volume": "5000",
                "volume24hr": 10,
            },
            {"id": "m3", "question": "Single outcome", "outcomes": '["Only"]'},
        ],
    },
    {
        "id": "e2",
        "title": "Solo market",
        "markets": [{"id": "m9", "outcomes": ["Up", "Down"], "outcomePrices": [55, 45]}],
    },
]


def test_parse_events_decodes_json_string_fields():
    markets = parse_events(EVENTS)
    assert [m.polymarket_id for m in markets] == ["m1", "m2", "m9"]
    m1 = markets[0]
    assert m1.polymarket_event_id == "e1"
    assert m1.title == "Election"
    assert m1.condition_id == "0x1"
    assert [o.name for o in m1.outcomes] == ["Yes", "No"]
    assert [o.probability for o in m1.outcomes] == [pytest.approx(0.62), pytest.approx(0.38)]
    assert [(t.token_id, t.outcome) for t in m1.tokens] == [("t1", "Yes"), ("t2", "No")]
    assert m1.volume == 1000.0
    assert m1.categories == ["Politics"]


def test_percent_prices_are_scaled():
    m9 = parse_events(EVENTS)[2]
    assert m9.tokens == []
    assert m9.enable_order_book is False
    assert m9.outcomes[0].probability == pytest.approx(0.55)


def test_aggregate_picks_most_liquid_market_when_unmapped():
    records = aggregate_by_event(parse_events(EVENTS), {})
    assert [r.polymarket_id for r in records] == ["m2", "m9"]
    election = records[0]
    assert election.variant_count == 2
    assert election.volume == 5000.0
    assert election.volume_24hr == 50.0
    assert election.status.value == "pending"
    assert records[1].variant_count == 1


def test_aggregate_prefers_mapped_market_and_carries_decision():
    mappings = {"m1": {"status": "approved", "internal_event_id": "123456789", "notes": "ok"}}
    records = aggregate_by_event(parse_events(EVENTS), mappings)
    election = records[0]
    assert election.polymarket_id == "m1"
    assert election.status.value == "approved"
    assert election.internal_event_id == "123456789"
    assert election.notes == "ok"
    assert election.to_wire()["volume24hr"] == 50.0


def test_filter_records():
    records = aggregate_by_event(
        parse_events(EVENTS), {"m9": {"status": "rejected", "internal_event_id": None, "notes": None}}
    )
    assert [r.polymarket_id for r in filter_records(records, search="SOLO")] == ["m9"]
    assert [r.polymarket_id for r in filter_records(records, search="will b")] == ["m2"]
    assert [r.polymarket_id for r in filter_records(records, status="unmapped")] == ["m2"]
    assert [r.polymarket_id for r in filter_records(records, status="rejected")] == ["m9"]
    assert filter_records(records) == records


@pytest.mark.parametrize(
    "raw,expected",
    [(None, 0.5), ("abc", 0.5), (0.3, 0.3), ("62", 0.62), (100, 1.0), (150, 1.0), (-2, 0.0)],
)
def test_prob_from_value(raw, expected):
    assert prob_from_value(raw) == pytest.approx(expected)
