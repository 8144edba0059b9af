"""Outcome -> token resolution and probability normalization."""

from itertools import permutations

import pytest

from predintake.intake.display import format_probability
from predintake.intake.resolver import is_binary_outcome, normalize_probability, resolve_token_id
from predintake.models import IntakeOutcome, IntakeToken, MarketRecord, MarketType


def make_market(outcomes, tokens, market_type=None, pid="pm-1"):
    return MarketRecord(
        polymarket_id=pid,
        outcomes=[IntakeOutcome(name=n) for n in outcomes],
        tokens=[IntakeToken(token_id=t, outcome=o) for t, o in tokens],
        market_type=market_type,
    )


@pytest.mark.parametrize("yes_label,no_label", [("Yes", "No"), (" YES ", "no"), ("yes", " No"), ("YeS", "NO ")])
def test_binary_never_transposes_yes_and_no(yes_label, no_label):
    tokens = [("tok-yes", yes_label), ("tok-no", no_label)]
    for order in permutations(tokens):
        for outcomes in (["YES", "NO"], ["NO", "YES"], ["Yes", "No"]):
            m = make_market(outcomes, list(order), MarketType.BINARY)
            for idx, name in enumerate(outcomes):
                got = resolve_token_id(m, idx, name)
                expected = "tok-yes" if name.lower() == "yes" else "tok-no"
                assert got == expected


def test_multiple_market_falls_back_to_position_when_tokens_unlabeled():
    m = make_market(["Alice", "Bob", "Carol"], [("t0", None), ("t1", None), ("t2", None)], MarketType.MULTIPLE)
    assert [resolve_token_id(m, i, o.name) for i, o in enumerate(m.outcomes)] == ["t0", "t1", "t2"]


def test_multiple_market_prefers_label_over_position():
    m = make_market(["Alice", "Bob"], [("t-bob", "bob"), ("t-alice", "Alice ")], MarketType.MULTIPLE)
    assert resolve_token_id(m, 0, "Alice") == "t-alice"
    assert resolve_token_id(m, 1, "Bob") == "t-bob"


def test_single_token_resolves_every_outcome():
    m = make_market(["YES", "NO"], [("only", None)])
    assert resolve_token_id(m, 0, "YES") == "only"
    assert resolve_token_id(m, 1, "NO") == "only"


def test_binary_with_unrelated_labels_is_unresolved():
    m = make_market(["YES", "NO"], [("ta", "A"), ("tb", "B")], MarketType.BINARY)
    assert resolve_token_id(m, 0, "YES") is None
    assert resolve_token_id(m, 1, "NO") is None


def test_binary_with_missing_labels_does_not_guess_by_index():
    m = make_market(["Yes", "No"], [("t0", None), ("t1", None)])
    assert resolve_token_id(m, 0, "Yes") is None
    assert resolve_token_id(m, 1, "No") is None


def test_regex_metacharacters_in_name_are_safe():
    name = ".*+?^${}()|[]\\"
    m = make_market(["A", "B", name], [("ta", "A"), ("tb", "B")])
    assert resolve_token_id(m, 2, name) is None
    assert resolve_token_id(m, 0, "A") == "ta"


def test_regex_metacharacters_do_not_match_binary_tokens():
    m = make_market(["Yes", "No"], [("t-yes", "Yes"), ("t-no", "No")])
    assert resolve_token_id(m, 5, "y.s") is None
    assert resolve_token_id(m, 5, "(yes|no)") is None


def test_is_binary_outcome():
    assert is_binary_outcome(" Yes ")
    assert is_binary_outcome("NO")
    assert not is_binary_outcome("Yes please")
    assert not is_binary_outcome(None)


@pytest.mark.parametrize(
    "raw,expected",
    [(0.73, 0.73), (73, 0.73), (100, 1.0), (1, 1.0), (0, 0.0), (-5, 0.0), (150, None), (None, None), ("abc", None)],
)
def test_normalize_probability(raw, expected):
    got = normalize_probability(raw)
    if expected is None:
        assert got is None
    else:
        assert got == pytest.approx(expected)


@pytest.mark.parametrize(
    "raw,text",
    [(0.73, "73.0%"), (73, "73.0%"), (150, "—"), (-5, "0.0%"), (None, "—"), (float("nan"), "—")],
)
def test_format_probability(raw, text):
    assert format_probability(raw) == text
