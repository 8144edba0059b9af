"""Human-readable formatting for intake rows."""

from __future__ import annotations

import math
from datetime import datetime

from predintake.intake.resolver import normalize_probability

MISSING = "—"


def _missing(v: float | None) -> bool:
    return v is None or (isinstance(v, float) and math.isnan(v))


def format_probability(raw: float | int | None) -> str:
    """0.73 -> '73.0%', 73 -> '73.0%', 150 -> '—', -5 -> '0.0%'."""
    p = normalize_probability(raw)
    if p is None:
        return MISSING
    return f"{p * 100:.1f}%"


def format_usd(v: float | None) -> str:
    if _missing(v):
        return MISSING
    if v >= 1_000_000:
        return f"${v / 1_000_000:.1f}m"
    if v >= 1_000:
        return f"${v / 1_000:.1f}k"
    return f"${v:.0f}"


def format_change(v: float | None) -> str:
    if _missing(v):
        return MISSING
    sign = "+" if v > 0 else ""
    return f"{sign}{v * 100:.2f}%"


def format_date(iso: str | None) -> str:
    if not iso:
        return MISSING
    try:
        d = datetime.fromisoformat(iso.replace("Z", "+00:00"))
    except ValueError:
        return MISSING
    return f"{d.strftime('%b')} {d.day}"


def format_price(v: float | None) -> str:
    return MISSING if _missing(v) else f"{v:.2f}"
