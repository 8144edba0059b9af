"""Intake decision persistence (approved / rejected mappings)."""

from __future__ import annotations

import json
import re
import time
from typing import TYPE_CHECKING, Any

from predintake.models import ApprovalRequest, OutcomeMapping

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

_GENERIC_NAME = re.compile(r"^outcome$", re.IGNORECASE)

_COLUMNS = [
    "polymarket_id",
    "polymarket_condition_id",
    "polymarket_token_id",
    "internal_event_id",
    "market_type",
    "status",
    "notes",
    "outcome_mapping",
    "event_data",
    "updated_by",
    "decision_at",
]


class MappingConflictError(ValueError):
    """internal_event_id already belongs to another market."""


def dedupe_outcome_names(outcomes: list[OutcomeMapping]) -> list[OutcomeMapping]:
    """Fill missing/generic names (Yes/No for two outcomes) and suffix duplicates: 'A', 'A 2', 'A 3'."""
    seen: set[str] = set()
    binary = len(outcomes) == 2
    out = []
    for idx, o in enumerate(outcomes):
        name = (o.name or "").strip()
        if (not name or _GENERIC_NAME.match(name)) and binary:
            name = "Yes" if idx == 0 else "No"
        if not name:
            name = f"Outcome {idx + 1}"
        candidate = name
        suffix = 2
        while candidate in seen:
            candidate = f"{name} {suffix}"
            suffix += 1
        seen.add(candidate)
        out.append(o.model_copy(update={"name": candidate}))
    return out


def _row_to_dict(row: tuple[Any, ...]) -> dict[str, Any]:
    d = dict(zip(_COLUMNS, row))
    for key in ("outcome_mapping", "event_data"):
        if isinstance(d.get(key), str):
            d[key] = json.loads(d[key])
    return d


def get_mapping(conn: DuckDBPyConnection, polymarket_id: str) -> dict[str, Any] | None:
    row = conn.execute(
        f"SELECT {', '.join(_COLUMNS)} FROM polymarket_mappings WHERE polymarket_id = ?",
        [polymarket_id],
    ).fetchone()
    return _row_to_dict(row) if row else None


def get_mappings(conn: DuckDBPyConnection, polymarket_ids: list[str] | None = None) -> dict[str, dict[str, Any]]:
    """Return polymarket_id -> mapping row for the given ids (all rows when None)."""
    if polymarket_ids is not None and not polymarket_ids:
        return {}
    sql = f"SELECT {', '.join(_COLUMNS)} FROM polymarket_mappings"
    params: list[Any] = []
    if polymarket_ids is not None:
        sql += f" WHERE polymarket_id IN ({', '.join('?' for _ in polymarket_ids)})"
        params = list(polymarket_ids)
    rows = conn.execute(sql, params).fetchall()
    return {r[0]: _row_to_dict(r) for r in rows}


def save_approval(conn: DuckDBPyConnection, request: ApprovalRequest, updated_by: str = "admin") -> dict[str, Any]:
    """Insert or update the approved mapping for request.polymarket_id."""
    owner = conn.execute(
        "SELECT polymarket_id FROM polymarket_mappings WHERE internal_event_id = ? AND polymarket_id <> ?",
        [request.internal_event_id, request.polymarket_id],
    ).fetchone()
    if owner:
        raise MappingConflictError(
            f"Internal event {request.internal_event_id} is already mapped to {owner[0]}"
        )
    outcomes = dedupe_outcome_names(request.outcome_mapping)
    conn.execute(
        """
        INSERT INTO polymarket_mappings (polymarket_id, polymarket_condition_id, polymarket_token_id,
            internal_event_id, market_type, status, notes, outcome_mapping, event_data, updated_by, decision_at)
        VALUES (?, ?, ?, ?, ?, 'approved', ?, ?, ?, ?, ?)
        ON CONFLICT (polymarket_id) DO UPDATE SET
            polymarket_condition_id = excluded.polymarket_condition_id,
            polymarket_token_id = excluded.polymarket_token_id,
            internal_event_id = excluded.internal_event_id,
            market_type = excluded.market_type,
            status = excluded.status,
            notes = excluded.notes,
            outcome_mapping = excluded.outcome_mapping,
            event_data = excluded.event_data,
            updated_by = excluded.updated_by,
            decision_at = excluded.decision_at
        """,
        [
            request.polymarket_id,
            request.polymarket_condition_id,
            request.polymarket_token_id,
            request.internal_event_id,
            request.market_type,
            request.notes or None,
            json.dumps([o.to_wire() for o in outcomes]),
            json.dumps(request.event_data.to_wire()) if request.event_data else None,
            updated_by,
            int(time.time() * 1000),
        ],
    )
    return get_mapping(conn, request.polymarket_id) or {}


def save_rejection(
    conn: DuckDBPyConnection, polymarket_id: str, reason: str | None = None, updated_by: str = "admin"
) -> dict[str, Any]:
    """Mark a market rejected; any earlier mapping details are kept for reference."""
    conn.execute(
        """
        INSERT INTO polymarket_mappings (polymarket_id, status, notes, updated_by, decision_at)
        VALUES (?, 'rejected', ?, ?, ?)
        ON CONFLICT (polymarket_id) DO UPDATE SET
            status = excluded.status,
            notes = excluded.notes,
            updated_by = excluded.updated_by,
            decision_at = excluded.decision_at
        """,
        [polymarket_id, reason or None, updated_by, int(time.time() * 1000)],
    )
    return get_mapping(conn, polymarket_id) or {}
