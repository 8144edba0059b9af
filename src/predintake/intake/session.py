"""Intake review session - the state behind the console (items, selection, in-flight guards).

Every mutation goes to the server and is followed by a full reload; local
items are never patched optimistically. Failures are captured in `error`
and leave the affected item pending and selectable.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal, Union

import structlog

from predintake.intake.client import IntakeClient
from predintake.intake.errors import IntakeBusyError, IntakeError
from predintake.intake.payload import build_approval_request, build_manual_approval
from predintake.models import MappingResult, MarketRecord, MarketType

log = structlog.get_logger(__name__)

ProgressCallback = Callable[[int, int], Union[None, Awaitable[None]]]


@dataclass
class BulkItemResult:
    polymarket_id: str
    outcome: Literal["success", "failure"]
    error: str | None = None
    mapping: MappingResult | None = None


@dataclass
class BulkApproveResult:
    results: list[BulkItemResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.outcome == "success")

    @property
    def failures(self) -> list[BulkItemResult]:
        return [r for r in self.results if r.outcome == "failure"]

    @property
    def summary(self) -> str | None:
        """Partial-success message, None when every item succeeded."""
        if self.success_count < self.total:
            return f"Bulk approve: {self.success_count}/{self.total} succeeded"
        return None


class IntakeSession:
    """Review state for one admin: loaded items, multi-select set, submissions in flight."""

    def __init__(self, client: IntakeClient, search: str | None = None, status: str | None = None) -> None:
        self.client = client
        self.search = search
        self.status = status
        self.items: list[MarketRecord] = []
        self.error: str | None = None
        self.message: str | None = None
        self.loading = False
        self.selected: set[str] = set()
        self.in_flight: set[str] = set()
        self.bulk_approving = False
        self.progress: tuple[int, int] | None = None
        self.mappings: dict[str, MappingResult] = {}

    # --- Loading ---

    async def reload(self) -> list[MarketRecord]:
        """Replace items with the server's current list. Keeps the old list on failure."""
        self.loading = True
        self.error = None
        try:
            self.items = await self.client.list_markets(search=self.search, status=self.status)
            log.debug("intake_loaded", count=len(self.items))
        except IntakeError as e:
            self.error = str(e)
        finally:
            self.loading = False
        # Selection only ever holds items that can still be processed
        selectable = {m.polymarket_id for m in self.items if m.is_selectable}
        self.selected &= selectable
        return self.items

    def get(self, polymarket_id: str) -> MarketRecord | None:
        for m in self.items:
            if m.polymarket_id == polymarket_id:
                return m
        return None

    def _require(self, polymarket_id: str) -> MarketRecord:
        item = self.get(polymarket_id)
        if item is None:
            raise KeyError(polymarket_id)
        return item

    # --- Selection ---

    def can_act(self, polymarket_id: str) -> bool:
        return not self.bulk_approving and polymarket_id not in self.in_flight

    def toggle_selected(self, polymarket_id: str) -> bool:
        """Flip selection for one item. Returns the new state; processed items never select."""
        item = self.get(polymarket_id)
        if item is None or not item.is_selectable:
            self.selected.discard(polymarket_id)
            return False
        if polymarket_id in self.selected:
            self.selected.discard(polymarket_id)
            return False
        self.selected.add(polymarket_id)
        return True

    def select_all(self) -> None:
        self.selected = {m.polymarket_id for m in self.items if m.is_selectable}

    def clear_selection(self) -> None:
        self.selected.clear()

    def selected_items(self, items: list[MarketRecord] | None = None) -> list[MarketRecord]:
        """Selected, still-pending items in the order of `items` (default: the loaded list)."""
        source = self.items if items is None else items
        return [m for m in source if m.polymarket_id in self.selected and m.is_selectable]

    # --- Single-item actions ---

    def _begin(self, polymarket_id: str) -> None:
        if not self.can_act(polymarket_id):
            raise IntakeBusyError(f"Submission already in progress for {polymarket_id}")
        self.in_flight.add(polymarket_id)

    async def _submit_approval(
        self,
        item: MarketRecord,
        internal_event_id: str | None = None,
        market_type: MarketType | str | None = None,
        notes: str | None = None,
    ) -> MappingResult:
        request, mapping = build_approval_request(item, internal_event_id, market_type, notes)
        await self.client.approve(request)
        self.mappings[item.polymarket_id] = mapping
        return mapping

    async def approve(
        self,
        polymarket_id: str,
        internal_event_id: str | None = None,
        market_type: MarketType | str | None = None,
        notes: str | None = None,
    ) -> MappingResult | None:
        """Auto-map and approve one item, then reload. Returns None on failure (see `error`)."""
        item = self._require(polymarket_id)
        self._begin(polymarket_id)
        self.error = None
        try:
            mapping = await self._submit_approval(item, internal_event_id, market_type, notes)
        except (IntakeError, ValueError) as e:
            self.error = str(e)
            return None
        finally:
            self.in_flight.discard(polymarket_id)
        await self.reload()
        return mapping

    async def approve_manual(
        self,
        polymarket_id: str,
        token_id: str,
        internal_event_id: str,
        notes: str | None = None,
        market_type: MarketType | str | None = None,
    ) -> bool:
        """Approve with an admin-chosen token id and internal event id."""
        item = self._require(polymarket_id)
        self._begin(polymarket_id)
        self.error = None
        try:
            request = build_manual_approval(item, token_id, internal_event_id, notes, market_type)
            await self.client.approve(request)
        except (IntakeError, ValueError) as e:
            self.error = str(e)
            return False
        finally:
            self.in_flight.discard(polymarket_id)
        await self.reload()
        return True

    async def reject(self, polymarket_id: str, reason: str | None = None) -> bool:
        self._begin(polymarket_id)
        self.error = None
        try:
            await self.client.reject(polymarket_id, reason)
        except IntakeError as e:
            self.error = str(e)
            return False
        finally:
            self.in_flight.discard(polymarket_id)
        await self.reload()
        return True

    # --- Bulk ---

    async def bulk_approve(
        self,
        items: list[MarketRecord] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BulkApproveResult:
        """Approve every selected pending item, one at a time, in list order.

        A failing item is recorded and the batch moves on. Items that already
        have a single submission in flight are left out. Afterwards the
        selection is cleared and the list reloaded once.
        """
        if self.bulk_approving:
            raise IntakeBusyError("Bulk approve already running")
        targets = []
        for m in self.selected_items(items):
            if m.polymarket_id in self.in_flight:
                log.info("bulk_approve_skip_in_flight", polymarket_id=m.polymarket_id)
            else:
                targets.append(m)
        result = BulkApproveResult()
        if not targets:
            return result
        self.bulk_approving = True
        self.error = None
        self.message = None
        total = len(targets)
        try:
            for i, item in enumerate(targets, start=1):
                self.progress = (i, total)
                if on_progress is not None:
                    ret: Any = on_progress(i, total)
                    if inspect.isawaitable(ret):
                        await ret
                self.in_flight.add(item.polymarket_id)
                try:
                    mapping = await self._submit_approval(item)
                except (IntakeError, ValueError) as e:
                    log.warning("bulk_approve_item_failed", polymarket_id=item.polymarket_id, error=str(e))
                    result.results.append(BulkItemResult(item.polymarket_id, "failure", error=str(e)))
                else:
                    result.results.append(BulkItemResult(item.polymarket_id, "success", mapping=mapping))
                finally:
                    self.in_flight.discard(item.polymarket_id)
        finally:
            self.bulk_approving = False
            self.progress = None
            self.clear_selection()
        await self.reload()
        self.message = result.summary
        log.info("bulk_approve_done", total=result.total, succeeded=result.success_count)
        return result
