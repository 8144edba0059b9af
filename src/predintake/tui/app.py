"""Textual intake console - queue table, selection, approve / reject / bulk approve."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Footer, Header, Input, Label, Static

from predintake.config import configure_logging
from predintake.ingestion.polymarket.push import run_push_listener
from predintake.intake.client import IntakeClient
from predintake.intake.display import format_change, format_date, format_probability, format_usd
from predintake.intake.errors import IntakeBusyError
from predintake.intake.session import IntakeSession
from predintake.models import MarketRecord

COLUMNS = ("", "Market", "Outcomes", "Volume", "24h chg", "End", "Status")


class StatusPanel(Static):
    """Loading state, last error, bulk progress and summary."""

    state = reactive("Starting...")
    error = reactive("")
    message = reactive("")

    def render(self) -> str:
        parts = [f"[bold]Status[/] {self.state}"]
        if self.message:
            parts.append(f"[yellow]{self.message}[/]")
        if self.error:
            parts.append(f"[red]{self.error}[/]")
        return "  |  ".join(parts)


class IntakeTable(DataTable):
    """One row per intake market, keyed by polymarket id."""

    def on_mount(self) -> None:
        self.cursor_type = "row"
        self.add_columns(*COLUMNS)

    def refresh_rows(self, session: IntakeSession) -> None:
        self.clear()
        for m in session.items:
            self.add_row(*_row_cells(m, session), key=m.polymarket_id)

    @property
    def current_id(self) -> str | None:
        if self.row_count == 0:
            return None
        row_key, _ = self.coordinate_to_cell_key(self.cursor_coordinate)
        return row_key.value


def _row_cells(m: MarketRecord, session: IntakeSession) -> tuple[str, ...]:
    mark = "[x]" if m.polymarket_id in session.selected else ("[ ]" if m.is_selectable else "   ")
    if m.polymarket_id in session.in_flight:
        mark = "..."
    title = m.display_title
    outcomes = ", ".join(
        f"{o.name} {format_probability(o.probability if o.probability is not None else o.price)}"
        for o in m.outcomes[:4]
    )
    status = m.status.value
    if m.variant_count and m.variant_count > 1:
        status += f" ({m.variant_count} variants)"
    return (
        mark,
        title[:48] + "..." if len(title) > 48 else title,
        outcomes,
        format_usd(m.volume),
        format_change(m.one_day_price_change),
        format_date(m.end_date),
        status,
    )


class RejectScreen(ModalScreen[str | None]):
    """Asks for an optional rejection reason. Dismisses with the reason, or None on cancel."""

    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, item: MarketRecord, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._item = item

    def compose(self) -> ComposeResult:
        with Vertical(id="reject-dialog"):
            yield Label(f"Reject market: {self._item.display_title}")
            yield Input(placeholder="Reason (optional)", id="reason")
            with Horizontal():
                yield Button("Cancel", id="cancel")
                yield Button("Reject", id="reject", variant="error")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "reject":
            self.dismiss(self.query_one("#reason", Input).value)
        else:
            self.dismiss(None)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.dismiss(event.value)

    def action_cancel(self) -> None:
        self.dismiss(None)


class IntakeTUI(App[None]):
    """Polymarket intake review console."""

    TITLE = "PredIntake"
    BINDINGS = [
        ("r", "reload", "Refresh"),
        ("a", "approve", "Auto-map"),
        ("x", "reject", "Reject"),
        ("space", "toggle_select", "Select"),
        ("s", "select_all", "Select all"),
        ("c", "clear_selection", "Clear"),
        ("b", "bulk_approve", "Bulk approve"),
        ("q", "quit", "Quit"),
    ]

    def __init__(self, session: IntakeSession, settings: Any = None, live: bool = True, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._session = session
        self._settings = settings
        self._live = live and settings is not None
        self._stop_event = asyncio.Event()
        self._push_task: asyncio.Task[None] | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield StatusPanel(id="status")
        yield IntakeTable(id="markets")
        yield Footer()

    def on_mount(self) -> None:
        self.run_worker(self._reload(), group="reload")
        if self._live:
            s = self._settings
            self._push_task = asyncio.create_task(
                run_push_listener(
                    s.push_ws_url,
                    self._reload,
                    channels=s.push_channels,
                    reconnect_base_delay_sec=s.reconnect_base_delay_sec,
                    reconnect_max_delay_sec=s.reconnect_max_delay_sec,
                    reconnect_max_retries=s.reconnect_max_retries,
                    stop_event=self._stop_event,
                )
            )

    def _refresh(self) -> None:
        s = self._session
        panel = self.query_one(StatusPanel)
        if s.bulk_approving and s.progress:
            panel.state = f"Bulk approving {s.progress[0]}/{s.progress[1]}..."
        elif s.loading:
            panel.state = "Refreshing..."
        else:
            panel.state = f"{len(s.items)} markets, {len(s.selected)} selected"
        panel.error = s.error or ""
        panel.message = s.message or ""
        self.query_one(IntakeTable).refresh_rows(s)

    async def _reload(self) -> None:
        self._session.loading = True
        self._refresh()
        await self._session.reload()
        self._refresh()

    def _current(self) -> MarketRecord | None:
        pid = self.query_one(IntakeTable).current_id
        return self._session.get(pid) if pid else None

    def _busy(self, item: MarketRecord) -> bool:
        if not self._session.can_act(item.polymarket_id):
            self.notify("Submission in progress", severity="warning")
            return True
        return False

    def action_reload(self) -> None:
        self.run_worker(self._reload(), group="reload")

    def action_approve(self) -> None:
        item = self._current()
        if item is None or self._busy(item):
            return
        self.run_worker(self._approve(item), group="approve")

    async def _approve(self, item: MarketRecord) -> None:
        try:
            mapping = await self._session.approve(item.polymarket_id)
        except IntakeBusyError as e:
            self.notify(str(e), severity="warning")
            return
        self._refresh()
        if mapping is not None and mapping.warnings:
            self.notify(
                f"Approved with {len(mapping.warnings)} mapping warning(s): "
                + "; ".join(w.message for w in mapping.warnings),
                severity="warning",
            )

    def action_reject(self) -> None:
        item = self._current()
        if item is None or self._busy(item):
            return

        def done(reason: str | None) -> None:
            if reason is not None:
                self.run_worker(self._reject(item, reason), group="reject")

        self.push_screen(RejectScreen(item), done)

    async def _reject(self, item: MarketRecord, reason: str) -> None:
        try:
            await self._session.reject(item.polymarket_id, reason or None)
        except IntakeBusyError as e:
            self.notify(str(e), severity="warning")
        self._refresh()

    def action_toggle_select(self) -> None:
        item = self._current()
        if item is not None and not self._session.bulk_approving:
            self._session.toggle_selected(item.polymarket_id)
            self._refresh()

    def action_select_all(self) -> None:
        if not self._session.bulk_approving:
            self._session.select_all()
            self._refresh()

    def action_clear_selection(self) -> None:
        if not self._session.bulk_approving:
            self._session.clear_selection()
            self._refresh()

    def action_bulk_approve(self) -> None:
        if self._session.bulk_approving or not self._session.selected:
            return
        self.run_worker(self._bulk(), group="bulk", exclusive=True)

    async def _bulk(self) -> None:
        def progress(current: int, total: int) -> None:
            self._refresh()

        try:
            await self._session.bulk_approve(on_progress=progress)
        except IntakeBusyError as e:
            self.notify(str(e), severity="warning")
        self._refresh()

    async def on_unmount(self) -> None:
        self._stop_event.set()
        if self._push_task and not self._push_task.done():
            self._push_task.cancel()
        await self._session.client.aclose()


def run_tui(settings: Any, search: str | None = None, live: bool = True) -> None:
    """Entry point: build client + session and run the console."""
    log_file = None
    if settings.logging_file:
        Path(settings.logging_file).parent.mkdir(parents=True, exist_ok=True)
        log_file = open(settings.logging_file, "a", encoding="utf-8")
        configure_logging(settings, stream=log_file)
    client = IntakeClient(settings.intake_api_base, timeout=settings.http_timeout_sec)
    session = IntakeSession(client, search=search)
    app = IntakeTUI(session, settings=settings, live=live)
    try:
        app.run()
    finally:
        if log_file is not None:
            log_file.close()
