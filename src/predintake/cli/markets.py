"""Markets subcommand: list, show, approve, reject, bulk-approve, watch."""

from __future__ import annotations

import asyncio
import json
import signal
import sys
from typing import Any

import typer

from predintake.ingestion.polymarket.push import run_push_listener
from predintake.intake.client import IntakeClient
from predintake.intake.display import format_date, format_price, format_probability, format_usd
from predintake.intake.errors import IntakeBusyError
from predintake.intake.payload import build_approval_request
from predintake.intake.session import IntakeSession
from predintake.models import MappingResult, MarketRecord

app = typer.Typer(help="Intake queue: review and decide on Polymarket markets")


def _client(settings: Any) -> IntakeClient:
    return IntakeClient(settings.intake_api_base, timeout=settings.http_timeout_sec)


def _echo_row(m: MarketRecord) -> None:
    outcomes = ", ".join(
        f"{o.name} {format_probability(o.probability if o.probability is not None else o.price)}"
        for o in m.outcomes[:4]
    )
    title = m.display_title[:50]
    typer.echo(
        f"  {m.polymarket_id[:12]:<12}  {m.status.value:<8}  {format_usd(m.volume):>8}  "
        f"{format_date(m.end_date):<6}  {title}  [{outcomes}]"
    )


def _fail(session: IntakeSession) -> None:
    typer.echo(f"Error: {session.error}", err=True)
    raise typer.Exit(1)


@app.command("list")
def list_markets(
    ctx: typer.Context,
    search: str | None = typer.Option(None, "--search", "-s", help="Filter by title/question/id"),
    status: str | None = typer.Option(None, "--status", help="pending, approved or rejected"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON records"),
) -> None:
    """List the intake queue."""
    settings = ctx.obj["settings"]

    async def go() -> IntakeSession:
        async with _client(settings) as client:
            session = IntakeSession(client, search=search, status=status)
            await session.reload()
            return session

    session = asyncio.run(go())
    if session.error:
        _fail(session)
    if as_json:
        typer.echo(json.dumps([m.to_wire() for m in session.items], indent=2))
        return
    for m in session.items:
        _echo_row(m)
    typer.echo(f"Total: {len(session.items)} markets")


@app.command("show")
def show(ctx: typer.Context, polymarket_id: str = typer.Argument(..., help="Polymarket market id")) -> None:
    """Show one market and preview its automatic outcome mapping (nothing is submitted)."""
    settings = ctx.obj["settings"]

    async def go() -> IntakeSession:
        async with _client(settings) as client:
            session = IntakeSession(client)
            await session.reload()
            return session

    session = asyncio.run(go())
    if session.error:
        _fail(session)
    item = session.get(polymarket_id)
    if item is None:
        typer.echo(f"Not in intake queue: {polymarket_id}", err=True)
        raise typer.Exit(1)
    typer.echo(f"{item.display_title}")
    typer.echo(f"  question:  {item.question or '—'}")
    typer.echo(f"  status:    {item.status.value}  internal event: {item.internal_event_id or '—'}")
    typer.echo(f"  volume:    {format_usd(item.volume)} (24h {format_usd(item.volume_24hr)})")
    typer.echo(f"  bid/ask:   {format_price(item.best_bid)} / {format_price(item.best_ask)}")
    request, mapping = build_approval_request(item)
    typer.echo(f"  type:      {request.market_type}  legacy token: {request.polymarket_token_id}")
    for o in mapping.mappings:
        token = o.polymarket_token_id or "UNRESOLVED"
        typer.echo(f"    {o.internal_outcome_id}  {o.name:<20} {format_probability(o.probability):>7}  {token}")
    for w in mapping.warnings:
        typer.echo(f"  warning [{w.code}] outcome {w.outcome_index}: {w.message}")


@app.command("approve")
def approve(
    ctx: typer.Context,
    polymarket_id: str = typer.Argument(..., help="Polymarket market id"),
    event_id: str | None = typer.Option(None, "--event-id", "-e", help="Internal event id (random if omitted)"),
    market_type: str | None = typer.Option(None, "--type", "-t", help="Reclassify: MULTIPLE or GROUPED_BINARY"),
    token_id: str | None = typer.Option(None, "--token-id", help="Manual approval with this token (needs --event-id)"),
    notes: str | None = typer.Option(None, "--notes", "-n", help="Free-text notes"),
) -> None:
    """Approve one market, auto-mapping every outcome to its token."""
    settings = ctx.obj["settings"]
    if token_id and not event_id:
        typer.echo("--token-id requires --event-id", err=True)
        raise typer.Exit(2)

    async def go() -> tuple[IntakeSession, bool, MappingResult | None]:
        async with _client(settings) as client:
            session = IntakeSession(client)
            await session.reload()
            if session.error or session.get(polymarket_id) is None:
                return session, False, None
            if token_id:
                ok = await session.approve_manual(polymarket_id, token_id, event_id, notes, market_type)
                return session, ok, None
            mapping = await session.approve(polymarket_id, event_id, market_type, notes)
            return session, mapping is not None, mapping

    session, ok, mapping = asyncio.run(go())
    if not ok:
        if session.error:
            _fail(session)
        typer.echo(f"Not in intake queue: {polymarket_id}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Approved {polymarket_id}.")
    if mapping is not None:
        for w in mapping.warnings:
            typer.echo(f"  warning [{w.code}] outcome {w.outcome_index}: {w.message}")


@app.command("reject")
def reject(
    ctx: typer.Context,
    polymarket_id: str = typer.Argument(..., help="Polymarket market id"),
    reason: str | None = typer.Option(None, "--reason", "-r", help="Optional reason"),
) -> None:
    """Reject one market."""
    settings = ctx.obj["settings"]

    async def go() -> tuple[IntakeSession, bool]:
        async with _client(settings) as client:
            session = IntakeSession(client)
            return session, await session.reject(polymarket_id, reason)

    session, ok = asyncio.run(go())
    if not ok:
        _fail(session)
    typer.echo(f"Rejected {polymarket_id}.")


@app.command("bulk-approve")
def bulk_approve(
    ctx: typer.Context,
    polymarket_ids: list[str] = typer.Argument(None, help="Market ids to approve"),
    all_pending: bool = typer.Option(False, "--all", help="Approve every pending market in the list"),
    search: str | None = typer.Option(None, "--search", "-s", help="Restrict --all to matching markets"),
) -> None:
    """Approve several markets sequentially; failures are reported, not fatal."""
    settings = ctx.obj["settings"]
    if not polymarket_ids and not all_pending:
        typer.echo("Give market ids or --all", err=True)
        raise typer.Exit(2)

    def progress(current: int, total: int) -> None:
        typer.echo(f"  [{current}/{total}] approving...")

    async def go():
        async with _client(settings) as client:
            session = IntakeSession(client, search=search)
            await session.reload()
            if session.error:
                return session, None
            if all_pending:
                session.select_all()
            else:
                for pid in polymarket_ids:
                    if not session.toggle_selected(pid):
                        typer.echo(f"  skipping {pid}: not pending or not in queue", err=True)
            return session, await session.bulk_approve(on_progress=progress)

    try:
        session, result = asyncio.run(go())
    except IntakeBusyError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    if result is None:
        _fail(session)
    for r in result.failures:
        typer.echo(f"  failed {r.polymarket_id}: {r.error}", err=True)
    typer.echo(session.message or f"Bulk approve: {result.success_count}/{result.total} succeeded")
    if result.success_count < result.total:
        raise typer.Exit(1)


@app.command("watch")
def watch(
    ctx: typer.Context,
    search: str | None = typer.Option(None, "--search", "-s", help="Filter by title/question/id"),
) -> None:
    """Print the queue and re-list it whenever the live-data channel reports a change."""
    settings = ctx.obj["settings"]
    stop_event = asyncio.Event()

    async def go() -> None:
        async with _client(settings) as client:
            session = IntakeSession(client, search=search)

            async def reload_and_print() -> None:
                await session.reload()
                if session.error:
                    typer.echo(f"Error: {session.error}", err=True)
                    return
                typer.echo(f"--- {len(session.items)} markets ---")
                for m in session.items:
                    _echo_row(m)

            await reload_and_print()
            await run_push_listener(
                settings.push_ws_url,
                reload_and_print,
                channels=settings.push_channels,
                reconnect_base_delay_sec=settings.reconnect_base_delay_sec,
                reconnect_max_delay_sec=settings.reconnect_max_delay_sec,
                reconnect_max_retries=settings.reconnect_max_retries,
                stop_event=stop_event,
            )

    loop = asyncio.new_event_loop()
    if sys.platform != "win32":
        loop.add_signal_handler(signal.SIGINT, stop_event.set)
        loop.add_signal_handler(signal.SIGTERM, stop_event.set)
    try:
        typer.echo("Watching intake (Ctrl+C to stop)...")
        loop.run_until_complete(go())
    except KeyboardInterrupt:
        pass
    finally:
        loop.close()
    typer.echo("Stopped.")
