"""TUI console command."""

import typer

from predintake.tui.app import run_tui

app = typer.Typer(help="Launch the intake review console")


@app.callback(invoke_without_command=True)
def tui(
    ctx: typer.Context,
    search: str | None = typer.Option(None, "--search", "-s", help="Filter by title/question/id"),
    live: bool = typer.Option(True, "--live/--no-live", help="Reload on live-data push notifications"),
) -> None:
    """Launch the Textual intake console (review, approve, reject, bulk approve)."""
    if ctx.invoked_subcommand is not None:
        return
    run_tui(ctx.obj["settings"], search=search, live=live)
