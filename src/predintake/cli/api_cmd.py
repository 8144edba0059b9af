"""Intake service command."""

import typer

from predintake.api.main import run_api

app = typer.Typer(help="Start the intake API service")


@app.callback(invoke_without_command=True)
def serve(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host", help="Bind host"),
    port: int = typer.Option(8000, "--port", help="Bind port"),
) -> None:
    """Serve /api/polymarket/intake (list, approve, reject) backed by Gamma and DuckDB."""
    if ctx.invoked_subcommand is not None:
        return
    run_api(host=host, port=port, profile=ctx.obj["profile"], config_dir=ctx.obj["config_dir"])
