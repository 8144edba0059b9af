"""Root CLI app - global options, command registration and the `config` command."""

from pathlib import Path

import typer

from predintake import __version__
from predintake.config import get_settings
from predintake.config.settings import configure_logging

app = typer.Typer(
    name="intake",
    help="PredIntake - review, approve and reject Polymarket markets for the internal exchange.",
    no_args_is_help=True,
)


def _version(value: bool) -> None:
    if value:
        typer.echo(f"predintake {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_dir: Path | None = typer.Option(
        None, "--config-dir", "-C", help="Config directory (default: ./config or package config)"
    ),
    profile: str | None = typer.Option(
        None, "--profile", "-p", help="Config profile (e.g. dev) to overlay on default.toml"
    ),
    version: bool = typer.Option(False, "--version", callback=_version, is_eager=True, help="Show version and exit"),
) -> None:
    """Load settings for the chosen profile, configure logging, share both via ctx.obj."""
    settings = get_settings(profile, config_dir)
    configure_logging(settings)
    ctx.obj = {"settings": settings, "config_dir": config_dir, "profile": profile}


@app.command("config")
def show_config(ctx: typer.Context) -> None:
    """Print the effective settings after profile and environment overrides."""
    s = ctx.obj["settings"]
    typer.echo(f"profile:        {ctx.obj['profile'] or '(default)'}")
    typer.echo(f"intake api:     {s.intake_api_base}  (timeout {s.http_timeout_sec:g}s)")
    typer.echo(f"push channel:   {s.push_ws_url}  {','.join(s.push_channels)}  retries={s.reconnect_max_retries}")
    typer.echo(f"gamma:          {s.gamma_api_base}  limit={s.gamma_events_limit}")
    typer.echo(f"db:             {s.db_path}")
    typer.echo(f"logging:        {s.logging_level} {s.logging_format}" + (f" -> {s.logging_file}" if s.logging_file else ""))


# Subcommands registered from other modules
from predintake.cli import api_cmd, markets, tui_cmd  # noqa: E402

app.add_typer(markets.app, name="markets")
app.add_typer(api_cmd.app, name="serve")
app.add_typer(tui_cmd.app, name="tui")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
