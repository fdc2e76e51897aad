"""Whisperer command line interface."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from whisperer.app.runtime import AppRuntime
from whisperer.channels.console import ConsoleChannel, ConsoleTransport
from whisperer.config import Settings, load_settings
from whisperer.core.permissions import WRITE_TOOLS
from whisperer.core.types import ToolDefinition, TurnResult
from whisperer.errors import WhispererError
from whisperer.logging_utils import LogProfile, configure_logging

app = typer.Typer(name="whisperer", help="Manage Jira from a chat thread", add_completion=False)


def _bootstrap(log_level: str | None = None, profile: LogProfile | None = None) -> Settings:
    try:
        settings = load_settings(log_level=log_level)
    except WhispererError as exc:
        typer.secho(f"configuration error: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc
    configure_logging(profile=profile or settings.log_profile, level=settings.log_level)
    return settings


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", help="Bind port"),
    log_level: str | None = typer.Option(None, "--log-level", help="Log level"),
) -> None:
    """Serve the Slack events endpoint."""

    import uvicorn

    from whisperer.server import create_app

    settings = _bootstrap(log_level)
    runtime = AppRuntime(settings)
    uvicorn.run(
        create_app(runtime),
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )


@app.command()
def ask(
    message: str = typer.Argument(..., help="What to ask the assistant"),
    user_id: str = typer.Option("", "--user-id", "-u", help="User whose personal token is used"),
    log_level: str | None = typer.Option(None, "--log-level", help="Log level"),
) -> None:
    """Run one turn in the terminal."""

    settings = _bootstrap(log_level, profile="console")
    result = asyncio.run(_ask(settings, message, user_id))
    if result is None or not result.ok:
        raise typer.Exit(code=1)


async def _ask(settings: Settings, message: str, user_id: str) -> TurnResult | None:
    async with AppRuntime(settings) as runtime:
        transport = ConsoleTransport()
        channel = ConsoleChannel(
            transport,
            runtime.build_orchestrator(transport),
            user_id=user_id,
            support_contact=settings.support_contact,
        )
        return await channel.run_turn(message)


@app.command()
def tools(
    log_level: str | None = typer.Option(None, "--log-level", help="Log level"),
) -> None:
    """List the tools offered by the tool server."""

    settings = _bootstrap(log_level, profile="console")

    async def _list() -> list[ToolDefinition]:
        async with AppRuntime(settings) as runtime:
            return await runtime.list_tools()

    try:
        definitions = asyncio.run(_list())
    except WhispererError as exc:
        typer.secho(f"failed to list tools: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    table = Table("name", "write", "description")
    for tool in definitions:
        table.add_row(tool.name, "yes" if tool.name in WRITE_TOOLS else "", tool.description.split("\n")[0])
    Console().print(table)


@app.command("set-token")
def set_token(
    user_id: str = typer.Argument(..., help="Chat user id"),
    token: str = typer.Option(..., "--token", prompt=True, hide_input=True, help="Personal Jira token"),
) -> None:
    """Store a personal token for a user."""

    settings = _bootstrap()
    try:
        asyncio.run(AppRuntime(settings).tokens.set_token(user_id, token))
    except WhispererError as exc:
        typer.secho(f"failed to store token: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    typer.echo(f"token stored for {user_id}")
