"""
Command line probes for providers configured in ``.env``.

    chatrelay models deepseek
    chatrelay check openai gpt-4o-mini
"""
import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from .client import ProviderRegistry
from .errors import ProviderNotConfiguredError
from .files import LocalFileStore
from .logging_config import configure_logging
from .providers.base import BaseProvider
from .settings import RelaySettings, provider_from_env
from .types import Model

app = typer.Typer(name="chatrelay", help="Probe OpenAI-compatible chat providers.")
console = Console()


def _load_provider(provider_id: str) -> BaseProvider:
    # Probes send no attachments, so the file store is never read
    registry = ProviderRegistry(LocalFileStore(Path(".")), settings=RelaySettings.from_env(provider_id))
    provider_id = registry.normalize_id(provider_id)
    try:
        return registry.register(provider_from_env(provider_id))
    except ProviderNotConfiguredError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(code=1)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")):
    configure_logging("DEBUG" if verbose else "WARNING", console=console)


@app.command()
def models(
    provider_id: str = typer.Argument(..., help="Provider id, e.g. openai, deepseek, github."),
):
    """List the chat models a provider serves."""
    provider = _load_provider(provider_id)
    listed = asyncio.run(provider.models())

    if not listed:
        console.print(f"[yellow]No models returned by {provider_id}[/]")
        raise typer.Exit(code=1)

    table = Table(title=f"{provider_id} models")
    table.add_column("Model", style="cyan")
    table.add_column("Group")
    table.add_column("Owner", style="dim")
    for model in listed:
        table.add_row(model.id, model.group, model.owned_by or "")
    console.print(table)


@app.command()
def check(
    provider_id: str = typer.Argument(..., help="Provider id."),
    model_id: str = typer.Argument(..., help="Model id to probe."),
):
    """Send a one-word prompt and report whether the model answers."""
    provider = _load_provider(provider_id)
    model = Model(id=model_id, provider=provider.provider.id, name=model_id)
    result = asyncio.run(provider.check(model))

    if result.valid:
        console.print(f"[green]✓[/] {provider_id}/{model_id} is reachable")
        return

    console.print(f"[red]✗[/] {provider_id}/{model_id} failed: {result.error}")
    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
