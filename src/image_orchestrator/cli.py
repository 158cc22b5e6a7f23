"""
Image Orchestrator CLI
Acquire images and inspect provider quotas from the command line.
"""

import asyncio
import base64
import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from image_orchestrator.config import get_settings
from image_orchestrator.errors import ImageAcquisitionError
from image_orchestrator.logging_config import configure_logging
from image_orchestrator.models import AcquiredImage
from image_orchestrator.orchestrator import ImageOrchestrator, create_orchestrator


console = Console()


def decode_data_uri(data_uri: str) -> bytes:
    """Return the raw bytes of a base64 ``data:`` URI."""
    _, _, encoded = data_uri.partition(";base64,")
    return base64.b64decode(encoded)


async def _acquire(orchestrator: ImageOrchestrator, word: str) -> AcquiredImage:
    async with orchestrator:
        return await orchestrator.acquire_image(word)


async def _status(orchestrator: ImageOrchestrator) -> dict:
    async with orchestrator:
        return await orchestrator.status()


@click.group()
@click.option("--log-level", "-l", default=None, help="Override LOG_LEVEL")
@click.pass_context
def cli(ctx, log_level: str | None):
    """Image Orchestrator CLI - word-to-image acquisition."""
    settings = get_settings()
    if log_level:
        settings = settings.model_copy(update={"log_level": log_level})
    configure_logging(settings)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@cli.command()
@click.argument("word")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write the image to a file")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def acquire(ctx, word: str, output: Path | None, as_json: bool):
    """Acquire an image for WORD."""
    orchestrator = create_orchestrator(ctx.obj["settings"])
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(f"Acquiring image for '{word}'...", total=None)
            image = asyncio.run(_acquire(orchestrator, word))
    except (ImageAcquisitionError, ValueError) as e:
        console.print(f"❌ [red]Error: {e}[/red]")
        sys.exit(1)

    if output is not None:
        output.write_bytes(decode_data_uri(image.image_data))

    if as_json:
        console.print(json.dumps(image.to_dict(), indent=2))
        return

    console.print(f"✅ [green]Image for '{image.word}' from {image.source_provider}[/green]")
    console.print(f"   Size: {len(decode_data_uri(image.image_data)):,} bytes")
    if output is not None:
        console.print(f"   Saved to: {output}")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def providers(ctx, as_json: bool):
    """List configured providers and their quotas."""
    status = asyncio.run(_status(create_orchestrator(ctx.obj["settings"])))

    if as_json:
        console.print(json.dumps(status["providers"], indent=2))
        return

    table = Table(title="Image Providers")
    table.add_column("Provider", style="cyan")
    table.add_column("Class")
    table.add_column("Remaining", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("Resets at")
    table.add_column("Concurrency", justify="right")

    for p in status["providers"]:
        rate = p["rate_limit"]
        color = "green" if rate["allowed"] else "red"
        table.add_row(
            p["name"],
            p["speed_class"],
            f"[{color}]{rate['remaining']}[/{color}]",
            str(rate["limit"]),
            rate["reset_at"],
            str(p["max_concurrent"]),
        )

    console.print(table)


@cli.command()
@click.option("--host", default=None, help="Bind address (default API_HOST)")
@click.option("--port", default=None, type=int, help="Port (default API_PORT)")
@click.pass_context
def serve(ctx, host: str | None, port: int | None):
    """Run the HTTP API."""
    from image_orchestrator.main import run_server

    run_server(ctx.obj["settings"], host=host, port=port)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
