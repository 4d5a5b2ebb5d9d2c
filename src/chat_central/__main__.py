"""CLI entry point.

Routes captured URLs to adapters and replays captured response bodies
through the capture pipeline.
"""

import json
import sys
from pathlib import Path

import click

from chat_central.adapters import get_adapter_for_url
from chat_central.capture import MemorySink, process_capture
from chat_central.config import Config, load_config
from chat_central.logging import setup_logging


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to config.yaml",
)
@click.option("--verbose", "-v", is_flag=True, help="Also log to stderr")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Normalize captured chat platform API responses."""
    config = load_config(config_path)
    setup_logging(
        log_dir=config.logging.log_dir,
        level=config.logging.level_number,
        console=verbose,
    )
    ctx.obj = config


@cli.command()
@click.argument("url")
def route(url: str) -> None:
    """Show which adapter handles URL."""
    adapter = get_adapter_for_url(url)
    if adapter is None:
        click.echo(f"No adapter for {url}", err=True)
        sys.exit(1)

    click.echo(f"platform: {adapter.platform}")
    click.echo(f"endpoint: {adapter.get_endpoint_type(url)}")
    click.echo(f"conversation id: {adapter.extract_conversation_id(url) or '-'}")


@cli.command()
@click.argument("url")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--now", type=int, help="Parse time in epoch milliseconds")
@click.option("--pretty", is_flag=True, help="Indent the JSON output")
@click.pass_obj
def parse(config: Config, url: str, file: Path, now: int | None, pretty: bool) -> None:
    """Parse a captured response body stored in FILE."""
    data = file.read_text(encoding="utf-8")
    sink = MemorySink()
    result = process_capture(url, data, sink, now=now, config=config)

    output = {
        "success": result.success,
        "platform": result.platform,
        "endpointType": result.endpoint_type,
        "count": result.count,
        "conversations": [c.to_doc() for c in sink.conversations.values()],
        "messages": [
            m.to_doc()
            for conversation_id in sink.conversations
            for m in sink.get_messages(conversation_id)
        ],
    }
    if result.error:
        output["error"] = result.error

    click.echo(json.dumps(output, indent=2 if pretty else None, ensure_ascii=False))
    if not result.success:
        sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
