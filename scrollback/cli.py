"""Scrollback CLI: scrape chat history and serve the RPC bridge.

Usage:
    scrollback scrape                          # Scrape the open chat to a file
    scrollback scrape --chat "Family" -o f.txt # Open a chat first
    scrollback scrape --filter me --min-length 20
    scrollback bridge                          # Serve ws://127.0.0.1:9999
    scrollback inspect                         # Check selectors on the open chat
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from scrollback.bridge import BridgeConnection, BridgeMethods, Dispatcher
from scrollback.common.exceptions import ItemNotFoundError
from scrollback.config import BridgeConfig, EngineConfig, PageSelectors
from scrollback.data_types import DirectionFilter, ScrapeOptions
from scrollback.engine import ScrapeEngine
from scrollback.export import default_filename, format_records, write_export
from scrollback.extraction.chat_list import (
    current_item_name,
    match_item,
    read_item_previews,
)
from scrollback.session import SessionSlot

if TYPE_CHECKING:
    from scrollback.host.playwright_page import PlaywrightHostPage

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def browser_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that drives the browser."""

    @click.option(
        "--url",
        default="https://web.whatsapp.com",
        show_default=True,
        help="Chat client URL.",
    )
    @click.option(
        "--cdp",
        "cdp_url",
        default=None,
        help="Attach to a running Chromium over CDP (e.g. http://127.0.0.1:9222).",
    )
    @click.option(
        "--profile",
        "profile_dir",
        type=click.Path(file_okay=False),
        default=None,
        help="Browser profile directory (default: ~/.scrollback/profile).",
    )
    @click.option("--headless", is_flag=True, help="Run the launched browser headless.")
    @click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return func(*args, **kwargs)

    return wrapper


def _open_host(
    url: str,
    cdp_url: str | None,
    profile_dir: str | None,
    headless: bool,
) -> Any:
    try:
        from scrollback.host.playwright_page import PlaywrightHostPage
    except ImportError as e:
        raise click.ClickException(
            f"Missing dependency: {e}. "
            "Install Playwright and its browsers: "
            "pip install playwright && playwright install chromium"
        ) from e

    return PlaywrightHostPage.open(
        url=url,
        cdp_url=cdp_url,
        user_data_dir=Path(profile_dir).expanduser() if profile_dir else None,
        headless=headless,
    )


async def _open_chat(host: PlaywrightHostPage, name: str) -> str:
    previews = read_item_previews(await host.snapshot(), host.selectors)
    match = match_item(previews, name)
    if match is None:
        error = ItemNotFoundError(name, [p.name for p in previews])
        raise click.ClickException(error.message)
    await host.open_item(match.name)
    return match.name


@click.group()
@click.version_option(package_name="scrollback")
def cli() -> None:
    """Scrollback: chat history scraper and RPC bridge."""


@cli.command()
@browser_options
@click.option(
    "--chat",
    "chat_name",
    default=None,
    help="Open the first chat whose name contains this text before scraping.",
)
@click.option(
    "--filter",
    "direction",
    type=click.Choice([f.value for f in DirectionFilter]),
    default=DirectionFilter.ALL.value,
    show_default=True,
    help="Keep all messages, only mine, or only theirs.",
)
@click.option("--min-length", type=int, default=0, show_default=True)
@click.option(
    "--scroll-limit",
    type=int,
    default=50,
    show_default=True,
    help="Maximum pagination steps (~20 messages each).",
)
@click.option("--no-text", is_flag=True, help="Drop messages without media.")
@click.option("--no-media", is_flag=True, help="Drop messages with media.")
@click.option(
    "--settle-delay",
    type=float,
    default=EngineConfig().settle_delay,
    show_default=True,
    help="Seconds to wait for the list to render after each step.",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False),
    default=None,
    help="Export file (default: whatsapp-<chat>-<date>.txt).",
)
def scrape(
    url: str,
    cdp_url: str | None,
    profile_dir: str | None,
    headless: bool,
    verbose: bool,
    chat_name: str | None,
    direction: str,
    min_length: int,
    scroll_limit: int,
    no_text: bool,
    no_media: bool,
    settle_delay: float,
    output: str | None,
) -> None:
    """Scrape the open chat's history and write it as a text export."""
    _configure_logging(verbose)

    options = ScrapeOptions(
        filter=DirectionFilter(direction),
        include_text=not no_text,
        include_media=not no_media,
        min_length=min_length,
        scroll_limit=scroll_limit,
    )

    async def _go() -> tuple[str, str, int]:
        async with _open_host(url, cdp_url, profile_dir, headless) as host:
            if chat_name:
                opened = await _open_chat(host, chat_name)
                click.echo(f"Opened chat: {opened}")

            engine = ScrapeEngine(
                host, config=EngineConfig(settle_delay=settle_delay)
            )
            slot = SessionSlot(engine)
            session = slot.start(options)
            try:
                records = await slot.wait()
            except asyncio.CancelledError:
                session.stop()
                raise
            if session.error:
                raise click.ClickException(session.error)

            name = (
                current_item_name(await host.snapshot(), host.selectors)
                or "unknown-chat"
            )
            return name, format_records(records, options.filter), len(records)

    name, text, count = asyncio.run(_go())
    path = Path(output) if output else Path(default_filename(name))
    write_export(path, text)
    click.echo(f"Saved {count} messages from '{name}' to {path}")


@cli.command()
@browser_options
@click.option(
    "--host",
    "bridge_host",
    default=BridgeConfig().host,
    show_default=True,
    help="Control process host.",
)
@click.option(
    "--port",
    "bridge_port",
    type=int,
    default=BridgeConfig().port,
    show_default=True,
    help="Control process port.",
)
@click.option(
    "--reconnect-interval",
    type=float,
    default=BridgeConfig().reconnect_interval,
    show_default=True,
    help="Seconds between reconnect attempts.",
)
def bridge(
    url: str,
    cdp_url: str | None,
    profile_dir: str | None,
    headless: bool,
    verbose: bool,
    bridge_host: str,
    bridge_port: int,
    reconnect_interval: float,
) -> None:
    """Serve RPC requests from a local control process over WebSocket."""
    _configure_logging(verbose)
    config = BridgeConfig(
        host=bridge_host,
        port=bridge_port,
        reconnect_interval=reconnect_interval,
    )

    async def _go() -> None:
        async with _open_host(url, cdp_url, profile_dir, headless) as host:
            engine = ScrapeEngine(host)
            methods = BridgeMethods(engine, SessionSlot(engine), host.selectors)
            connection = BridgeConnection(Dispatcher(methods.table()), config)
            click.echo(f"Bridge connecting to {config.url} (Ctrl-C to quit)")
            await connection.run()

    try:
        asyncio.run(_go())
    except KeyboardInterrupt:
        click.echo("Bridge stopped.")


@cli.command()
@browser_options
@click.option(
    "--samples",
    type=int,
    default=3,
    show_default=True,
    help="Number of sample records to print.",
)
def inspect(
    url: str,
    cdp_url: str | None,
    profile_dir: str | None,
    headless: bool,
    verbose: bool,
    samples: int,
) -> None:
    """Report what the selectors find on the open chat."""
    _configure_logging(verbose)

    async def _go() -> None:
        async with _open_host(url, cdp_url, profile_dir, headless) as host:
            selectors: PageSelectors = host.selectors
            engine = ScrapeEngine(host)
            container = await engine.has_container()
            root = await host.snapshot()
            rows = engine.extractor.rows(root)
            records = engine.extractor.extract_all(root)

            click.echo(f"Chat:       {current_item_name(root, selectors) or '-'}")
            click.echo(f"Container:  {'found' if container else 'NOT FOUND'}")
            click.echo(f"Rows:       {len(rows)} ({selectors.message_row})")
            click.echo(f"Extracted:  {len(records)}")
            for record in records[:samples]:
                arrow = "->" if record.is_outgoing else "<-"
                click.echo(f"  {arrow} [{record.timestamp or '?'}] {record.text[:80]}")

    asyncio.run(_go())


def main() -> None:
    """Entry point for the ``scrollback`` console script."""
    cli()
