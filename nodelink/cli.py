"""
NodeLink - Command Line Interface

CLI for NodeLink.

Usage:
    nodelink probe
    nodelink send <payload> [--wait SECONDS]
    nodelink watch <payload> [--interval SECONDS] [--count N]
    nodelink --version

Copyright (c) 2024-2025 NodeLink Developers
"""

import asyncio
import json
import sys
from typing import Any, Optional

import click

from nodelink.__version__ import __version__, __title__
from nodelink.config import NodeLinkConfig, load_config
from nodelink.transport.auto import AutoTransport, select_transport_type
from nodelink.transport.base import TransportConfig
from nodelink.transport.websocket import probe_websocket
from nodelink.utils.errors import ConfigurationError
from nodelink.utils.logging import get_logger, setup_logging

logger = get_logger("cli")


def _parse_payload(ctx, param, value: str) -> Any:
    """Parse a JSON payload argument."""
    try:
        return json.loads(value)
    except ValueError as e:
        raise click.BadParameter(f"not valid JSON: {e}")


def _echo_message(payload: Any) -> None:
    if isinstance(payload, str):
        click.echo(payload)
    else:
        click.echo(json.dumps(payload))


@click.group()
@click.version_option(version=__version__, prog_name=__title__)
@click.option("--config", "-c", "config_path", default=None, help="Path to configuration file")
@click.option("--streaming-uri", "-s", default=None, help="WebSocket endpoint to probe")
@click.option("--polling-uri", "-p", default=None, help="HTTP endpoint used as fallback")
@click.option("--probe-timeout", type=float, default=None, help="Seconds to wait for the WebSocket handshake")
@click.option("--debug", "-d", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(
    ctx,
    config_path: Optional[str],
    streaming_uri: Optional[str],
    polling_uri: Optional[str],
    probe_timeout: Optional[float],
    debug: bool,
):
    """NodeLink - reach a node over the best available transport

    \b
    Tries a WebSocket connection first and falls back to HTTP polling.
    """
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        raise click.ClickException(e.message)

    setup_logging(
        level="DEBUG" if debug else config.logging.level,
        log_file=config.logging.file,
        console=config.logging.console,
    )

    if streaming_uri:
        config.transport.streaming_uri = streaming_uri
    if polling_uri:
        config.transport.polling_uri = polling_uri
    if probe_timeout is not None:
        config.transport.probe_timeout = probe_timeout

    ctx.obj = config


@cli.command()
@click.pass_obj
def probe(config: NodeLinkConfig):
    """Report which transport would be selected."""
    transport_config = config.transport
    ok = asyncio.run(
        probe_websocket(transport_config.streaming_uri, transport_config.probe_timeout)
    )
    chosen = select_transport_type(False, False, ok)
    uri = transport_config.streaming_uri if ok else transport_config.polling_uri
    click.echo(f"{chosen.value} {uri}")


@cli.command()
@click.argument("payload", callback=_parse_payload)
@click.option("--wait", "-w", type=float, default=2.0, show_default=True,
              help="Seconds to wait for replies after sending")
@click.pass_obj
def send(config: NodeLinkConfig, payload: Any, wait: float):
    """Send a JSON PAYLOAD and print the replies."""
    ok = asyncio.run(_send(config.transport, payload, wait))
    if not ok:
        sys.exit(1)


async def _send(config: TransportConfig, payload: Any, wait: float) -> bool:
    logger.debug(f"Sending {payload!r}")
    link = AutoTransport(config)
    link.set_message_handler(_echo_message)
    link.send(payload)

    try:
        await link.wait_resolved()
        click.echo(f"Using {link.transport_type.value} transport", err=True)
        try:
            await asyncio.wait_for(link.flush(), timeout=config.connect_timeout + wait)
        except asyncio.TimeoutError:
            click.echo("Timed out waiting for the payload to be sent", err=True)
            return False
        await asyncio.sleep(wait)

        stats = link.transport.stats
        click.echo(
            f"Sent {stats.messages_sent}, received {stats.messages_received}, "
            f"avg latency {stats.avg_latency:.1f} ms",
            err=True,
        )
        return True
    finally:
        await link.close()


@cli.command()
@click.argument("payload", callback=_parse_payload)
@click.option("--interval", "-i", type=float, default=None,
              help="Seconds between polls (default: poll_interval from config)")
@click.option("--count", "-n", type=int, default=10, show_default=True,
              help="Number of polls to issue")
@click.option("--watch-id", default="cli", show_default=True,
              help="Identifier echoed back with every poll result")
@click.pass_obj
def watch(config: NodeLinkConfig, payload: Any, interval: Optional[float],
          count: int, watch_id: str):
    """Poll a JSON PAYLOAD on a timer and print the results."""
    interval = config.transport.poll_interval if interval is None else interval
    ok = asyncio.run(_watch(config.transport, payload, interval, count, watch_id))
    if not ok:
        sys.exit(1)


async def _watch(config: TransportConfig, payload: Any, interval: float,
                 count: int, watch_id: str) -> bool:
    link = AutoTransport(config)
    link.set_message_handler(_echo_message)

    try:
        await link.wait_resolved()
        if not link.can_poll:
            click.echo(
                f"Using {link.transport_type.value} transport; "
                "results are pushed, nothing to poll",
                err=True,
            )
            return False

        for _ in range(count):
            link.poll(payload, watch_id)
            await asyncio.sleep(interval)

        await link.flush()
        return True
    finally:
        await link.close()


def main():
    """Entry point for the ``nodelink`` command."""
    cli()


if __name__ == "__main__":
    main()
