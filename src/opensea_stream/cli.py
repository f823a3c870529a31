"""CLI entry point for opensea_stream."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from opensea_stream.client import client, subscribe_to
from opensea_stream.config import load_config
from opensea_stream.errors import ChannelClosed, ChannelRegistrationError, ConsumerLagged, TransportClosed
from opensea_stream.models.schema import StreamEvent
from opensea_stream.topics import (
    ALL_COLLECTIONS,
    PAYLOAD_EVENTS,
    Collection,
    CollectionSlug,
    ContractAddress,
    encode_topic,
    resolve,
)

log = logging.getLogger(__name__)


def _target(slug: str | None, contract: str | None) -> Collection:
    """Subscription target from the SLUG argument / --contract option."""
    if slug and contract:
        raise click.UsageError("Give either a collection slug or --contract, not both.")
    if contract:
        chain, _, address = contract.partition(":")
        if not chain or not address:
            raise click.BadParameter("expected CHAIN:ADDRESS", param_hint="--contract")
        return ContractAddress(chain, address)
    if slug:
        return CollectionSlug(slug)
    return ALL_COLLECTIONS


def _describe(event: StreamEvent) -> str:
    """One-line human summary of a decoded event."""
    payload = event.payload
    parts = [f"[{event.event.value}]", payload.collection.slug]
    item = getattr(payload, "item", None)
    if item is not None:
        parts.append(str(item.nft_id))
    for price_field in ("sale_price", "base_price"):
        price = getattr(payload, price_field, None)
        if price is not None:
            parts.append(f"{price} ({payload.payment_token.symbol})")
            break
    return " ".join(parts)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """opensea-stream - real-time marketplace events from the command line."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    cfg = load_config(config_path)
    level = logging.DEBUG if verbose else getattr(logging, cfg.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show client configuration."""
    cfg = load_config(ctx.obj["config_path"])
    click.echo(f"Network:    {cfg.network.value}")
    click.echo(f"Endpoint:   {resolve(cfg.network)}")
    click.echo(f"API key:    {'***configured***' if cfg.api_key else '(not set)'}")
    click.echo(f"Heartbeat:  {cfg.heartbeat_interval:g}s")
    click.echo(f"Join wait:  {cfg.join_timeout:g}s")
    click.echo(f"Buffer:     {cfg.channel_capacity} messages per channel")


@cli.command()
@click.argument("slug", required=False)
@click.option("--contract", default=None, metavar="CHAIN:ADDRESS", help="Subscribe to one contract")
def topic(slug: str | None, contract: str | None) -> None:
    """Print the channel topic for a collection, a contract, or everything."""
    click.echo(encode_topic(_target(slug, contract)))


# ── Streaming ──────────────────────────────────────────


@cli.command()
@click.argument("slug", required=False)
@click.option("--contract", default=None, metavar="CHAIN:ADDRESS", help="Subscribe to one contract")
@click.option(
    "--event", "events", multiple=True,
    type=click.Choice([e.value for e in PAYLOAD_EVENTS]),
    help="Only print these event kinds (repeatable)",
)
@click.option("--json", "as_json", is_flag=True, help="Print each event as a JSON line")
@click.pass_context
def listen(
    ctx: click.Context,
    slug: str | None,
    contract: str | None,
    events: tuple[str, ...],
    as_json: bool,
) -> None:
    """Subscribe and print events as they arrive.

    With no SLUG and no --contract, every collection is followed. The
    server always sends every event kind; --event filters locally.
    """
    cfg = load_config(ctx.obj["config_path"])
    if not cfg.api_key:
        click.echo("Error: No API key configured.", err=True)
        click.echo("Set OPENSEA_STREAM_API_KEY env var or api_key in config.", err=True)
        sys.exit(1)

    target = _target(slug, contract)
    wanted = set(events)

    async def _listen():
        stream = await client(cfg.network, cfg.api_key, cfg)
        try:
            handler, subscription = await subscribe_to(stream, target)
            click.echo(f"Listening on {handler.topic}", err=True)
            try:
                while True:
                    try:
                        message = await subscription.recv()
                    except ConsumerLagged as exc:
                        log.warning("Fell behind, %d message(s) dropped", exc.skipped)
                        continue
                    except ChannelClosed:
                        click.echo("Channel closed.", err=True)
                        return

                    event = message.into_custom_payload()
                    if event is None:
                        continue
                    if wanted and event.event.value not in wanted:
                        continue
                    if as_json:
                        click.echo(json.dumps(event.to_dict()))
                    else:
                        click.echo(_describe(event))
            finally:
                await handler.close()
        finally:
            await stream.close()

    try:
        asyncio.run(_listen())
    except (ChannelRegistrationError, TransportClosed) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
