"""CLI entry point for the ledger poller."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import asdict, is_dataclass

import click

from ledger_poller.config import load_config
from ledger_poller.daemon import build_poller, run_daemon
from ledger_poller.models.config import AppConfig
from ledger_poller.models.events import LedgerEvent
from ledger_poller.stellar.client import SorobanEventClient


def _event_json(event: LedgerEvent) -> str:
    payload = asdict(event.payload) if is_dataclass(event.payload) else event.payload
    return json.dumps(
        {"id": event.key, "timestamp_ms": event.timestamp_ms, "payload": payload},
        default=str,
    )


def _echo_events(events: list[LedgerEvent]) -> None:
    for event in events:
        click.echo(_event_json(event))


def _require_filters(cfg: AppConfig) -> None:
    """Exit with error if no event filters are configured."""
    if not cfg.filters:
        click.echo("Error: No event filters configured.", err=True)
        click.echo("Add at least one [[filters]] table to the config file.", err=True)
        sys.exit(1)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """ledger-poller - stream new Soroban contract events."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    cfg = load_config(config_path)
    ctx.obj["config"] = cfg

    level = logging.DEBUG if verbose else getattr(logging, cfg.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Poll continuously, printing new events as JSON lines."""
    cfg = ctx.obj["config"]
    _require_filters(cfg)

    click.echo(f"Polling {len(cfg.filters)} filter(s) on {cfg.rpc_url}", err=True)
    asyncio.run(run_daemon(cfg, on_new_events=_echo_events))


@cli.command()
@click.option("--all", "from_start", is_flag=True, help="Include events older than now")
@click.pass_context
def once(ctx: click.Context, from_start: bool) -> None:
    """Run a single fetch cycle and print what it finds."""
    cfg = ctx.obj["config"]
    _require_filters(cfg)
    if from_start:
        cfg.start_from_now = False

    async def _once() -> None:
        async with SorobanEventClient(
            cfg.rpc_url,
            lookback_ledgers=cfg.lookback_ledgers,
            fetch_limit=cfg.fetch_limit,
        ) as client:
            poller = build_poller(cfg, client, on_new_events=_echo_events)
            await poller.poll_once()

    asyncio.run(_once())


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the resolved configuration."""
    cfg = ctx.obj["config"]
    click.echo(f"Network:      {cfg.network}")
    click.echo(f"RPC URL:      {cfg.rpc_url}")
    click.echo(f"Interval:     {cfg.interval_ms} ms")
    click.echo(f"Page size:    {cfg.page_size}")
    click.echo(f"Memory:       {cfg.memory_window_ms} ms window, {cfg.max_stored_events} ids/filter")
    click.echo(f"Start:        {'now' if cfg.start_from_now else 'epoch'}")
    click.echo(f"Lookback:     {cfg.lookback_ledgers} ledgers")
    click.echo(f"Filters:      {len(cfg.filters)}")
    for f in cfg.filters:
        click.echo(f"  - {json.dumps(f, sort_keys=True)}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
