"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

from ledger_poller.models.config import AppConfig

NETWORK_RPC_URLS = {
    "testnet": "https://soroban-testnet.stellar.org",
    "mainnet": "https://mainnet.sorobanrpc.com",
}


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "LEDGER_POLLER_",
) -> AppConfig:
    """Load poller configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (LEDGER_POLLER_RPC_URL, etc.)
        2. TOML config file
        3. Defaults from AppConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = AppConfig()

    # ── Poller section ─────────────────────────────────────
    poller = raw.get("poller", {})
    if (v := poller.get("interval_ms")) is not None:
        cfg.interval_ms = int(v)
    if (v := poller.get("memory_window_ms")) is not None:
        cfg.memory_window_ms = int(v)
    if (v := poller.get("max_stored_events")) is not None:
        cfg.max_stored_events = int(v)
    if (v := poller.get("start_from_now")) is not None:
        cfg.start_from_now = bool(v)
    if (v := poller.get("page_size")) is not None:
        cfg.page_size = int(v)

    # ── Stellar section ────────────────────────────────────
    stellar = raw.get("stellar", {})
    if v := stellar.get("network"):
        cfg.network = str(v)
        cfg.rpc_url = NETWORK_RPC_URLS.get(cfg.network, cfg.rpc_url)
    if v := stellar.get("rpc_url"):
        cfg.rpc_url = str(v)
    if v := stellar.get("lookback_ledgers"):
        cfg.lookback_ledgers = int(v)
    if v := stellar.get("fetch_limit"):
        cfg.fetch_limit = int(v)

    # ── Logging section ────────────────────────────────────
    logging_raw = raw.get("logging", {})
    if v := logging_raw.get("level"):
        cfg.log_level = str(v)

    # ── Filters ([[filters]] tables) ───────────────────────
    cfg.filters = [dict(f) for f in raw.get("filters", [])]

    # ── Environment variable overrides (highest priority) ──
    if net := os.environ.get(f"{env_prefix}NETWORK"):
        cfg.network = net
        cfg.rpc_url = NETWORK_RPC_URLS.get(net, cfg.rpc_url)
    if rpc := os.environ.get(f"{env_prefix}RPC_URL"):
        cfg.rpc_url = rpc
    if interval := os.environ.get(f"{env_prefix}INTERVAL_MS"):
        cfg.interval_ms = int(interval)
    if level := os.environ.get(f"{env_prefix}LOG_LEVEL"):
        cfg.log_level = level

    return cfg
