from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    This uses pydantic-settings so that we get type validation and defaults.
    Monitor timings are expressed in milliseconds, matching the unit of the
    stored transaction timestamps.
    """

    # App basics
    ENV: Literal["development", "staging", "production"] = "development"
    """Environment mode: affects logging and which ledger probe is wired in."""

    DEBUG: bool = True
    """Enable debug mode: verbose logging and development features."""

    # DB
    DATABASE_URL: Optional[str] = None
    """Database connection URL. If None, uses SQLite for development."""

    # Ledger
    LEDGER_PROBE: Literal["web3", "scripted"] = "web3"
    """Ledger probe implementation. 'scripted' replays pending, mined, success."""

    ETH_RPC_URL: str = "https://ethereum-sepolia-rpc.publicnode.com"
    """JSON-RPC endpoint queried by the web3 ledger probe."""

    CONFIRMATION_BLOCKS: int = 3
    """Blocks on top of the containing block before a receipt counts as final."""

    # Monitor timing (ms)
    TX_TIME_LIMIT_MS: int = 24 * 60 * 60 * 1000
    """How long a transaction may stay unconfirmed/unfound before timing out."""

    TX_POLL_INTERVAL_MS: int = 30 * 1000
    """Delay between two polls of the same transaction."""

    TX_INITIAL_DELAY_MS: int = 60 * 1000
    """Delay after submission before the first poll."""

    # Rate limiting
    RATE_LIMIT_MAX_CONCURRENT: int = 5
    """Probe calls allowed in flight at once across all monitors."""

    RATE_LIMIT_MIN_INTERVAL_MS: int = 100
    """Minimum spacing between the start of two probe calls."""

    # Webhooks
    WEBHOOK_TIMEOUT_SECONDS: float = 10.0
    """Timeout for a single webhook POST."""

    # Model config
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance to avoid re-parsing .env repeatedly."""
    return Settings()
