"""
Transaction monitor configuration.

Defines timing policy for each monitor, the shared probe rate budget,
retry policy for ledger RPC calls and webhook delivery settings. Built
once at startup and handed to each monitor explicitly.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from txmonitor.core.config import Settings, get_settings


class RetryConfig(BaseModel):
    """Configuration for retry behavior with exponential backoff."""

    max_attempts: int = Field(default=3, ge=1, description="Maximum retry attempts")
    initial_delay: float = Field(
        default=0.5, gt=0, description="Initial delay in seconds"
    )
    max_delay: float = Field(default=10.0, gt=0, description="Maximum delay in seconds")
    exponential_base: float = Field(default=2.0, gt=1, description="Backoff multiplier")
    jitter: bool = Field(
        default=True, description="Add random jitter to prevent thundering herd"
    )


class RateLimitConfig(BaseModel):
    """Budget shared by every monitor's probe calls."""

    max_concurrent: int = Field(
        default=5, ge=1, description="Probe calls allowed in flight at once"
    )
    min_interval_ms: int = Field(
        default=100, ge=0, description="Minimum spacing between call starts"
    )


class WebhookConfig(BaseModel):
    """Configuration for outbound webhook delivery."""

    timeout_seconds: float = Field(
        default=10.0, gt=0, description="Timeout for one webhook POST"
    )
    user_agent: str = Field(default="txmonitor-webhook/0.1")


class MonitorConfig(BaseModel):
    """Timing policy for a single transaction monitor."""

    time_limit_ms: int = Field(
        default=24 * 60 * 60 * 1000,
        gt=0,
        description="Max time unconfirmed or unfound before timing out",
    )
    poll_interval_ms: int = Field(
        default=30 * 1000, ge=0, description="Delay between polls"
    )
    initial_delay_ms: int = Field(
        default=60 * 1000,
        ge=0,
        description="Delay after submission before the first poll",
    )

    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)

    @classmethod
    def from_settings(cls, settings: Settings) -> "MonitorConfig":
        """Build monitor configuration from application settings."""
        return cls(
            time_limit_ms=settings.TX_TIME_LIMIT_MS,
            poll_interval_ms=settings.TX_POLL_INTERVAL_MS,
            initial_delay_ms=settings.TX_INITIAL_DELAY_MS,
            rate_limit=RateLimitConfig(
                max_concurrent=settings.RATE_LIMIT_MAX_CONCURRENT,
                min_interval_ms=settings.RATE_LIMIT_MIN_INTERVAL_MS,
            ),
            webhook=WebhookConfig(timeout_seconds=settings.WEBHOOK_TIMEOUT_SECONDS),
        )


def get_monitor_config(settings: Optional[Settings] = None) -> MonitorConfig:
    """Load monitor configuration from the environment."""
    return MonitorConfig.from_settings(settings or get_settings())
