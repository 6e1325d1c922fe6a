"""Builds the shared monitor collaborators from settings."""

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import async_sessionmaker

from txmonitor.core.config import Settings, get_settings
from txmonitor.monitor.clients import LedgerStatusProbe, ScriptedLedgerProbe, Web3LedgerProbe
from txmonitor.monitor.config import MonitorConfig
from txmonitor.monitor.metrics import MonitorMetrics
from txmonitor.monitor.ports import EventPublisher
from txmonitor.monitor.publisher import InMemoryEventPublisher
from txmonitor.monitor.rate_limiter import RateLimiter
from txmonitor.monitor.state_machine import MonitorContext
from txmonitor.monitor.stores import SqlRecordStore, SqlUserDirectory
from txmonitor.monitor.webhook import HttpxWebhookNotifier

logger = structlog.get_logger()


def create_probe(settings: Settings, config: MonitorConfig) -> LedgerStatusProbe:
    """Create the ledger probe selected by settings."""
    if settings.LEDGER_PROBE == "scripted":
        if settings.ENV == "production":
            logger.warning("factory.scripted_probe_in_production")
        return ScriptedLedgerProbe()
    return Web3LedgerProbe(
        rpc_url=settings.ETH_RPC_URL,
        confirmation_blocks=settings.CONFIRMATION_BLOCKS,
        retry=config.retry,
    )


def create_context(
    settings: Optional[Settings] = None,
    session_factory: Optional[async_sessionmaker] = None,
    publisher: Optional[EventPublisher] = None,
) -> MonitorContext:
    """
    Wire probe, limiter, SQL stores, publisher and notifier.

    Without an explicit ``publisher`` the context gets an in-process
    ``InMemoryEventPublisher``; status events reach whoever subscribes to
    its ``misc`` topic, or nobody.
    """
    settings = settings or get_settings()
    config = MonitorConfig.from_settings(settings)
    return MonitorContext(
        probe=create_probe(settings, config),
        rate_limiter=RateLimiter(config.rate_limit),
        store=SqlRecordStore(session_factory=session_factory),
        users=SqlUserDirectory(session_factory=session_factory),
        publisher=publisher or InMemoryEventPublisher(),
        notifier=HttpxWebhookNotifier(config.webhook),
        config=config,
        metrics=MonitorMetrics(),
    )
