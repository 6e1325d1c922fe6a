"""
Ledger transaction status monitoring.

This module watches submitted transactions until they succeed, fail or
time out, persists the outcome, and notifies downstream consumers once
per outcome.
"""

from txmonitor.monitor.config import MonitorConfig
from txmonitor.monitor.models import StatusUpdateEvent, TxRecord, TxStatus
from txmonitor.monitor.rate_limiter import RateLimiter
from txmonitor.monitor.state_machine import MonitorContext, TxStateMachine
from txmonitor.monitor.supervisor import MonitorSupervisor

__all__ = [
    "MonitorConfig",
    "MonitorContext",
    "MonitorSupervisor",
    "RateLimiter",
    "StatusUpdateEvent",
    "TxRecord",
    "TxStateMachine",
    "TxStatus",
]
