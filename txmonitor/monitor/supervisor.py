"""
Owner of running transaction monitors.

Starts one ``TxStateMachine`` task per watched transaction, keeps the set
of active monitors, and drops each monitor when its finish callback fires.
"""

import asyncio
from typing import Any, Callable, Dict, Iterable, List, Optional

import structlog

from txmonitor.monitor.metrics import MonitorMetrics
from txmonitor.monitor.models import TxRecord, TxStatus
from txmonitor.monitor.state_machine import MonitorContext, TxStateMachine, now_ms
from txmonitor.monitor.stores import RecordNotFoundError

logger = structlog.get_logger("supervisor")


class AlreadyWatchingError(Exception):
    """Raised when a transaction already has an active monitor."""

    pass


class AlreadyFinishedError(Exception):
    """Raised when a stored transaction already has a final outcome."""

    pass


class MonitorSupervisor:
    """
    Runs and tracks monitors for many transactions.

    Only one monitor per transaction hash is allowed at a time.
    """

    def __init__(self, context: MonitorContext, clock: Callable[[], int] = now_ms):
        if context.metrics is None:
            context.metrics = MonitorMetrics()
        self.context = context
        self.metrics: MonitorMetrics = context.metrics
        self._clock = clock
        self._monitors: Dict[str, TxStateMachine] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

        logger.info(
            "supervisor.initialized",
            probe=context.probe.get_source_name(),
            time_limit_ms=context.config.time_limit_ms,
            poll_interval_ms=context.config.poll_interval_ms,
            initial_delay_ms=context.config.initial_delay_ms,
        )

    @property
    def active(self) -> Dict[str, TxStateMachine]:
        return dict(self._monitors)

    def is_watching(self, tx_hash: str) -> bool:
        return tx_hash in self._monitors

    def watch(self, record: TxRecord) -> TxStateMachine:
        """
        Start monitoring a transaction.

        Raises:
            AlreadyWatchingError: If the hash already has an active monitor
            AlreadyFinishedError: If the record is no longer pending
        """
        if record.tx_hash in self._monitors:
            raise AlreadyWatchingError(f"Already watching {record.tx_hash}")
        if record.status != TxStatus.PENDING.value:
            raise AlreadyFinishedError(
                f"Transaction {record.tx_hash} already finished as {record.status}"
            )

        monitor = TxStateMachine(
            record, self.context, on_finish=self._on_finish, clock=self._clock
        )
        self._monitors[record.tx_hash] = monitor
        self._tasks[record.tx_hash] = asyncio.create_task(
            monitor.start(), name=f"monitor-{record.tx_hash}"
        )
        return monitor

    async def watch_hash(self, tx_hash: str) -> TxStateMachine:
        """
        Load a transaction from the record store and start monitoring it.

        Raises:
            RecordNotFoundError: If the store has no such transaction
            AlreadyWatchingError: If the hash already has an active monitor
            AlreadyFinishedError: If the transaction already has an outcome
        """
        record = await self.context.store.get(tx_hash)
        if record is None:
            raise RecordNotFoundError(f"Transaction {tx_hash} not found")
        return self.watch(record)

    def resume(self, records: Iterable[TxRecord]) -> int:
        """
        Watch every record not already being watched.

        Returns:
            Number of monitors started
        """
        started = 0
        for record in records:
            if record.tx_hash in self._monitors:
                continue
            if record.status != TxStatus.PENDING.value:
                continue
            self.watch(record)
            started += 1
        logger.info("supervisor.resumed", started=started)
        return started

    async def resume_submitted(self) -> int:
        """Watch every stored transaction still waiting for an outcome."""
        return self.resume(await self.context.store.list_submitted())

    def stop(self, tx_hash: str) -> bool:
        """Ask one monitor to stop. Returns False if the hash is not watched."""
        monitor = self._monitors.get(tx_hash)
        if monitor is None:
            return False
        monitor.stop()
        return True

    async def join(self, tx_hash: Optional[str] = None):
        """Wait for one monitor, or all current monitors, to finish."""
        if tx_hash is not None:
            task = self._tasks.get(tx_hash)
            tasks = [task] if task else []
        else:
            tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def stop_all(self):
        """Stop every monitor and wait for them to exit."""
        tasks = list(self._tasks.values())
        logger.info("supervisor.stopping", active=len(tasks))
        for monitor in list(self._monitors.values()):
            monitor.stop()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("supervisor.stopped")

    def _on_finish(self, monitor: TxStateMachine):
        self._monitors.pop(monitor.tx_hash, None)
        self._tasks.pop(monitor.tx_hash, None)

    def get_status(self) -> Dict[str, Any]:
        """Get active monitors, limiter state and metrics."""
        monitors: List[Dict[str, Any]] = [
            {
                "tx_hash": m.tx_hash,
                "status": m.status.value if m.status else None,
                "ts": m.ts,
                "polls": m.polls,
                "stop_requested": m.stop_requested,
            }
            for m in self._monitors.values()
        ]
        return {
            "active_count": len(monitors),
            "active": monitors,
            "probe": self.context.probe.get_source_name(),
            "rate_limiter": self.context.rate_limiter.get_state(),
            "metrics": self.metrics.to_dict(),
            "config": {
                "time_limit_ms": self.context.config.time_limit_ms,
                "poll_interval_ms": self.context.config.poll_interval_ms,
                "initial_delay_ms": self.context.config.initial_delay_ms,
            },
        }


# Global supervisor instance, set by the application lifespan
_supervisor: Optional[MonitorSupervisor] = None


def set_supervisor(supervisor: Optional[MonitorSupervisor]):
    global _supervisor
    _supervisor = supervisor


def get_supervisor() -> MonitorSupervisor:
    if _supervisor is None:
        raise RuntimeError("Monitor supervisor is not initialized")
    return _supervisor
