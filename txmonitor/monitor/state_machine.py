"""
Per-transaction polling state machine.

One ``TxStateMachine`` watches one submitted transaction: it samples the
ledger through the shared rate limiter, interprets each observation, and
runs the terminal sequence once a final outcome is known.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import structlog

from txmonitor.monitor.clients.base import LedgerStatusProbe
from txmonitor.monitor.config import MonitorConfig
from txmonitor.monitor.metrics import MonitorMetrics
from txmonitor.monitor.models import NetworkTx, ProbeResult, Receipt, TxRecord, TxStatus
from txmonitor.monitor.ports import (
    EventPublisher,
    RecordStore,
    UserDirectory,
    WebhookNotifier,
)
from txmonitor.monitor.rate_limiter import RateLimiter
from txmonitor.monitor.terminal import TerminalSequence

logger = structlog.get_logger()


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class FinishReason(str, Enum):
    """Why a monitor's loop exited."""

    COMPLETED = "completed"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass
class MonitorContext:
    """Collaborators shared by every monitor of one process."""

    probe: LedgerStatusProbe
    rate_limiter: RateLimiter
    store: RecordStore
    users: UserDirectory
    publisher: EventPublisher
    notifier: WebhookNotifier
    config: MonitorConfig
    metrics: Optional[MonitorMetrics] = None

    def terminal_sequence(self) -> TerminalSequence:
        return TerminalSequence(
            probe=self.probe,
            store=self.store,
            users=self.users,
            publisher=self.publisher,
            notifier=self.notifier,
        )


class TxStateMachine:
    """
    Watches a single transaction until it succeeds, fails or times out.

    ``ts`` anchors the timeout window. It starts at the record's submission
    time and is pushed forward every time the transaction is seen mined, so
    a transaction that keeps showing up on chain is never timed out.

    ``on_finish`` is called exactly once with the monitor when ``start``
    returns, whatever the reason.
    """

    def __init__(
        self,
        record: TxRecord,
        context: MonitorContext,
        on_finish: Optional[Callable[["TxStateMachine"], None]] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.tx_hash = record.tx_hash
        self.record = record
        self.context = context
        self.config = context.config
        self.on_finish = on_finish
        self._clock = clock
        self._terminal = context.terminal_sequence()

        self.ts: int = record.ts or clock()
        self.status: Optional[TxStatus] = None
        self.polls = 0
        self.finish_reason: Optional[FinishReason] = None
        self.error: Optional[BaseException] = None

        self._stop_event = asyncio.Event()
        self._started = False
        self._finish_notified = False

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    @property
    def finished(self) -> bool:
        return self._finish_notified

    def stop(self):
        """
        Ask the loop to exit.

        Takes effect at the next loop check; an in-flight probe or terminal
        sequence runs to completion. Wakes the monitor if it is sleeping.
        """
        self._stop_event.set()

    async def start(self):
        """Run the monitor until it finishes, is stopped, or fails."""
        if self._started:
            raise RuntimeError(f"Monitor for {self.tx_hash} already started")
        self._started = True

        if self.context.metrics:
            self.context.metrics.record_started()
        logger.info("monitor.started", tx_hash=self.tx_hash, ts=self.ts)

        try:
            await self._run()
        except Exception as e:
            self.finish_reason = FinishReason.ERROR
            self.error = e
            logger.error(
                "monitor.loop_error",
                tx_hash=self.tx_hash,
                status=self.status.value if self.status else None,
                error=str(e),
                exc_info=True,
            )
        finally:
            self._notify_finished()

    async def _run(self):
        start_delay = self.ts + self.config.initial_delay_ms - self._clock()
        if start_delay > 0:
            await self._sleep(start_delay)

        finished = False
        while not self.stop_requested:
            result = await self._probe()
            finished = await self._handle(result)
            if finished:
                break
            await self._sleep(self.config.poll_interval_ms)

        self.finish_reason = (
            FinishReason.COMPLETED if finished else FinishReason.STOPPED
        )

    async def _probe(self) -> ProbeResult:
        started = time.perf_counter()
        try:
            return await self.context.rate_limiter.schedule(
                self.context.probe.get_status, self.tx_hash, require_receipt=True
            )
        finally:
            self.polls += 1
            if self.context.metrics:
                self.context.metrics.record_probe(time.perf_counter() - started)

    async def _handle(self, result: ProbeResult) -> bool:
        """
        Interpret one observation.

        Returns:
            True once the terminal sequence has completed
        """
        try:
            status = TxStatus(result.status)
        except ValueError:
            status = None
        if status is None or status is TxStatus.TIMEOUT:
            logger.debug(
                "monitor.unknown_status", tx_hash=self.tx_hash, reported=result.status
            )
            return False

        self.status = status

        if status in (TxStatus.SUCCESS, TxStatus.FAIL):
            return await self._finalize(status, result.receipt, result.network_tx)

        if status is TxStatus.MINED:
            self.ts = max(self.ts, self._clock())
            return False

        if status is TxStatus.NOT_FOUND:
            elapsed = self._clock() - self.ts
            if elapsed > self.config.time_limit_ms:
                self.status = TxStatus.TIMEOUT
                logger.info(
                    "monitor.timed_out", tx_hash=self.tx_hash, elapsed_ms=elapsed
                )
                return await self._finalize(TxStatus.TIMEOUT)

        return False

    async def _finalize(
        self,
        status: TxStatus,
        receipt: Optional[Receipt] = None,
        network_tx: Optional[NetworkTx] = None,
    ) -> bool:
        try:
            await self._terminal.run(self.record, status, self.ts, receipt, network_tx)
        except Exception as e:
            if self.context.metrics:
                self.context.metrics.record_terminal_failure()
            logger.error(
                "monitor.terminal_write_failed",
                tx_hash=self.tx_hash,
                status=status.value,
                error=str(e),
                exc_info=True,
            )
            return False
        return True

    async def _sleep(self, ms: int):
        if ms <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=ms / 1000)
        except asyncio.TimeoutError:
            pass

    def _notify_finished(self):
        if self._finish_notified:
            return
        self._finish_notified = True
        if self.finish_reason is None:
            self.finish_reason = FinishReason.STOPPED

        outcome = self.finish_reason.value
        if self.finish_reason is FinishReason.COMPLETED and self.status:
            outcome = self.status.value

        logger.info(
            "monitor.finished",
            tx_hash=self.tx_hash,
            outcome=outcome,
            polls=self.polls,
        )
        if self.context.metrics:
            self.context.metrics.record_finished(
                self.tx_hash,
                outcome,
                self.status.value if self.status else None,
                polls=self.polls,
            )
        if self.on_finish is not None:
            try:
                self.on_finish(self)
            except Exception as e:
                logger.error(
                    "monitor.on_finish_failed",
                    tx_hash=self.tx_hash,
                    error=str(e),
                    exc_info=True,
                )
