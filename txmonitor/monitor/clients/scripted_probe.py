"""
Scripted ledger probe for development and testing.

Replays a fixed sequence of observations per transaction so the monitor
can be exercised without a ledger node.
"""

import asyncio
import hashlib
from typing import Dict, List, Optional, Sequence, Union

from txmonitor.monitor.clients.base import LedgerStatusProbe
from txmonitor.monitor.models import ProbeResult, Receipt, TxStatus

ScriptStep = Union[ProbeResult, TxStatus, str, Exception]

DEFAULT_BLOCK_NUMBER = 1_000_000
DEFAULT_BLOCK_TIMESTAMP = 1_700_000_000


def _fake_block_hash(tx_hash: str) -> str:
    return "0x" + hashlib.sha256(tx_hash.encode()).hexdigest()


class ScriptedLedgerProbe(LedgerStatusProbe):
    """
    Probe that walks through a script of observations.

    Each transaction hash has its own cursor. Once the script is exhausted
    the last step repeats. Exception steps are raised instead of returned.
    Bare SUCCESS/FAIL steps get a synthetic receipt.
    """

    DEFAULT_SCRIPT: Sequence[ScriptStep] = (
        TxStatus.PENDING,
        TxStatus.MINED,
        TxStatus.SUCCESS,
    )

    def __init__(
        self,
        script: Optional[Sequence[ScriptStep]] = None,
        block_timestamps: Optional[Dict[int, int]] = None,
        latency_ms: int = 0,
    ):
        """
        Initialize the scripted probe.

        Args:
            script: Observations returned in order (defaults to
                pending, mined, success)
            block_timestamps: Block number to epoch seconds; unknown blocks
                get a fixed timestamp
            latency_ms: Simulated network latency per call
        """
        self.script: List[ScriptStep] = list(script or self.DEFAULT_SCRIPT)
        if not self.script:
            raise ValueError("script must contain at least one step")
        self.block_timestamps = block_timestamps or {}
        self.latency_ms = latency_ms
        self._cursors: Dict[str, int] = {}
        self.calls: List[str] = []
        self.block_calls: List[int] = []

    def get_source_name(self) -> str:
        return "scripted"

    async def _simulate_latency(self):
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000)

    async def get_status(
        self, tx_hash: str, require_receipt: bool = True
    ) -> ProbeResult:
        await self._simulate_latency()
        self.calls.append(tx_hash)

        cursor = self._cursors.get(tx_hash, 0)
        step = self.script[min(cursor, len(self.script) - 1)]
        self._cursors[tx_hash] = cursor + 1

        if isinstance(step, Exception):
            raise step
        if isinstance(step, ProbeResult):
            return step

        status = step.value if isinstance(step, TxStatus) else step
        receipt = None
        if status in (TxStatus.SUCCESS.value, TxStatus.FAIL.value) and require_receipt:
            receipt = Receipt(
                block_number=DEFAULT_BLOCK_NUMBER,
                block_hash=_fake_block_hash(tx_hash),
                gas_used=21000,
            )
        return ProbeResult(status=status, receipt=receipt)

    async def get_block_timestamp(self, block_number: int) -> int:
        await self._simulate_latency()
        self.block_calls.append(block_number)
        return self.block_timestamps.get(block_number, DEFAULT_BLOCK_TIMESTAMP)
