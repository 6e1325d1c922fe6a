"""
Ledger probe backed by an Ethereum JSON-RPC node.

Classifies a transaction as NOT_FOUND, PENDING, MINED, SUCCESS or FAIL
from its network record, the current chain height and its receipt.
"""

import asyncio
from typing import Any, Optional

import aiohttp
import structlog
from web3 import AsyncWeb3, Web3
from web3.exceptions import TransactionNotFound, Web3RPCError

from txmonitor.monitor.clients.base import LedgerStatusProbe, ProbeConnectionError
from txmonitor.monitor.config import RetryConfig
from txmonitor.monitor.models import NetworkTx, ProbeResult, Receipt, TxStatus
from txmonitor.monitor.retry import retry_with_backoff

logger = structlog.get_logger()

# Node, transport and JSON-RPC failures; none of them says anything about
# the transaction itself.
TRANSIENT_ERRORS = (OSError, asyncio.TimeoutError, aiohttp.ClientError, Web3RPCError)


def _is_rpc_error(error: ValueError) -> bool:
    """True for a JSON-RPC error object surfaced as a bare ValueError."""
    payload = error.args[0] if error.args else None
    return isinstance(payload, dict) and "code" in payload


def _hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value)
    return str(value)


class Web3LedgerProbe(LedgerStatusProbe):
    """
    Probe that queries an Ethereum node through ``AsyncWeb3``.

    A mined transaction is reported as MINED until ``confirmation_blocks``
    blocks have been built on top of it; after that the receipt status
    decides between SUCCESS and FAIL.
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        confirmation_blocks: int = 3,
        retry: Optional[RetryConfig] = None,
        web3: Optional[AsyncWeb3] = None,
    ):
        """
        Initialize the probe.

        Args:
            rpc_url: JSON-RPC endpoint (ignored when ``web3`` is given)
            confirmation_blocks: Finality depth
            retry: Retry policy for transient connection errors
            web3: Preconfigured AsyncWeb3 instance
        """
        if web3 is None and not rpc_url:
            raise ValueError("Web3LedgerProbe needs either rpc_url or web3")
        self.rpc_url = rpc_url
        self.confirmation_blocks = confirmation_blocks
        self.retry = retry or RetryConfig()
        self._web3 = web3

    @property
    def web3(self) -> AsyncWeb3:
        """Get AsyncWeb3 instance (lazy loaded)."""
        if self._web3 is None:
            self._web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(self.rpc_url))
        return self._web3

    def get_source_name(self) -> str:
        return "web3"

    async def _call(self, operation: str, func):
        async def attempt():
            try:
                return await func()
            except TransactionNotFound:
                raise
            except TRANSIENT_ERRORS as e:
                raise ProbeConnectionError(f"{operation} failed: {e}") from e
            except ValueError as e:
                if _is_rpc_error(e):
                    raise ProbeConnectionError(f"{operation} failed: {e}") from e
                raise

        return await retry_with_backoff(
            attempt,
            self.retry,
            operation_name=operation,
            retry_on=(ProbeConnectionError,),
        )

    async def get_status(
        self, tx_hash: str, require_receipt: bool = True
    ) -> ProbeResult:
        try:
            return await self._classify(tx_hash, require_receipt)
        except ProbeConnectionError as e:
            # An unreachable or failing node looks like an unknown hash; the
            # monitor's time limit decides whether that ever becomes a timeout.
            logger.warning("probe.unreachable", tx_hash=tx_hash, error=str(e))
            return ProbeResult(status=TxStatus.NOT_FOUND.value)

    async def _classify(self, tx_hash: str, require_receipt: bool) -> ProbeResult:
        eth = self.web3.eth
        try:
            tx = await self._call("get_transaction", lambda: eth.get_transaction(tx_hash))
        except TransactionNotFound:
            return ProbeResult(status=TxStatus.NOT_FOUND.value)

        network_tx = NetworkTx(
            from_address=tx["from"],
            to_address=tx.get("to"),
            value=int(tx.get("value") or 0),
        )

        tx_block = tx.get("blockNumber")
        if tx_block is None:
            return ProbeResult(status=TxStatus.PENDING.value, network_tx=network_tx)

        current_block = await self._call("block_number", lambda: eth.block_number)
        if current_block - tx_block < self.confirmation_blocks:
            return ProbeResult(status=TxStatus.MINED.value, network_tx=network_tx)

        if not require_receipt:
            return ProbeResult(status=TxStatus.SUCCESS.value, network_tx=network_tx)

        try:
            raw = await self._call(
                "get_transaction_receipt",
                lambda: eth.get_transaction_receipt(tx_hash),
            )
        except TransactionNotFound:
            return ProbeResult(status=TxStatus.PENDING.value, network_tx=network_tx)

        status = TxStatus.SUCCESS if raw.get("status") == 1 else TxStatus.FAIL
        receipt = Receipt(
            block_number=raw["blockNumber"],
            block_hash=_hex(raw["blockHash"]),
            gas_used=int(raw.get("gasUsed") or 0),
        )
        return ProbeResult(status=status.value, receipt=receipt, network_tx=network_tx)

    async def get_block_timestamp(self, block_number: int) -> int:
        block = await self._call(
            "get_block", lambda: self.web3.eth.get_block(block_number)
        )
        return int(block["timestamp"])
