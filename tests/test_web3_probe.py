"""Tests for the web3-backed ledger probe."""

from types import SimpleNamespace

import aiohttp
import pytest
from web3.exceptions import TransactionNotFound, Web3RPCError
from yarl import URL

from txmonitor.monitor.clients import ProbeConnectionError, Web3LedgerProbe
from txmonitor.monitor.config import RetryConfig
from txmonitor.monitor.models import TxStatus

TX_HASH = "0x" + "ab" * 32

FAST_RETRY = RetryConfig(max_attempts=3, initial_delay=0.001, jitter=False)


class FakeEth:
    """Stand-in for ``AsyncWeb3.eth`` returning canned node responses."""

    def __init__(self, tx=None, block_number=100, receipt=None, block=None):
        self.tx = tx
        self._block_number = block_number
        self.receipt = receipt
        self.block = block or {"timestamp": 1_650_000_000}
        self.failures = {}
        self.calls = []

    def fail(self, method, error, times=1):
        self.failures[method] = [error] * times

    def _maybe_fail(self, method):
        self.calls.append(method)
        pending = self.failures.get(method)
        if pending:
            raise pending.pop(0)

    async def get_transaction(self, tx_hash):
        self._maybe_fail("get_transaction")
        if self.tx is None:
            raise TransactionNotFound(f"Transaction {tx_hash} not found")
        return self.tx

    @property
    def block_number(self):
        async def _fetch():
            self._maybe_fail("block_number")
            return self._block_number

        return _fetch()

    async def get_transaction_receipt(self, tx_hash):
        self._maybe_fail("get_transaction_receipt")
        if self.receipt is None:
            raise TransactionNotFound(f"Receipt for {tx_hash} not found")
        return self.receipt

    async def get_block(self, block_number):
        self._maybe_fail("get_block")
        return self.block


def make_tx(block_number=90, value=1000):
    return {
        "from": "0xsender",
        "to": "0xreceiver",
        "value": value,
        "blockNumber": block_number,
    }


def make_receipt(status=1):
    return {
        "status": status,
        "blockNumber": 90,
        "blockHash": bytes.fromhex("12" * 32),
        "gasUsed": 21000,
    }


def make_probe(eth: FakeEth, confirmation_blocks=3) -> Web3LedgerProbe:
    return Web3LedgerProbe(
        confirmation_blocks=confirmation_blocks,
        retry=FAST_RETRY,
        web3=SimpleNamespace(eth=eth),
    )


class TestStatusClassification:
    """Tests for Web3LedgerProbe.get_status."""

    @pytest.mark.asyncio
    async def test_unknown_transaction_is_not_found(self):
        result = await make_probe(FakeEth(tx=None)).get_status(TX_HASH)

        assert result.status == TxStatus.NOT_FOUND.value
        assert result.receipt is None
        assert result.network_tx is None

    @pytest.mark.asyncio
    async def test_unmined_transaction_is_pending(self):
        result = await make_probe(FakeEth(tx=make_tx(block_number=None))).get_status(
            TX_HASH
        )

        assert result.status == TxStatus.PENDING.value
        assert result.network_tx.from_address == "0xsender"

    @pytest.mark.asyncio
    async def test_shallow_transaction_is_mined(self):
        """Test a transaction below the confirmation depth is not final yet."""
        eth = FakeEth(tx=make_tx(block_number=98), block_number=100)

        result = await make_probe(eth).get_status(TX_HASH)

        assert result.status == TxStatus.MINED.value
        assert "get_transaction_receipt" not in eth.calls

    @pytest.mark.asyncio
    async def test_confirmed_success(self):
        eth = FakeEth(tx=make_tx(), block_number=100, receipt=make_receipt(status=1))

        result = await make_probe(eth).get_status(TX_HASH)

        assert result.status == TxStatus.SUCCESS.value
        assert result.receipt.block_number == 90
        assert result.receipt.block_hash == "0x" + "12" * 32
        assert result.receipt.gas_used == 21000
        assert result.network_tx.to_address == "0xreceiver"
        assert result.network_tx.value == 1000

    @pytest.mark.asyncio
    async def test_confirmed_revert_is_fail(self):
        eth = FakeEth(tx=make_tx(), block_number=100, receipt=make_receipt(status=0))

        result = await make_probe(eth).get_status(TX_HASH)

        assert result.status == TxStatus.FAIL.value
        assert result.receipt is not None

    @pytest.mark.asyncio
    async def test_without_receipt(self):
        """Test a deep enough transaction counts as final when no receipt is needed."""
        eth = FakeEth(tx=make_tx(), block_number=100)

        result = await make_probe(eth).get_status(TX_HASH, require_receipt=False)

        assert result.status == TxStatus.SUCCESS.value
        assert result.receipt is None

    @pytest.mark.asyncio
    async def test_missing_receipt_is_pending(self):
        eth = FakeEth(tx=make_tx(), block_number=100, receipt=None)

        result = await make_probe(eth).get_status(TX_HASH)

        assert result.status == TxStatus.PENDING.value


class TestTransientErrors:
    """Tests for retry and degradation on connection errors."""

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self):
        eth = FakeEth(tx=make_tx(), block_number=100, receipt=make_receipt())
        eth.fail("get_transaction", ConnectionError("reset by peer"), times=2)

        result = await make_probe(eth).get_status(TX_HASH)

        assert result.status == TxStatus.SUCCESS.value
        assert eth.calls.count("get_transaction") == 3

    @pytest.mark.asyncio
    async def test_unreachable_node_reads_as_not_found(self):
        eth = FakeEth(tx=make_tx())
        eth.fail("get_transaction", ConnectionError("node down"), times=5)

        result = await make_probe(eth).get_status(TX_HASH)

        assert result.status == TxStatus.NOT_FOUND.value
        assert eth.calls.count("get_transaction") == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            ValueError({"code": -32005, "message": "rate limit exceeded"}),
            Web3RPCError("header not found"),
        ],
    )
    async def test_rpc_error_is_retried_then_not_found(self, error):
        """Test a JSON-RPC error reply never escapes as a monitor failure."""
        eth = FakeEth(tx=make_tx())
        eth.fail("get_transaction", error, times=5)

        result = await make_probe(eth).get_status(TX_HASH)

        assert result.status == TxStatus.NOT_FOUND.value
        assert eth.calls.count("get_transaction") == 3

    @pytest.mark.asyncio
    async def test_rpc_error_then_recovery(self):
        eth = FakeEth(tx=make_tx(), block_number=100, receipt=make_receipt())
        eth.fail("block_number", Web3RPCError("upstream busy"), times=1)

        result = await make_probe(eth).get_status(TX_HASH)

        assert result.status == TxStatus.SUCCESS.value
        assert eth.calls.count("block_number") == 2

    @pytest.mark.asyncio
    async def test_http_status_error_is_transient(self):
        eth = FakeEth(tx=make_tx(), block_number=100, receipt=make_receipt())
        url = URL("http://node.test")
        error = aiohttp.ClientResponseError(
            aiohttp.RequestInfo(url, "POST", {}, url),
            (),
            status=429,
            message="Too Many Requests",
        )
        eth.fail("get_transaction_receipt", error, times=5)

        result = await make_probe(eth).get_status(TX_HASH)

        assert result.status == TxStatus.NOT_FOUND.value
        assert eth.calls.count("get_transaction_receipt") == 3

    @pytest.mark.asyncio
    async def test_non_transient_error_propagates(self):
        """Test a plain ValueError is a bug, not a node hiccup."""
        eth = FakeEth(tx=make_tx())
        eth.fail("get_transaction", ValueError("invalid hash"))

        with pytest.raises(ValueError):
            await make_probe(eth).get_status(TX_HASH)

        assert eth.calls.count("get_transaction") == 1


class TestBlockTimestamp:
    """Tests for Web3LedgerProbe.get_block_timestamp."""

    @pytest.mark.asyncio
    async def test_returns_seconds(self):
        eth = FakeEth(block={"timestamp": 1_650_000_123})

        assert await make_probe(eth).get_block_timestamp(90) == 1_650_000_123

    @pytest.mark.asyncio
    async def test_unreachable_node_raises(self):
        eth = FakeEth()
        eth.fail("get_block", TimeoutError("timed out"), times=5)

        with pytest.raises(ProbeConnectionError):
            await make_probe(eth).get_block_timestamp(90)

    @pytest.mark.asyncio
    async def test_rpc_error_raises_connection_error(self):
        eth = FakeEth()
        eth.fail("get_block", ValueError({"code": -32000, "message": "busy"}), times=5)

        with pytest.raises(ProbeConnectionError):
            await make_probe(eth).get_block_timestamp(90)

        assert eth.calls.count("get_block") == 3


def test_requires_endpoint_or_client():
    with pytest.raises(ValueError):
        Web3LedgerProbe()


def test_source_name():
    assert make_probe(FakeEth()).get_source_name() == "web3"
