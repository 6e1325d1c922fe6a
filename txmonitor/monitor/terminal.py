"""
Final-status side effects for a monitored transaction.

Runs once a transaction reaches SUCCESS, FAIL or TIMEOUT:

1. Resolve sender and receiver profiles (best effort, concurrent)
2. Fetch the completion block's timestamp when a receipt exists
3. Persist the outcome on the transaction record
4. Format amounts
5. Publish a status event
6. POST the receiver's webhook, if one is registered

Steps 2 and 3 are the only ones allowed to raise. Publication and webhook
delivery come after persistence and never raise, so a retried sequence can
only repeat the idempotent steps.
"""

import asyncio
from typing import Any, Dict, Optional, Tuple

import structlog

from txmonitor.monitor.amounts import NATIVE_TRANSFER_TYPE, amount_fields
from txmonitor.monitor.clients.base import LedgerStatusProbe
from txmonitor.monitor.models import (
    PUBSUB_TOPIC_MISC,
    NetworkTx,
    Receipt,
    StatusUpdateEvent,
    TxRecord,
    TxStatus,
    UserProfile,
    WebhookPayload,
)
from txmonitor.monitor.ports import (
    EventPublisher,
    RecordStore,
    UserDirectory,
    WebhookNotifier,
)

logger = structlog.get_logger()


def idempotency_key(tx_hash: str, status: TxStatus) -> str:
    """Key shared by every notification emitted for one outcome."""
    return f"{tx_hash}:{status.value}"


class TerminalSequence:
    """Enrichment, persistence and notification for a final outcome."""

    def __init__(
        self,
        probe: LedgerStatusProbe,
        store: RecordStore,
        users: UserDirectory,
        publisher: EventPublisher,
        notifier: WebhookNotifier,
    ):
        self.probe = probe
        self.store = store
        self.users = users
        self.publisher = publisher
        self.notifier = notifier

    async def run(
        self,
        record: TxRecord,
        status: TxStatus,
        ts: int,
        receipt: Optional[Receipt] = None,
        network_tx: Optional[NetworkTx] = None,
    ) -> StatusUpdateEvent:
        """
        Run the sequence for one outcome.

        Args:
            record: Snapshot of the stored transaction
            status: Final status being written
            ts: Monitor's current logical timestamp (ms)
            receipt: Receipt of the final transaction, None on timeout
            network_tx: Ledger-reported sender/receiver/value

        Returns:
            The published event

        Raises:
            Exception: Block fetch or persistence errors
        """
        log = logger.bind(tx_hash=record.tx_hash, status=status.value)
        status_update: Dict[str, Any] = {"status": status.value}

        from_address = record.from_address
        to_address = record.to_address
        value = record.value
        if network_tx is not None and record.type == NATIVE_TRANSFER_TYPE:
            # Ledger truth supersedes the submitted intent
            from_address = network_tx.from_address
            to_address = network_tx.to_address
            value = network_tx.value
            status_update.update(
                from_address=from_address, to_address=to_address, value=value
            )

        sender, receiver = await self._resolve_identities(from_address, to_address)

        block_number = 0
        block_time = 0
        if receipt is not None:
            block_number = receipt.block_number
            block_time = await self.probe.get_block_timestamp(block_number) * 1000
            status_update["complete_block_number"] = block_number
            status_update["complete_ts"] = block_time

        await self.store.update(record.tx_hash, status_update)
        log.info("terminal.persisted", block_number=block_number)

        key = idempotency_key(record.tx_hash, status)
        event = StatusUpdateEvent(
            idempotency_key=key,
            tx_hash=record.tx_hash,
            tx_status=status,
            tx_block=receipt.block_hash if receipt else "",
            tx_block_number=block_number,
            tx_block_time=block_time,
            tx_gas_used=receipt.gas_used if receipt else 0,
            tx_nonce=record.nonce,
            tx_type=record.type,
            from_user=sender.id if sender else None,
            from_wallet=from_address,
            from_display_name=sender.display_name if sender else None,
            from_email=sender.email if sender else None,
            from_referrer=sender.referrer if sender else None,
            to_user=receiver.id if receiver else None,
            to_wallet=to_address,
            to_display_name=receiver.display_name if receiver else None,
            to_email=receiver.email if receiver else None,
            to_referrer=receiver.referrer if receiver else None,
            delegator_address=record.delegator_address,
            **amount_fields(value, record.type),
        )
        await self._publish(event)

        if receiver is not None and receiver.webhook_url:
            payload = WebhookPayload(
                complete_ts=block_time,
                from_address=from_address,
                status=status,
                to_address=to_address,
                ts=ts,
                tx_hash=record.tx_hash,
                type=record.type,
                value=str(value) if value is not None else None,
            )
            await self._notify(receiver.webhook_url, payload, key)

        return event

    async def _lookup(self, address: Optional[str]) -> Optional[UserProfile]:
        if not address:
            return None
        try:
            return await self.users.find_by_wallet(address)
        except Exception as e:
            logger.warning("terminal.lookup_failed", wallet=address, error=str(e))
            return None

    async def _resolve_identities(
        self, from_address: Optional[str], to_address: Optional[str]
    ) -> Tuple[Optional[UserProfile], Optional[UserProfile]]:
        sender, receiver = await asyncio.gather(
            self._lookup(from_address), self._lookup(to_address)
        )
        return sender, receiver

    async def _publish(self, event: StatusUpdateEvent):
        try:
            await self.publisher.publish(PUBSUB_TOPIC_MISC, event)
        except Exception as e:
            logger.error(
                "terminal.publish_failed",
                tx_hash=event.tx_hash,
                status=event.tx_status.value,
                error=str(e),
                exc_info=True,
            )

    async def _notify(self, url: str, payload: WebhookPayload, key: str):
        try:
            result = await self.notifier.notify(url, payload, key)
        except Exception as e:
            logger.error(
                "terminal.webhook_error",
                tx_hash=payload.tx_hash,
                url=url,
                error=str(e),
                exc_info=True,
            )
            return
        if not result.delivered:
            logger.warning(
                "terminal.webhook_failed",
                tx_hash=payload.tx_hash,
                url=url,
                status_code=result.status_code,
                error=result.error,
            )
