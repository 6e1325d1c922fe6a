"""
Data models for transaction status monitoring.

Probe results, record snapshots, user profiles and the payloads emitted
when a transaction reaches its final status.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

PUBSUB_TOPIC_MISC = "misc"


class TxStatus(str, Enum):
    """Interpreted state of a monitored transaction."""

    PENDING = "pending"  # Submitted, not seen on chain yet
    MINED = "mined"  # On chain, below finality depth
    SUCCESS = "success"
    FAIL = "fail"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"  # Synthesized locally, never reported by a probe


class Receipt(BaseModel):
    """Where a final transaction landed."""

    block_number: int
    block_hash: str
    gas_used: int = 0


class NetworkTx(BaseModel):
    """Sender, receiver and value as reported by the ledger."""

    from_address: str
    to_address: Optional[str] = None
    value: int = 0


class ProbeResult(BaseModel):
    """
    A single observation of a transaction's ledger state.

    ``status`` is kept as a plain string so that a probe reporting a value
    the monitor does not know can be ignored instead of failing validation.
    """

    status: str
    receipt: Optional[Receipt] = None
    network_tx: Optional[NetworkTx] = None


class TxRecord(BaseModel):
    """Immutable snapshot of a stored transaction at monitor creation."""

    model_config = ConfigDict(frozen=True)

    tx_hash: str
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    value: Optional[int] = None
    type: Optional[str] = None
    nonce: Optional[int] = None
    delegator_address: Optional[str] = None
    ts: Optional[int] = Field(
        default=None, description="Submission time in epoch milliseconds"
    )
    status: str = Field(
        default=TxStatus.PENDING.value,
        description="Stored outcome; anything but pending is already final",
    )


class UserProfile(BaseModel):
    """Enrichment data for a wallet owner."""

    id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    referrer: Optional[str] = None
    webhook_url: Optional[str] = None


class StatusUpdateEvent(BaseModel):
    """Published once per final outcome on the ``misc`` topic."""

    log_type: str = "eventStatus"
    idempotency_key: str
    tx_hash: str
    tx_status: TxStatus
    tx_block: str = ""
    tx_block_number: int = 0
    tx_block_time: int = 0
    tx_gas_used: int = 0
    tx_nonce: Optional[int] = None
    tx_type: Optional[str] = None

    from_user: Optional[str] = None
    from_wallet: Optional[str] = None
    from_display_name: Optional[str] = None
    from_email: Optional[str] = None
    from_referrer: Optional[str] = None
    to_user: Optional[str] = None
    to_wallet: Optional[str] = None
    to_display_name: Optional[str] = None
    to_email: Optional[str] = None
    to_referrer: Optional[str] = None

    # Exactly one pair is populated, chosen by tx_type
    token_amount: Optional[float] = None
    token_amount_unit_str: Optional[str] = None
    native_amount: Optional[float] = None
    native_amount_unit_str: Optional[str] = None

    delegator_address: Optional[str] = None


class WebhookPayload(BaseModel):
    """Body POSTed to the receiver's registered callback URL."""

    model_config = ConfigDict(populate_by_name=True)

    complete_ts: int = Field(default=0, alias="completeTs")
    from_address: Optional[str] = Field(default=None, alias="from")
    status: TxStatus
    to_address: Optional[str] = Field(default=None, alias="to")
    ts: int
    tx_hash: str = Field(alias="txHash")
    type: Optional[str] = None
    value: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
