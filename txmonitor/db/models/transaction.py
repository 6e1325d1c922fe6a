"""Transaction model for submitted ledger transactions under watch."""

from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, DateTime, Integer, BigInteger, Index
from sqlalchemy.orm import Mapped, mapped_column

from txmonitor.db.base import Base


class Transaction(Base):
    """
    Stores a submitted ledger transaction and its final outcome.

    Rows are written as ``pending`` by whatever submits the transaction and
    are completed by the status monitor once a terminal outcome is known.
    """

    __tablename__ = "transactions"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    tx_hash: Mapped[str] = mapped_column(
        String(80),
        unique=True,
        nullable=False,
        index=True,
        comment="Ledger transaction hash",
    )

    # Submitted intent
    from_address: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, index=True, comment="Sender wallet address"
    )
    to_address: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, index=True, comment="Receiver wallet address"
    )
    value: Mapped[Optional[str]] = mapped_column(
        String(80),
        nullable=True,
        comment="Amount in the smallest unit, stored as a decimal string",
    )
    type: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Transaction type tag (e.g., 'transfer', 'transferETH')",
    )
    nonce: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    delegator_address: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, comment="Relayer that paid for the transaction"
    )
    ts: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True, comment="Submission time in epoch milliseconds"
    )

    # Outcome
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
        index=True,
        comment="Monitor status (pending, success, fail, timeout)",
    )
    complete_block_number: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True
    )
    complete_ts: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True, comment="Block time in epoch milliseconds"
    )

    # Audit fields
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (Index("idx_transaction_status_ts", "status", "ts"),)

    def __repr__(self) -> str:
        return (
            f"<Transaction(id={self.id}, tx_hash={self.tx_hash}, "
            f"type={self.type}, status={self.status})>"
        )
