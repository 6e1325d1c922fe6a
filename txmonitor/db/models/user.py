"""User profile model, looked up by wallet address for enrichment."""

from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from txmonitor.db.base import Base


class User(Base):
    """A registered user and the wallet address associated with them."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False, comment="Public user id"
    )
    wallet: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, index=True, comment="Associated wallet address"
    )
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    referrer: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    webhook_url: Mapped[Optional[str]] = mapped_column(
        String(2048),
        nullable=True,
        comment="Callback notified when a transaction to this wallet completes",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, user_id={self.user_id}, wallet={self.wallet})>"
