"""Transaction repository with specialized queries."""

from typing import Any, Dict, List, Optional
from sqlalchemy import select

from txmonitor.db.models.transaction import Transaction
from txmonitor.db.repository import BaseRepository


class TransactionRepository(BaseRepository[Transaction]):
    """Repository for Transaction model with specialized queries."""

    async def get_by_tx_hash(self, tx_hash: str) -> Optional[Transaction]:
        """Get a transaction by its ledger hash."""
        return await self.get_by_field("tx_hash", tx_hash)

    async def merge_update(self, tx_hash: str, fields: Dict[str, Any]) -> bool:
        """
        Overwrite the given fields on a transaction.

        Args:
            tx_hash: Ledger transaction hash
            fields: Column values to set; unknown keys are rejected

        Returns:
            True if a row was updated, False if the hash is unknown
        """
        unknown = [key for key in fields if not hasattr(self.model, key)]
        if unknown:
            raise ValueError(f"Unknown transaction fields: {', '.join(unknown)}")
        if not fields:
            return await self.get_by_tx_hash(tx_hash) is not None
        return await self.update_where("tx_hash", tx_hash, **fields) > 0

    async def get_submitted(self, limit: Optional[int] = None) -> List[Transaction]:
        """
        Get transactions still waiting for an outcome, oldest first.

        Args:
            limit: Maximum number of transactions to return
        """
        query = (
            select(self.model)
            .where(self.model.status == "pending")
            .order_by(self.model.ts.asc())
        )
        if limit:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())
