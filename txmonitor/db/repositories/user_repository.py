"""User repository."""

from typing import Optional

from txmonitor.db.models.user import User
from txmonitor.db.repository import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User model."""

    async def get_by_wallet(self, wallet: str) -> Optional[User]:
        """Get the first user associated with a wallet address."""
        return await self.get_by_field("wallet", wallet)
