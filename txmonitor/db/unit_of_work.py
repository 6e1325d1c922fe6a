"""Unit of Work pattern for managing database transactions."""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from txmonitor.db import base
from txmonitor.db.models import Transaction, User
from txmonitor.db.repositories import TransactionRepository, UserRepository


class UnitOfWork:
    """
    Unit of Work pattern implementation for managing database transactions.

    All repositories opened in one context share the same session.

    Usage:
        async with UnitOfWork() as uow:
            tx = await uow.transactions.get_by_tx_hash(tx_hash)
            await uow.transactions.merge_update(tx_hash, {"status": "success"})
            await uow.commit()
    """

    def __init__(
        self,
        session: Optional[AsyncSession] = None,
        session_factory: Optional[async_sessionmaker] = None,
    ):
        """
        Initialize Unit of Work.

        Args:
            session: Optional existing session (useful for testing)
            session_factory: Factory used when no session is given
                (defaults to the application session factory)
        """
        self._session = session
        self._owned_session = session is None
        self._session_factory = session_factory

        # Repositories (initialized in __aenter__)
        self.transactions: TransactionRepository = None  # type: ignore
        self.users: UserRepository = None  # type: ignore

    async def __aenter__(self):
        if self._owned_session:
            factory = self._session_factory or base.AsyncSessionLocal
            self._session = factory()

        assert self._session is not None, "Session must be initialized"
        self.transactions = TransactionRepository(Transaction, self._session)
        self.users = UserRepository(User, self._session)

        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            await self.rollback()
        elif self._owned_session:
            await self.commit()

        if self._owned_session and self._session:
            await self._session.close()

    async def commit(self):
        """Commit the current transaction."""
        if self._session:
            await self._session.commit()

    async def rollback(self):
        """Rollback the current transaction."""
        if self._session:
            await self._session.rollback()
