"""
Record store and user directory implementations.

SQL-backed adapters over the UnitOfWork, plus in-memory variants used in
development and tests.
"""

import asyncio
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from txmonitor.db.models import Transaction, User
from txmonitor.db.unit_of_work import UnitOfWork
from txmonitor.monitor.models import TxRecord, UserProfile
from txmonitor.monitor.ports import RecordStore, UserDirectory


class RecordNotFoundError(LookupError):
    """Raised when updating a transaction that is not in the store."""

    pass


def record_from_row(row: Transaction) -> TxRecord:
    return TxRecord(
        tx_hash=row.tx_hash,
        from_address=row.from_address,
        to_address=row.to_address,
        value=int(row.value) if row.value not in (None, "") else None,
        type=row.type,
        nonce=row.nonce,
        delegator_address=row.delegator_address,
        ts=row.ts,
        status=row.status,
    )


def profile_from_row(row: User) -> UserProfile:
    return UserProfile(
        id=row.user_id,
        display_name=row.display_name,
        email=row.email,
        referrer=row.referrer,
        webhook_url=row.webhook_url,
    )


class SqlRecordStore(RecordStore):
    """Transaction records in the ``transactions`` table."""

    def __init__(
        self,
        session: Optional[AsyncSession] = None,
        session_factory: Optional[async_sessionmaker] = None,
    ):
        """
        Args:
            session: Shared session (tests); each call commits on it
            session_factory: Factory for one session per call
        """
        self._session = session
        self._session_factory = session_factory

    def _uow(self) -> UnitOfWork:
        return UnitOfWork(session=self._session, session_factory=self._session_factory)

    async def get(self, tx_hash: str) -> Optional[TxRecord]:
        async with self._uow() as uow:
            row = await uow.transactions.get_by_tx_hash(tx_hash)
            return record_from_row(row) if row else None

    async def list_submitted(self, limit: Optional[int] = None) -> List[TxRecord]:
        """Records still waiting for an outcome, oldest first."""
        async with self._uow() as uow:
            rows = await uow.transactions.get_submitted(limit=limit)
            return [record_from_row(row) for row in rows]

    async def update(self, tx_hash: str, fields: Dict[str, Any]) -> None:
        values = dict(fields)
        if values.get("value") is not None:
            values["value"] = str(values["value"])

        async with self._uow() as uow:
            updated = await uow.transactions.merge_update(tx_hash, values)
            if not updated:
                raise RecordNotFoundError(f"Transaction {tx_hash} not found")
            await uow.commit()


class SqlUserDirectory(UserDirectory):
    """User profiles in the ``users`` table."""

    def __init__(
        self,
        session: Optional[AsyncSession] = None,
        session_factory: Optional[async_sessionmaker] = None,
    ):
        self._session = session
        self._session_factory = session_factory

    async def find_by_wallet(self, address: str) -> Optional[UserProfile]:
        async with UnitOfWork(
            session=self._session, session_factory=self._session_factory
        ) as uow:
            row = await uow.users.get_by_wallet(address)
            return profile_from_row(row) if row else None


class InMemoryRecordStore(RecordStore):
    """Dict-backed record store. Records are flat field dicts keyed by hash."""

    def __init__(self, records: Optional[Dict[str, Dict[str, Any]]] = None):
        self._lock = asyncio.Lock()
        self.records: Dict[str, Dict[str, Any]] = {
            tx_hash: dict(fields) for tx_hash, fields in (records or {}).items()
        }
        self.updates: list = []

    async def add(self, record: TxRecord, status: Optional[str] = None):
        async with self._lock:
            self.records[record.tx_hash] = {
                **record.model_dump(),
                "status": status or record.status,
            }

    async def get(self, tx_hash: str) -> Optional[TxRecord]:
        async with self._lock:
            fields = self.records.get(tx_hash)
            if fields is None:
                return None
            known = {k: v for k, v in fields.items() if k in TxRecord.model_fields}
            return TxRecord(**{**known, "tx_hash": tx_hash})

    async def list_submitted(self, limit: Optional[int] = None) -> List[TxRecord]:
        pending = [
            tx_hash
            for tx_hash, fields in self.records.items()
            if fields.get("status", "pending") == "pending"
        ]
        records = [await self.get(tx_hash) for tx_hash in pending]
        records.sort(key=lambda r: r.ts or 0)
        return records[:limit] if limit else records

    async def update(self, tx_hash: str, fields: Dict[str, Any]) -> None:
        async with self._lock:
            if tx_hash not in self.records:
                raise RecordNotFoundError(f"Transaction {tx_hash} not found")
            self.records[tx_hash].update(fields)
            self.updates.append((tx_hash, dict(fields)))


class InMemoryUserDirectory(UserDirectory):
    """Wallet address to profile mapping held in memory."""

    def __init__(self, profiles: Optional[Dict[str, UserProfile]] = None):
        self.profiles: Dict[str, UserProfile] = dict(profiles or {})
        self.lookups: list = []

    async def find_by_wallet(self, address: str) -> Optional[UserProfile]:
        self.lookups.append(address)
        return self.profiles.get(address)
