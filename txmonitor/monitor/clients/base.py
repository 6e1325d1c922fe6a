"""
Base ledger probe interface.

Defines the contract every ledger status probe must implement.
"""

from abc import ABC, abstractmethod

from txmonitor.monitor.models import ProbeResult


class LedgerStatusProbe(ABC):
    """
    Abstract base class for ledger status probes.

    A probe owns the finality rule: it decides when a mined transaction is
    deep enough to report SUCCESS or FAIL instead of MINED.
    """

    @abstractmethod
    async def get_status(
        self, tx_hash: str, require_receipt: bool = True
    ) -> ProbeResult:
        """
        Sample the ledger state of one transaction.

        Args:
            tx_hash: Transaction hash
            require_receipt: Only report SUCCESS/FAIL once a receipt exists

        Returns:
            Probe result with status, and receipt/network tx when known

        Raises:
            ProbeError: If no observation can be produced; the monitor
                treats this as fatal
        """
        pass

    @abstractmethod
    async def get_block_timestamp(self, block_number: int) -> int:
        """
        Get a block's timestamp.

        Returns:
            Block time in epoch seconds

        Raises:
            ProbeConnectionError: If the ledger node cannot be reached
        """
        pass

    @abstractmethod
    def get_source_name(self) -> str:
        """Identifier of the ledger source (e.g., 'web3', 'scripted')."""
        pass


class ProbeError(Exception):
    """Base exception for ledger probe errors."""

    pass


class ProbeConnectionError(ProbeError):
    """Raised when the ledger node cannot be reached."""

    pass
