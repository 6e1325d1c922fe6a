"""Ledger probe implementations."""

from .base import LedgerStatusProbe, ProbeConnectionError, ProbeError
from .scripted_probe import ScriptedLedgerProbe
from .web3_probe import Web3LedgerProbe

__all__ = [
    "LedgerStatusProbe",
    "ProbeConnectionError",
    "ProbeError",
    "ScriptedLedgerProbe",
    "Web3LedgerProbe",
]
