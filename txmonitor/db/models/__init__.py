"""Database models for the transaction status monitor."""

from .transaction import Transaction
from .user import User

__all__ = ["Transaction", "User"]
