"""Amount formatting for status events."""

from decimal import Decimal
from typing import Dict, Optional

NATIVE_TRANSFER_TYPE = "transferETH"

ONE_UNIT = Decimal(10) ** 18


def to_display_amount(value: int) -> float:
    """Scale a smallest-unit integer to whole units for display."""
    return float(Decimal(value) / ONE_UNIT)


def to_unit_str(value: int) -> str:
    """Full-precision decimal string of a smallest-unit integer."""
    return format(Decimal(value), "f")


def amount_fields(value: Optional[int], tx_type: Optional[str]) -> Dict[str, object]:
    """
    Event amount fields for a value.

    Native transfers fill ``native_amount``/``native_amount_unit_str``,
    every other type fills the token pair. Nothing is filled when the
    value is unknown.
    """
    if value is None:
        return {}

    if tx_type == NATIVE_TRANSFER_TYPE:
        return {
            "native_amount": to_display_amount(value),
            "native_amount_unit_str": to_unit_str(value),
        }
    return {
        "token_amount": to_display_amount(value),
        "token_amount_unit_str": to_unit_str(value),
    }
