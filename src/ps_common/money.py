"""Integer money helpers.

All prices, paid amounts, refunds and balances are int in the currency's minor
unit (grosze for PLN). No float, no Decimal in storage or arithmetic.
"""

from config.settings import settings


def validate_amount(amount: int) -> None:
    """Amounts are never negative; direction is carried by the ledger entry type."""
    if amount < 0:
        raise ValueError(f"Amount must be >= 0 minor units, got {amount}")


def to_display(minor: int, currency: str | None = None) -> str:
    """Convert minor units to a display string: 15050 -> '150.50 PLN', -700 -> '-7.00 PLN'."""
    code = currency or settings.CURRENCY
    sign = "-" if minor < 0 else ""
    value = abs(minor)
    return f"{sign}{value // 100:,}.{value % 100:02d} {code}"


def refund_for_edit(original_price: int, new_price: int) -> int:
    """Refund owed when an edit lowers the price: max(0, original - new)."""
    return max(0, original_price - new_price)
