"""Unit tests for integer money helpers."""

import pytest

from src.ps_common.money import refund_for_edit, to_display, validate_amount


@pytest.mark.parametrize(
    ("minor", "expected"),
    [
        (0, "0.00 PLN"),
        (5, "0.05 PLN"),
        (15050, "150.50 PLN"),
        (123456789, "1,234,567.89 PLN"),
        (-700, "-7.00 PLN"),
    ],
)
def test_to_display(minor: int, expected: str) -> None:
    assert to_display(minor) == expected


def test_to_display_explicit_currency() -> None:
    assert to_display(100, "EUR") == "1.00 EUR"


def test_refund_for_edit_is_price_drop() -> None:
    assert refund_for_edit(10000, 7000) == 3000


def test_refund_for_edit_never_negative() -> None:
    assert refund_for_edit(7000, 10000) == 0
    assert refund_for_edit(7000, 7000) == 0


def test_validate_amount_rejects_negative() -> None:
    validate_amount(0)
    with pytest.raises(ValueError):
        validate_amount(-1)
