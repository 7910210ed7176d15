from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Decimal | int | float | str | None) -> Decimal:
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Invalid amount: {value!r}") from exc
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity: int, unit_price: Decimal | int | float | str) -> Decimal:
    return to_money(Decimal(quantity) * to_money(unit_price))


def subtotal(totals: Iterable[Decimal]) -> Decimal:
    return to_money(sum(totals, ZERO))


def invoice_total(
    subtotal_amount: Decimal,
    discount: Decimal,
    shipping_fee: Decimal,
    pending_amount: Decimal,
) -> Decimal:
    return to_money(
        to_money(subtotal_amount) - to_money(discount) + to_money(shipping_fee) + to_money(pending_amount)
    )


def format_money(amount: Decimal | int | float | str, label: str = "LKR") -> str:
    value = to_money(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}{label} {abs(value):,.2f}"
