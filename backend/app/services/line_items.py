from __future__ import annotations

from collections.abc import Iterable, Iterator
from decimal import Decimal
from uuid import uuid4

from app.schemas.invoice import BulkEntry, SaleItem
from app.services.money import line_total, subtotal, to_money


NAME_REQUIRED = "Product name is required"
QUANTITY_REQUIRED = "Quantity must be greater than zero"
PRICE_REQUIRED = "Price must be greater than zero"


def _new_id() -> str:
    return str(uuid4())


def _validate_line(name: str | None, quantity: int | None, price: Decimal | None) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not (name or "").strip():
        errors["item_name"] = NAME_REQUIRED
    if quantity is None or isinstance(quantity, bool) or int(quantity) != quantity or quantity <= 0:
        errors["item_quantity"] = QUANTITY_REQUIRED
    if price is None or to_money(price) <= 0:
        errors["item_price"] = PRICE_REQUIRED
    return errors


def build_sale_item(name: str, quantity: int, unit_price: Decimal | int | float | str) -> SaleItem:
    price = to_money(unit_price)
    return SaleItem(
        product_id=_new_id(),
        product_name=name.strip(),
        quantity=int(quantity),
        unit_price=price,
        total=line_total(quantity, price),
    )


class LineItemCollection:
    """Ordered sale items of one invoice plus the pending bulk-add entries."""

    def __init__(self, items: Iterable[SaleItem] | None = None) -> None:
        self.items: list[SaleItem] = list(items or [])
        self.bulk_entries: list[BulkEntry] = []

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[SaleItem]:
        return iter(self.items)

    @property
    def subtotal(self) -> Decimal:
        return subtotal(item.total for item in self.items)

    def find(self, product_id: str) -> SaleItem | None:
        return next((item for item in self.items if item.product_id == product_id), None)

    def add_item(
        self,
        name: str | None,
        quantity: int | None,
        unit_price: Decimal | int | float | str | None,
    ) -> tuple[SaleItem | None, dict[str, str]]:
        price = to_money(unit_price) if unit_price is not None else None
        errors = _validate_line(name, quantity, price)
        if errors:
            return None, errors

        item = build_sale_item(name or "", int(quantity), price)
        self.items.append(item)
        return item, {}

    def update_quantity(self, product_id: str, quantity: int) -> bool:
        """Returns False when no item has this id."""
        if quantity <= 0:
            return self.remove_item(product_id)

        item = self.find(product_id)
        if item is None:
            return False
        item.quantity = quantity
        item.total = line_total(quantity, item.unit_price)
        return True

    def remove_item(self, product_id: str) -> bool:
        kept = [item for item in self.items if item.product_id != product_id]
        removed = len(kept) != len(self.items)
        self.items = kept
        return removed

    def replace(self, items: Iterable[SaleItem]) -> None:
        self.items = [item.model_copy(deep=True) for item in items]

    def clear(self) -> None:
        self.items = []
        self.bulk_entries = []

    def bulk_parse(self, raw_text: str) -> list[BulkEntry]:
        names = [line.strip() for line in (raw_text or "").splitlines()]
        parsed = [BulkEntry(temp_id=_new_id(), name=name) for name in names if name]
        if parsed:
            self.bulk_entries = parsed
        return parsed

    def update_bulk_entry(
        self,
        temp_id: str,
        quantity: int | None = None,
        price: Decimal | int | float | str | None = None,
    ) -> BulkEntry | None:
        entry = next((entry for entry in self.bulk_entries if entry.temp_id == temp_id), None)
        if entry is None:
            return None

        # A zero clears the field, the way an emptied form input does.
        if quantity is not None:
            entry.quantity = quantity or None
        if price is not None:
            amount = to_money(price)
            entry.price = amount if amount != 0 else None
        entry.error = None
        return entry

    def remove_bulk_entry(self, temp_id: str) -> None:
        self.bulk_entries = [entry for entry in self.bulk_entries if entry.temp_id != temp_id]

    def clear_bulk(self) -> None:
        self.bulk_entries = []

    def commit_bulk_entries(self) -> tuple[list[SaleItem], list[BulkEntry]]:
        added: list[SaleItem] = []
        remaining: list[BulkEntry] = []
        for entry in self.bulk_entries:
            errors = _validate_line(entry.name, entry.quantity, entry.price)
            if errors:
                # Report the first failing field, name before quantity before price.
                entry.error = next(iter(errors.values()))
                remaining.append(entry)
                continue

            entry.error = None
            added.append(build_sale_item(entry.name, entry.quantity, entry.price))

        self.items.extend(added)
        self.bulk_entries = remaining
        return added, remaining
