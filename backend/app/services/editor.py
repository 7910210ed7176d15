"""Receipt form workflow: collects customer, items and adjustments, then
creates or updates the stored invoice.

The editor is in *create* mode until an existing invoice is loaded through
:meth:`InvoiceEditor.search` or :meth:`InvoiceEditor.load_for_edit`; from then
on submitting rewrites that invoice instead of minting a new number.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Protocol
from uuid import uuid4

from app.core.errors import (
    ConfigurationError,
    EditorBusyError,
    InvoiceNotFoundError,
    InvoiceValidationError,
    PersistenceError,
    SubmissionError,
    UnsavedChangesError,
)
from app.schemas.invoice import BulkEntry, Customer, Invoice, SaleItem
from app.services.line_items import LineItemCollection
from app.services.money import ZERO, invoice_total, to_money
from app.services.numbering import next_invoice_number


logger = logging.getLogger(__name__)


class EditorState(str, Enum):
    IDLE = "idle"
    EDITING = "editing"
    SUBMITTING = "submitting"


class InvoiceStore(Protocol):
    def latest_invoice_number(self) -> str | None: ...

    def find_invoice_by_number(self, invoice_number: str) -> Invoice | None: ...

    def insert_invoice(self, invoice: Invoice) -> None: ...

    def update_invoice(self, invoice: Invoice) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InvoiceEditor:
    def __init__(
        self,
        gateway: InvoiceStore,
        owner_id: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.gateway = gateway
        self.owner_id = owner_id
        self.clock = clock
        self._lock = threading.Lock()
        self.busy = False
        self.loading_message = ""
        self._clear_form()
        self.current_invoice: Invoice | None = None
        self.state = EditorState.IDLE

    def _clear_form(self) -> None:
        self.customer = Customer()
        self.line_items = LineItemCollection()
        self.discount = ZERO
        self.shipping_fee = ZERO
        self.pending_amount = ZERO
        self.editing_invoice_id: str | None = None
        self.editing_invoice_number: str | None = None
        self.errors: dict[str, str] = {}
        self.dirty = False

    @property
    def mode(self) -> str:
        return "update" if self.editing_invoice_id else "create"

    @property
    def items(self) -> list[SaleItem]:
        return self.line_items.items

    @property
    def subtotal(self) -> Decimal:
        return self.line_items.subtotal

    @property
    def total(self) -> Decimal:
        return invoice_total(self.subtotal, self.discount, self.shipping_fee, self.pending_amount)

    def _touch(self) -> None:
        self.dirty = True
        if self.state == EditorState.IDLE:
            self.state = EditorState.EDITING

    def _drop_errors(self, *fields: str) -> None:
        for field in fields:
            self.errors.pop(field, None)

    # form edits

    def set_customer(self, name: str) -> None:
        self.customer = Customer(name=name)
        self._drop_errors("customer_name")
        self._touch()

    def set_adjustments(
        self,
        discount: Decimal | None = None,
        shipping_fee: Decimal | None = None,
        pending_amount: Decimal | None = None,
    ) -> None:
        if discount is not None:
            self.discount = to_money(discount)
            self._drop_errors("discount")
        if shipping_fee is not None:
            self.shipping_fee = to_money(shipping_fee)
            self._drop_errors("shipping_fee")
        if pending_amount is not None:
            self.pending_amount = to_money(pending_amount)
            self._drop_errors("pending_amount")
        self._touch()

    def add_item(self, name: str | None, quantity: int | None, unit_price: Decimal | None) -> SaleItem | None:
        item, errors = self.line_items.add_item(name, quantity, unit_price)
        self._drop_errors("item_name", "item_quantity", "item_price")
        if errors:
            self.errors.update(errors)
            return None
        self._drop_errors("items")
        self._touch()
        return item

    def update_quantity(self, product_id: str, quantity: int) -> None:
        if self.line_items.update_quantity(product_id, quantity):
            self._touch()

    def remove_item(self, product_id: str) -> None:
        if self.line_items.remove_item(product_id):
            self._touch()

    def parse_bulk(self, raw_text: str) -> list[BulkEntry]:
        entries = self.line_items.bulk_parse(raw_text)
        if entries:
            self._touch()
        return entries

    def update_bulk_entry(self, temp_id: str, quantity: int | None = None, price: Decimal | None = None) -> BulkEntry | None:
        return self.line_items.update_bulk_entry(temp_id, quantity=quantity, price=price)

    def remove_bulk_entry(self, temp_id: str) -> None:
        self.line_items.remove_bulk_entry(temp_id)

    def commit_bulk(self) -> tuple[list[SaleItem], list[BulkEntry]]:
        added, remaining = self.line_items.commit_bulk_entries()
        if added:
            self._drop_errors("items")
            self._touch()
        return added, remaining

    def clear_bulk(self) -> None:
        self.line_items.clear_bulk()

    # validation and submission

    def validate(self) -> dict[str, str]:
        errors: dict[str, str] = {}
        if not self.customer.name.strip():
            errors["customer_name"] = "Customer name is required"
        if not self.items:
            errors["items"] = "Please add at least one item to the sale"
        if self.discount < 0:
            errors["discount"] = "Discount cannot be negative"
        elif self.discount > self.subtotal:
            errors["discount"] = "Discount cannot exceed subtotal amount"
        if self.shipping_fee < 0:
            errors["shipping_fee"] = "Courier charge cannot be negative"
        if self.pending_amount < 0:
            errors["pending_amount"] = "Pending amount cannot be negative"
        return errors

    @contextmanager
    def _busy(self, message: str) -> Iterator[None]:
        with self._lock:
            if self.busy:
                raise EditorBusyError(f"Please wait, {self.loading_message.lower() or 'a request is in progress'}")
            self.busy = True
            self.loading_message = message
        try:
            yield
        finally:
            self.busy = False
            self.loading_message = ""

    def _assembled_fields(self) -> dict:
        subtotal = self.subtotal
        return {
            "customer": self.customer.model_copy(),
            "items": [item.model_copy() for item in self.items],
            "subtotal": subtotal,
            "discount": self.discount,
            "shipping_fee": self.shipping_fee,
            "pending_amount": self.pending_amount,
            "total": invoice_total(subtotal, self.discount, self.shipping_fee, self.pending_amount),
            "date": self.clock(),
        }

    def _create_invoice(self) -> Invoice:
        invoice_number = next_invoice_number(self.gateway)
        invoice = Invoice(
            id=str(uuid4()),
            invoice_number=invoice_number,
            owner_id=self.owner_id,
            **self._assembled_fields(),
        )
        self.gateway.insert_invoice(invoice)
        return invoice

    def _update_invoice(self) -> Invoice:
        existing = self.gateway.find_invoice_by_number(self.editing_invoice_number)
        if existing is None:
            raise PersistenceError(f"Invoice {self.editing_invoice_number} no longer exists")

        fields = self._assembled_fields()
        fields["owner_id"] = existing.owner_id or self.owner_id
        invoice = existing.model_copy(update=fields)
        self.gateway.update_invoice(invoice)
        return invoice

    def submit(self) -> Invoice:
        updating = self.mode == "update"
        with self._busy("Updating invoice..." if updating else "Generating invoice..."):
            self.errors = self.validate()
            if self.errors:
                self.state = EditorState.EDITING
                raise InvoiceValidationError(self.errors)

            self.state = EditorState.SUBMITTING
            try:
                invoice = self._update_invoice() if updating else self._create_invoice()
            except ConfigurationError as exc:
                self.state = EditorState.EDITING
                raise SubmissionError(
                    "Error processing invoice. The invoice store is not configured or not reachable.",
                    "configuration",
                ) from exc
            except PersistenceError as exc:
                self.state = EditorState.EDITING
                raise SubmissionError(f"Error processing invoice. {exc.message}", "persistence") from exc
            except Exception as exc:
                self.state = EditorState.EDITING
                logger.exception("Unexpected failure while saving the invoice")
                raise SubmissionError("Error processing invoice. Please try again.", "unknown") from exc

        logger.info("Invoice %s %s, total %s", invoice.invoice_number, "updated" if updating else "created", invoice.total)
        self.current_invoice = invoice
        self.state = EditorState.IDLE
        self.dirty = False
        return invoice

    # loading and reset

    def _guard_unsaved(self, discard_unsaved: bool) -> None:
        if self.dirty and not discard_unsaved:
            raise UnsavedChangesError("The current receipt has unsaved changes. Discard them to load another invoice.")

    def load_for_edit(self, invoice: Invoice, discard_unsaved: bool = False) -> None:
        self._guard_unsaved(discard_unsaved)
        if self.dirty:
            logger.info("Discarding unsaved receipt edits to load %s", invoice.invoice_number)

        self._clear_form()
        self.customer = invoice.customer.model_copy()
        self.line_items.replace(invoice.items)
        self.discount = to_money(invoice.discount)
        self.shipping_fee = to_money(invoice.shipping_fee)
        self.pending_amount = to_money(invoice.pending_amount)
        self.editing_invoice_id = invoice.id
        self.editing_invoice_number = invoice.invoice_number
        self.current_invoice = invoice
        self.state = EditorState.EDITING

    def search(self, invoice_number: str, discard_unsaved: bool = False) -> Invoice:
        number = (invoice_number or "").strip()
        if not number:
            self.errors["search"] = "Please enter an invoice number"
            raise InvoiceValidationError({"search": self.errors["search"]})
        with self._busy("Searching for invoice..."):
            self._guard_unsaved(discard_unsaved)
            found = self.gateway.find_invoice_by_number(number)
        if found is None:
            raise InvoiceNotFoundError("Invoice not found. Please check the invoice number.")

        self.load_for_edit(found, discard_unsaved=True)
        return found

    def reset(self) -> None:
        self._clear_form()
        self.current_invoice = None
        self.state = EditorState.IDLE
