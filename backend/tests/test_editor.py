import threading
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from conftest import FakeGateway

from app.core.errors import (
    ConfigurationError,
    EditorBusyError,
    InvoiceNotFoundError,
    InvoiceValidationError,
    PersistenceError,
    SubmissionError,
    UnsavedChangesError,
)
from app.services.editor import EditorState, InvoiceEditor


FIXED_NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


def soap_receipt(gateway, **kwargs):
    editor = InvoiceEditor(gateway, clock=lambda: FIXED_NOW, **kwargs)
    editor.set_customer("Nimali Perera")
    editor.add_item("Soap", 2, Decimal("150.00"))
    return editor


def test_new_editor_is_idle_in_create_mode(fake_gateway):
    editor = InvoiceEditor(fake_gateway)
    assert editor.state == EditorState.IDLE
    assert editor.mode == "create"
    assert editor.total == Decimal("0.00")


def test_soap_scenario_totals(fake_gateway):
    editor = soap_receipt(fake_gateway)
    assert editor.subtotal == Decimal("300.00")

    editor.set_adjustments(discount=Decimal("50"), shipping_fee=Decimal("100"), pending_amount=Decimal("0"))

    assert editor.total == Decimal("350.00")
    assert editor.state == EditorState.EDITING


def test_submit_creates_invoice(fake_gateway):
    editor = soap_receipt(fake_gateway, owner_id="user-1")
    editor.set_adjustments(discount=Decimal("50"), shipping_fee=Decimal("100"))

    invoice = editor.submit()

    assert invoice.invoice_number == "INV-1001"
    assert invoice.subtotal == Decimal("300.00")
    assert invoice.total == Decimal("350.00")
    assert invoice.date == FIXED_NOW
    assert invoice.owner_id == "user-1"
    assert fake_gateway.calls == ["latest_invoice_number", "insert_invoice"]
    assert editor.state == EditorState.IDLE
    assert editor.current_invoice == invoice
    assert not editor.dirty


def test_sequential_creates_get_increasing_numbers(fake_gateway):
    first = soap_receipt(fake_gateway).submit()
    second = soap_receipt(fake_gateway).submit()
    assert (first.invoice_number, second.invoice_number) == ("INV-1001", "INV-1002")
    assert first.id != second.id


def test_empty_customer_is_rejected_without_store_calls(fake_gateway):
    editor = InvoiceEditor(fake_gateway)
    editor.add_item("Soap", 1, Decimal("150"))

    with pytest.raises(InvoiceValidationError) as excinfo:
        editor.submit()

    assert excinfo.value.errors == {"customer_name": "Customer name is required"}
    assert editor.errors == excinfo.value.errors
    assert editor.state == EditorState.EDITING
    assert fake_gateway.calls == []


def test_empty_items_are_rejected(fake_gateway):
    editor = InvoiceEditor(fake_gateway)
    editor.set_customer("Nimali")
    with pytest.raises(InvoiceValidationError) as excinfo:
        editor.submit()
    assert "items" in excinfo.value.errors


@pytest.mark.parametrize(
    "adjustments, field",
    [
        ({"discount": Decimal("-1")}, "discount"),
        ({"discount": Decimal("300.01")}, "discount"),
        ({"shipping_fee": Decimal("-5")}, "shipping_fee"),
        ({"pending_amount": Decimal("-0.01")}, "pending_amount"),
    ],
)
def test_invalid_adjustments_are_rejected(fake_gateway, adjustments, field):
    editor = soap_receipt(fake_gateway)
    editor.set_adjustments(**adjustments)

    with pytest.raises(InvoiceValidationError) as excinfo:
        editor.submit()

    assert field in excinfo.value.errors
    assert fake_gateway.calls == []


def test_discount_equal_to_subtotal_is_allowed(fake_gateway):
    editor = soap_receipt(fake_gateway)
    editor.set_adjustments(discount=Decimal("300"))
    assert editor.submit().total == Decimal("0.00")


def test_unreachable_store_keeps_the_form(fake_gateway):
    fake_gateway.fail_with = ConfigurationError("down")
    editor = soap_receipt(fake_gateway)

    with pytest.raises(SubmissionError) as excinfo:
        editor.submit()

    assert excinfo.value.kind == "configuration"
    assert "not configured" in excinfo.value.message
    assert editor.state == EditorState.EDITING
    assert editor.customer.name == "Nimali Perera"
    assert len(editor.items) == 1
    assert editor.current_invoice is None


def test_rejected_write_surfaces_store_message():
    gateway = FakeGateway()
    editor = soap_receipt(gateway)

    def reject(_invoice):
        raise PersistenceError("duplicate key value violates unique constraint")

    gateway.insert_invoice = reject
    with pytest.raises(SubmissionError) as excinfo:
        editor.submit()

    assert excinfo.value.kind == "persistence"
    assert "duplicate key" in excinfo.value.message
    assert editor.dirty


def test_unexpected_failure_is_reported_as_unknown():
    gateway = FakeGateway(fail_with=RuntimeError("boom"))
    gateway.latest_invoice_number = lambda: None
    editor = soap_receipt(gateway)

    with pytest.raises(SubmissionError) as excinfo:
        editor.submit()

    assert excinfo.value.kind == "unknown"
    assert not editor.busy


def test_busy_editor_refuses_second_submit(fake_gateway):
    editor = soap_receipt(fake_gateway)
    editor.busy = True

    with pytest.raises(EditorBusyError):
        editor.submit()
    assert fake_gateway.calls == []


def test_busy_editor_refuses_search(fake_gateway, invoice_factory):
    fake_gateway.invoices["INV-1010"] = invoice_factory("INV-1010")
    editor = InvoiceEditor(fake_gateway)

    with editor._busy("Generating invoice..."):
        with pytest.raises(EditorBusyError) as excinfo:
            editor.search("INV-1010")

    assert "generating invoice" in excinfo.value.message
    assert fake_gateway.calls == []
    assert editor.mode == "create"
    assert not editor.busy


class SlowInsertGateway(FakeGateway):
    def __init__(self):
        super().__init__()
        self.inserting = threading.Event()
        self.release = threading.Event()

    def insert_invoice(self, invoice):
        self.inserting.set()
        self.release.wait(timeout=5)
        super().insert_invoice(invoice)


def test_overlapping_submits_are_refused():
    gateway = SlowInsertGateway()
    editor = soap_receipt(gateway)
    results = []
    worker = threading.Thread(target=lambda: results.append(editor.submit()))
    worker.start()
    try:
        assert gateway.inserting.wait(timeout=5)
        with pytest.raises(EditorBusyError):
            editor.submit()
        with pytest.raises(EditorBusyError):
            editor.search("INV-1001")
    finally:
        gateway.release.set()
        worker.join(timeout=5)

    assert [invoice.invoice_number for invoice in results] == ["INV-1001"]
    assert gateway.calls == ["latest_invoice_number", "insert_invoice"]
    assert not editor.busy


def test_unknown_item_ids_leave_the_draft_clean(fake_gateway, invoice_factory):
    fake_gateway.invoices["INV-1010"] = invoice_factory("INV-1010")
    fake_gateway.invoices["INV-1011"] = invoice_factory("INV-1011")
    editor = InvoiceEditor(fake_gateway)
    editor.search("INV-1010")

    editor.update_quantity("missing", 3)
    editor.remove_item("missing")
    assert not editor.dirty

    editor.search("INV-1011")
    assert editor.editing_invoice_number == "INV-1011"

    editor.update_quantity("p-0", 4)
    assert editor.dirty


def test_search_loads_invoice_into_update_mode(fake_gateway, invoice_factory):
    stored = invoice_factory("INV-1010", shipping_fee=Decimal("100"), total=Decimal("400"))
    fake_gateway.invoices[stored.invoice_number] = stored
    editor = InvoiceEditor(fake_gateway)

    editor.search(" INV-1010 ")

    assert editor.mode == "update"
    assert editor.editing_invoice_number == "INV-1010"
    assert editor.customer.name == "Nimali Perera"
    assert editor.shipping_fee == Decimal("100.00")
    assert editor.subtotal == Decimal("300.00")
    assert not editor.dirty


def test_search_requires_a_number(fake_gateway):
    editor = InvoiceEditor(fake_gateway)
    with pytest.raises(InvoiceValidationError) as excinfo:
        editor.search("   ")
    assert excinfo.value.errors == {"search": "Please enter an invoice number"}


def test_search_for_missing_invoice(fake_gateway):
    editor = InvoiceEditor(fake_gateway)
    with pytest.raises(InvoiceNotFoundError):
        editor.search("INV-4040")
    assert editor.mode == "create"


def test_loading_over_unsaved_edits_needs_explicit_discard(fake_gateway, invoice_factory):
    fake_gateway.invoices["INV-1010"] = invoice_factory("INV-1010")
    editor = soap_receipt(fake_gateway)

    with pytest.raises(UnsavedChangesError):
        editor.search("INV-1010")
    assert editor.mode == "create"
    assert fake_gateway.calls == []

    editor.search("INV-1010", discard_unsaved=True)
    assert editor.mode == "update"
    assert [item.product_id for item in editor.items] == ["p-0"]


def test_update_preserves_identity_and_owner(fake_gateway, invoice_factory):
    stored = invoice_factory("INV-1010", owner_id="owner-a")
    fake_gateway.invoices[stored.invoice_number] = stored
    editor = InvoiceEditor(fake_gateway, owner_id="someone-else", clock=lambda: FIXED_NOW)
    editor.load_for_edit(stored)

    editor.add_item("Cream", 1, Decimal("900"))
    updated = editor.submit()

    assert updated.id == stored.id
    assert updated.invoice_number == "INV-1010"
    assert updated.owner_id == "owner-a"
    assert updated.subtotal == Decimal("1200.00")
    assert updated.date == FIXED_NOW
    assert fake_gateway.calls == ["find_invoice_by_number", "update_invoice"]


def test_update_assigns_owner_to_anonymous_invoice(fake_gateway, invoice_factory):
    stored = invoice_factory("INV-1010")
    fake_gateway.invoices[stored.invoice_number] = stored
    editor = InvoiceEditor(fake_gateway, owner_id="user-9")
    editor.load_for_edit(stored)

    assert editor.submit().owner_id == "user-9"


def test_update_of_vanished_invoice_fails(fake_gateway, invoice_factory):
    editor = InvoiceEditor(fake_gateway)
    editor.load_for_edit(invoice_factory("INV-1010"))

    with pytest.raises(SubmissionError) as excinfo:
        editor.submit()
    assert excinfo.value.kind == "persistence"


def test_load_and_resubmit_only_changes_the_date(fake_gateway, invoice_factory):
    stored = invoice_factory("INV-1010", discount=Decimal("20"), total=Decimal("280"))
    fake_gateway.invoices[stored.invoice_number] = stored
    editor = InvoiceEditor(fake_gateway, clock=lambda: FIXED_NOW)
    editor.search("INV-1010")

    updated = editor.submit()

    assert updated.model_dump(exclude={"date"}) == stored.model_dump(exclude={"date"})
    assert updated.date == FIXED_NOW


def test_reset_clears_everything(fake_gateway, invoice_factory):
    editor = InvoiceEditor(fake_gateway)
    editor.load_for_edit(invoice_factory("INV-1010"))
    editor.parse_bulk("Comb")

    editor.reset()

    assert editor.state == EditorState.IDLE
    assert editor.mode == "create"
    assert editor.items == []
    assert editor.line_items.bulk_entries == []
    assert editor.customer.name == ""
    assert editor.current_invoice is None


def test_add_item_errors_are_attached_to_the_form(fake_gateway):
    editor = InvoiceEditor(fake_gateway)
    assert editor.add_item("", 1, Decimal("10")) is None
    assert editor.errors == {"item_name": "Product name is required"}

    editor.add_item("Soap", 1, Decimal("10"))
    assert editor.errors == {}


def test_commit_bulk_through_editor(fake_gateway):
    editor = InvoiceEditor(fake_gateway)
    (entry,) = editor.parse_bulk("Shampoo")
    editor.update_bulk_entry(entry.temp_id, quantity=2, price=Decimal("400"))

    added, remaining = editor.commit_bulk()

    assert len(added) == 1 and remaining == []
    assert editor.subtotal == Decimal("800.00")
