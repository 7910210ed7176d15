from fastapi import APIRouter, Depends, HTTPException, Response

from app.api.deps import get_drafts, get_editor, get_gateway, get_owner_id
from app.core.errors import InvoiceValidationError
from app.db.gateway import InvoiceGateway
from app.schemas.drafts import (
    AdjustmentsUpdateRequest,
    BulkCommitResponse,
    BulkEntryUpdateRequest,
    BulkParseRequest,
    CustomerUpdateRequest,
    DraftRead,
    ItemCreateRequest,
    ItemQuantityRequest,
    LoadInvoiceRequest,
)
from app.services.drafts import DraftRegistry
from app.services.editor import InvoiceEditor


router = APIRouter()


def draft_payload(draft_id: str, editor: InvoiceEditor) -> DraftRead:
    return DraftRead(
        draft_id=draft_id,
        state=editor.state.value,
        mode=editor.mode,
        busy=editor.busy,
        dirty=editor.dirty,
        editing_invoice_number=editor.editing_invoice_number,
        customer=editor.customer,
        items=editor.items,
        bulk_entries=editor.line_items.bulk_entries,
        discount=editor.discount,
        shipping_fee=editor.shipping_fee,
        pending_amount=editor.pending_amount,
        subtotal=editor.subtotal,
        total=editor.total,
        errors=editor.errors,
        current_invoice=editor.current_invoice,
    )


@router.post("", status_code=201)
def open_draft(
    gateway: InvoiceGateway = Depends(get_gateway),
    drafts: DraftRegistry = Depends(get_drafts),
    owner_id: str | None = Depends(get_owner_id),
) -> DraftRead:
    draft_id, editor = drafts.open(gateway, owner_id=owner_id)
    return draft_payload(draft_id, editor)


@router.get("/{draft_id}")
def get_draft(draft_id: str, editor: InvoiceEditor = Depends(get_editor)) -> DraftRead:
    return draft_payload(draft_id, editor)


@router.delete("/{draft_id}", status_code=204)
def close_draft(draft_id: str, drafts: DraftRegistry = Depends(get_drafts)) -> Response:
    drafts.close(draft_id)
    return Response(status_code=204)


@router.put("/{draft_id}/customer")
def set_customer(draft_id: str, payload: CustomerUpdateRequest, editor: InvoiceEditor = Depends(get_editor)) -> DraftRead:
    editor.set_customer(payload.name)
    return draft_payload(draft_id, editor)


@router.put("/{draft_id}/adjustments")
def set_adjustments(
    draft_id: str,
    payload: AdjustmentsUpdateRequest,
    editor: InvoiceEditor = Depends(get_editor),
) -> DraftRead:
    editor.set_adjustments(
        discount=payload.discount,
        shipping_fee=payload.shipping_fee,
        pending_amount=payload.pending_amount,
    )
    return draft_payload(draft_id, editor)


@router.post("/{draft_id}/items")
def add_item(draft_id: str, payload: ItemCreateRequest, editor: InvoiceEditor = Depends(get_editor)) -> DraftRead:
    item = editor.add_item(payload.name, payload.quantity, payload.unit_price)
    if item is None:
        raise InvoiceValidationError(
            {field: message for field, message in editor.errors.items() if field.startswith("item_")}
        )
    return draft_payload(draft_id, editor)


@router.patch("/{draft_id}/items/{product_id}")
def update_item_quantity(
    draft_id: str,
    product_id: str,
    payload: ItemQuantityRequest,
    editor: InvoiceEditor = Depends(get_editor),
) -> DraftRead:
    editor.update_quantity(product_id, payload.quantity)
    return draft_payload(draft_id, editor)


@router.delete("/{draft_id}/items/{product_id}")
def remove_item(draft_id: str, product_id: str, editor: InvoiceEditor = Depends(get_editor)) -> DraftRead:
    editor.remove_item(product_id)
    return draft_payload(draft_id, editor)


@router.post("/{draft_id}/bulk")
def parse_bulk(draft_id: str, payload: BulkParseRequest, editor: InvoiceEditor = Depends(get_editor)) -> DraftRead:
    editor.parse_bulk(payload.text)
    return draft_payload(draft_id, editor)


@router.post("/{draft_id}/bulk/commit")
def commit_bulk(draft_id: str, editor: InvoiceEditor = Depends(get_editor)) -> BulkCommitResponse:
    added, remaining = editor.commit_bulk()
    return BulkCommitResponse(added=added, remaining=remaining, draft=draft_payload(draft_id, editor))


@router.patch("/{draft_id}/bulk/{temp_id}")
def update_bulk_entry(
    draft_id: str,
    temp_id: str,
    payload: BulkEntryUpdateRequest,
    editor: InvoiceEditor = Depends(get_editor),
) -> DraftRead:
    if editor.update_bulk_entry(temp_id, quantity=payload.quantity, price=payload.price) is None:
        raise HTTPException(status_code=404, detail="Bulk entry not found")
    return draft_payload(draft_id, editor)


@router.delete("/{draft_id}/bulk/{temp_id}")
def remove_bulk_entry(draft_id: str, temp_id: str, editor: InvoiceEditor = Depends(get_editor)) -> DraftRead:
    editor.remove_bulk_entry(temp_id)
    return draft_payload(draft_id, editor)


@router.delete("/{draft_id}/bulk")
def clear_bulk(draft_id: str, editor: InvoiceEditor = Depends(get_editor)) -> DraftRead:
    editor.clear_bulk()
    return draft_payload(draft_id, editor)


@router.post("/{draft_id}/load")
def load_invoice(draft_id: str, payload: LoadInvoiceRequest, editor: InvoiceEditor = Depends(get_editor)) -> DraftRead:
    editor.search(payload.invoice_number, discard_unsaved=payload.discard_unsaved)
    return draft_payload(draft_id, editor)


@router.post("/{draft_id}/submit")
def submit_draft(draft_id: str, editor: InvoiceEditor = Depends(get_editor)) -> DraftRead:
    editor.submit()
    return draft_payload(draft_id, editor)


@router.post("/{draft_id}/reset")
def reset_draft(draft_id: str, editor: InvoiceEditor = Depends(get_editor)) -> DraftRead:
    editor.reset()
    return draft_payload(draft_id, editor)
