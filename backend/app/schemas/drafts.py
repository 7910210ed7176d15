from decimal import Decimal

from pydantic import BaseModel

from app.schemas.invoice import BulkEntry, Customer, Invoice, SaleItem


class CustomerUpdateRequest(BaseModel):
    name: str = ""


class AdjustmentsUpdateRequest(BaseModel):
    discount: Decimal | None = None
    shipping_fee: Decimal | None = None
    pending_amount: Decimal | None = None


class ItemCreateRequest(BaseModel):
    name: str = ""
    quantity: int | None = None
    unit_price: Decimal | None = None


class ItemQuantityRequest(BaseModel):
    quantity: int


class BulkParseRequest(BaseModel):
    text: str


class BulkEntryUpdateRequest(BaseModel):
    quantity: int | None = None
    price: Decimal | None = None


class LoadInvoiceRequest(BaseModel):
    invoice_number: str
    discard_unsaved: bool = False


class DraftRead(BaseModel):
    draft_id: str
    state: str
    mode: str
    busy: bool
    dirty: bool
    editing_invoice_number: str | None
    customer: Customer
    items: list[SaleItem]
    bulk_entries: list[BulkEntry]
    discount: Decimal
    shipping_fee: Decimal
    pending_amount: Decimal
    subtotal: Decimal
    total: Decimal
    errors: dict[str, str]
    current_invoice: Invoice | None


class BulkCommitResponse(BaseModel):
    added: list[SaleItem]
    remaining: list[BulkEntry]
    draft: DraftRead
