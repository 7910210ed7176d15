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
from app.schemas.invoice import BulkEntry, Customer, Invoice, SaleItem
from app.schemas.migration import MigrationReport, MigrationRequest

__all__ = [
    "AdjustmentsUpdateRequest",
    "BulkCommitResponse",
    "BulkEntry",
    "BulkEntryUpdateRequest",
    "BulkParseRequest",
    "Customer",
    "CustomerUpdateRequest",
    "DraftRead",
    "Invoice",
    "ItemCreateRequest",
    "ItemQuantityRequest",
    "LoadInvoiceRequest",
    "MigrationReport",
    "MigrationRequest",
    "SaleItem",
]
