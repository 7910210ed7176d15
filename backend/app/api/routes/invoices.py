from io import BytesIO

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse, StreamingResponse

from app.api.deps import get_gateway
from app.core.config import get_settings
from app.db.gateway import InvoiceGateway
from app.schemas.invoice import Invoice
from app.schemas.migration import MigrationReport, MigrationRequest
from app.services.migration import load_cached_invoices, migrate_cached_invoices
from app.services.receipt import export_filename, render_print_page, render_receipt_pdf, render_receipt_png


router = APIRouter()


def get_invoice_or_404(gateway: InvoiceGateway, invoice_number: str) -> Invoice:
    invoice = gateway.find_invoice_by_number(invoice_number.strip())
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


def attachment(content: bytes, media_type: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        BytesIO(content),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("")
def list_invoices(
    search: str = Query(default=""),
    gateway: InvoiceGateway = Depends(get_gateway),
) -> list[Invoice]:
    return gateway.list_invoices(search=search)


@router.post("/migrate")
def migrate_invoices(
    payload: MigrationRequest,
    gateway: InvoiceGateway = Depends(get_gateway),
) -> MigrationReport:
    invoices = payload.invoices
    if invoices is None:
        cache_path = get_settings().legacy_cache_path
        if not cache_path:
            raise HTTPException(status_code=400, detail="No cached invoices supplied and no cache file configured")
        try:
            invoices = load_cached_invoices(cache_path)
        except FileNotFoundError:
            raise HTTPException(status_code=400, detail=f"Cache file {cache_path} not found")
    return migrate_cached_invoices(gateway, invoices, source=payload.source, force=payload.force)


@router.get("/{invoice_number}")
def get_invoice(invoice_number: str, gateway: InvoiceGateway = Depends(get_gateway)) -> Invoice:
    return get_invoice_or_404(gateway, invoice_number)


@router.get("/{invoice_number}/pdf")
def download_invoice_pdf(invoice_number: str, gateway: InvoiceGateway = Depends(get_gateway)) -> StreamingResponse:
    invoice = get_invoice_or_404(gateway, invoice_number)
    return attachment(render_receipt_pdf(invoice, get_settings()), "application/pdf", export_filename(invoice, "pdf"))


@router.get("/{invoice_number}/png")
def download_invoice_png(invoice_number: str, gateway: InvoiceGateway = Depends(get_gateway)) -> StreamingResponse:
    invoice = get_invoice_or_404(gateway, invoice_number)
    return attachment(render_receipt_png(invoice, get_settings()), "image/png", export_filename(invoice, "png"))


@router.get("/{invoice_number}/print", response_class=HTMLResponse)
def print_invoice(invoice_number: str, gateway: InvoiceGateway = Depends(get_gateway)) -> HTMLResponse:
    invoice = get_invoice_or_404(gateway, invoice_number)
    return HTMLResponse(render_print_page(invoice, get_settings()))
