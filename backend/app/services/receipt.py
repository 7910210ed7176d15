from __future__ import annotations

from html import escape
from io import BytesIO

from PIL import Image, ImageDraw, ImageFont
from reportlab.lib.pagesizes import A4, landscape, portrait
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from app.core.config import Settings
from app.schemas.invoice import Invoice
from app.services.money import format_money


RECEIPT_WIDTH = 560
MARGIN = 28
ROW_HEIGHT = 22
PDF_MARGIN = 10 * mm

PRINT_STYLESHEET = """
body { font-family: Arial, sans-serif; margin: 0; padding: 24px; color: #111827; }
.receipt { max-width: 560px; margin: 0 auto; }
.header { text-align: center; border-bottom: 2px solid #111827; padding-bottom: 12px; margin-bottom: 16px; }
.header h1 { margin: 0; font-size: 24px; letter-spacing: 2px; }
.meta { display: flex; justify-content: space-between; margin-bottom: 16px; font-size: 13px; }
table { width: 100%; border-collapse: collapse; font-size: 13px; }
th, td { padding: 6px 4px; border-bottom: 1px solid #e5e7eb; text-align: left; }
td.num, th.num { text-align: right; }
.totals { margin-top: 16px; margin-left: auto; width: 260px; font-size: 13px; }
.totals div { display: flex; justify-content: space-between; padding: 2px 0; }
.totals .grand { font-weight: bold; font-size: 15px; border-top: 2px solid #111827; padding-top: 6px; }
@media print {
  body { padding: 0; }
  @page { margin: 10mm; }
}
"""


def export_filename(invoice: Invoice, ext: str) -> str:
    return f"{invoice.invoice_number}.{ext.lstrip('.')}"


def build_receipt_view(invoice: Invoice, settings: Settings) -> dict:
    label = settings.currency_label
    totals = [("Subtotal:", format_money(invoice.subtotal, label))]
    if invoice.shipping_fee > 0:
        totals.append(("Courier charge:", f"+{format_money(invoice.shipping_fee, label)}"))
    if invoice.discount > 0:
        totals.append(("Discount:", f"-{format_money(invoice.discount, label)}"))
    if invoice.pending_amount > 0:
        totals.append(("Pending Amount:", f"+{format_money(invoice.pending_amount, label)}"))

    return {
        "company_name": settings.receipt_company_name,
        "company_phone": settings.receipt_company_phone,
        "invoice_number": invoice.invoice_number,
        "date": invoice.date.strftime("%d/%m/%Y"),
        "customer_name": invoice.customer.name,
        "items": [
            {
                "name": item.product_name,
                "quantity": str(item.quantity),
                "unit_price": format_money(item.unit_price, label),
                "total": format_money(item.total, label),
            }
            for item in invoice.items
        ],
        "totals": totals,
        "grand_total": ("Total:", format_money(invoice.total, label)),
    }


def render_receipt_png(invoice: Invoice, settings: Settings, scale: int = 2) -> bytes:
    view = build_receipt_view(invoice, settings)
    height = MARGIN * 2 + 70 + ROW_HEIGHT * 3 + ROW_HEIGHT * (len(view["items"]) + 1) + ROW_HEIGHT * (len(view["totals"]) + 2)

    image = Image.new("RGB", (RECEIPT_WIDTH * scale, height * scale), "white")
    draw = ImageDraw.Draw(image)
    title_font = ImageFont.load_default(size=22 * scale)
    bold_font = ImageFont.load_default(size=14 * scale)
    body_font = ImageFont.load_default(size=12 * scale)

    def put(x: float, y: float, value: str, font, align: str = "left") -> None:
        width = draw.textlength(value, font=font) / scale
        if align == "right":
            x -= width
        elif align == "center":
            x -= width / 2
        draw.text((x * scale, y * scale), value, fill="#111827", font=font)

    def rule(y: float, thickness: int = 1) -> None:
        draw.line((MARGIN * scale, y * scale, (RECEIPT_WIDTH - MARGIN) * scale, y * scale), fill="#111827", width=thickness * scale)

    right = RECEIPT_WIDTH - MARGIN
    y = MARGIN
    put(RECEIPT_WIDTH / 2, y, view["company_name"], title_font, align="center")
    y += 32
    put(RECEIPT_WIDTH / 2, y, f"Tel: {view['company_phone']}", body_font, align="center")
    y += 26
    rule(y, 2)
    y += 12

    put(MARGIN, y, f"Invoice: {view['invoice_number']}", bold_font)
    put(right, y, f"Date: {view['date']}", body_font, align="right")
    y += ROW_HEIGHT
    put(MARGIN, y, f"Customer: {view['customer_name']}", body_font)
    y += ROW_HEIGHT * 2

    columns = (MARGIN, 300, 440, right)
    put(columns[0], y, "Item", bold_font)
    put(columns[1], y, "Qty", bold_font, align="right")
    put(columns[2], y, "Price", bold_font, align="right")
    put(columns[3], y, "Total", bold_font, align="right")
    y += ROW_HEIGHT - 4
    rule(y)
    y += 6
    for item in view["items"]:
        put(columns[0], y, item["name"], body_font)
        put(columns[1], y, item["quantity"], body_font, align="right")
        put(columns[2], y, item["unit_price"], body_font, align="right")
        put(columns[3], y, item["total"], body_font, align="right")
        y += ROW_HEIGHT

    y += ROW_HEIGHT / 2
    for label, value in view["totals"]:
        put(320, y, label, body_font)
        put(right, y, value, body_font, align="right")
        y += ROW_HEIGHT
    rule(y, 2)
    y += 6
    label, value = view["grand_total"]
    put(320, y, label, bold_font)
    put(right, y, value, bold_font, align="right")

    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def render_receipt_pdf(invoice: Invoice, settings: Settings) -> bytes:
    image = Image.open(BytesIO(render_receipt_png(invoice, settings, scale=2)))
    image_width, image_height = image.size

    pagesize = landscape(A4) if image_width > image_height else portrait(A4)
    page_width, page_height = pagesize
    draw_width = page_width - 2 * PDF_MARGIN
    draw_height = image_height * draw_width / image_width
    if draw_height > page_height - 2 * PDF_MARGIN:
        factor = (page_height - 2 * PDF_MARGIN) / draw_height
        draw_width *= factor
        draw_height *= factor

    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=pagesize)
    pdf.setTitle(invoice.invoice_number)
    pdf.drawImage(
        ImageReader(image),
        (page_width - draw_width) / 2,
        page_height - PDF_MARGIN - draw_height,
        width=draw_width,
        height=draw_height,
    )
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def render_print_page(invoice: Invoice, settings: Settings) -> str:
    view = build_receipt_view(invoice, settings)
    rows = "\n".join(
        "<tr>"
        f"<td>{escape(item['name'])}</td>"
        f"<td class=\"num\">{escape(item['quantity'])}</td>"
        f"<td class=\"num\">{escape(item['unit_price'])}</td>"
        f"<td class=\"num\">{escape(item['total'])}</td>"
        "</tr>"
        for item in view["items"]
    )
    totals = "\n".join(
        f"<div><span>{escape(label)}</span><span>{escape(value)}</span></div>" for label, value in view["totals"]
    )
    grand_label, grand_value = view["grand_total"]

    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Receipt - {escape(view['invoice_number'])}</title>
<style>{PRINT_STYLESHEET}</style>
</head>
<body>
<div class="receipt">
<div class="header">
<h1>{escape(view['company_name'])}</h1>
<p>Tel: {escape(view['company_phone'])}</p>
</div>
<div class="meta">
<div><strong>Invoice:</strong> {escape(view['invoice_number'])}<br><strong>Customer:</strong> {escape(view['customer_name'])}</div>
<div><strong>Date:</strong> {escape(view['date'])}</div>
</div>
<table>
<thead><tr><th>Item</th><th class="num">Qty</th><th class="num">Price</th><th class="num">Total</th></tr></thead>
<tbody>
{rows}
</tbody>
</table>
<div class="totals">
{totals}
<div class="grand"><span>{escape(grand_label)}</span><span>{escape(grand_value)}</span></div>
</div>
</div>
<script>
window.onload = function () {{
  window.print();
  window.onafterprint = function () {{ window.close(); }};
}};
</script>
</body>
</html>
"""
