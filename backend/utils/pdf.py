# backend/utils/pdf.py
import io
import logging
from pathlib import Path

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from config import settings
from models.sale import Sale

logger = logging.getLogger(__name__)

FONT_DIR = Path(__file__).parent.parent / "assets" / "fonts"
FONT_REGULAR_PATH = FONT_DIR / "DejaVuSans.ttf"
FONT_BOLD_PATH = FONT_DIR / "DejaVuSans-Bold.ttf"

# Built-in Type 1 fonts, replaced by DejaVu when the TTF files are shipped
FONT_REGULAR_NAME = "Helvetica"
FONT_BOLD_NAME = "Helvetica-Bold"

STORE_NAME = "Inventory POS"

_fonts_inited = False


def _init_fonts():
    """Register DejaVu for non-Latin customer names if the font files exist."""
    global _fonts_inited, FONT_REGULAR_NAME, FONT_BOLD_NAME
    if _fonts_inited:
        return
    _fonts_inited = True

    if not FONT_REGULAR_PATH.exists():
        logger.debug("Font file not found at %s, using Helvetica", FONT_REGULAR_PATH)
        return

    pdfmetrics.registerFont(TTFont("DejaVuSans", str(FONT_REGULAR_PATH)))
    FONT_REGULAR_NAME = "DejaVuSans"
    if FONT_BOLD_PATH.exists():
        pdfmetrics.registerFont(TTFont("DejaVuSans-Bold", str(FONT_BOLD_PATH)))
        FONT_BOLD_NAME = "DejaVuSans-Bold"
    else:
        FONT_BOLD_NAME = FONT_REGULAR_NAME


def _money(value) -> str:
    return f"{value:.2f} {settings.CURRENCY}"


def render_sale_invoice(sale: Sale) -> bytes:
    """
    Render a sale as a one-or-more page A4 invoice and return the PDF bytes.

    Layout:
    - header with invoice number and date
    - customer (left) and cashier (right)
    - line table: product, quantity, unit price, discount, line total
    - totals block: subtotal, discount, tax, total, paid, change
    """
    _init_fonts()

    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4

    def draw_text(x, y, text, font=None, size=10, align="left"):
        c.setFont(font or FONT_REGULAR_NAME, size)
        text_str = str(text) if text is not None else ""
        if align == "right":
            c.drawRightString(x, y, text_str)
        elif align == "center":
            c.drawCentredString(x, y, text_str)
        else:
            c.drawString(x, y, text_str)

    # --- 1. HEADER ---
    y = height - 20 * mm
    draw_text(20 * mm, y, STORE_NAME, font=FONT_BOLD_NAME, size=14)
    draw_text(190 * mm, y, f"Invoice: {sale.invoice_number}", font=FONT_BOLD_NAME, size=14, align="right")
    y -= 7 * mm
    draw_text(190 * mm, y, f"Date: {sale.sale_date:%Y-%m-%d %H:%M}", align="right")
    if not sale.is_completed:
        y -= 5 * mm
        draw_text(190 * mm, y, "CANCELLED", font=FONT_BOLD_NAME, align="right")

    y -= 6 * mm
    c.setLineWidth(0.5)
    c.line(20 * mm, y, 190 * mm, y)
    y -= 10 * mm

    # --- 2. CUSTOMER / CASHIER ---
    customer = sale.customer
    draw_text(20 * mm, y, "BILL TO:", font=FONT_BOLD_NAME)
    draw_text(110 * mm, y, "SERVED BY:", font=FONT_BOLD_NAME)
    y -= 5 * mm
    draw_text(20 * mm, y, customer.name if customer else "", font=FONT_BOLD_NAME)
    draw_text(110 * mm, y, sale.sales_person_name or "")
    y -= 5 * mm
    draw_text(110 * mm, y, f"Payment: {sale.payment_method.value}")
    if customer is not None:
        for line in (customer.email, customer.phone, customer.address):
            if line:
                draw_text(20 * mm, y, str(line)[:50])
                y -= 5 * mm
    y -= 10 * mm

    # --- 3. LINE TABLE ---
    def table_header(current_y):
        c.setFillColorRGB(0.95, 0.95, 0.95)
        c.rect(20 * mm, current_y - 2 * mm, 170 * mm, 8 * mm, fill=1, stroke=0)
        c.setFillColorRGB(0, 0, 0)
        c.setFont(FONT_BOLD_NAME, 9)
        c.drawString(22 * mm, current_y, "#")
        c.drawString(30 * mm, current_y, "Product")
        c.drawRightString(110 * mm, current_y, "Qty")
        c.drawRightString(135 * mm, current_y, "Unit price")
        c.drawRightString(155 * mm, current_y, "Disc. %")
        c.drawRightString(188 * mm, current_y, "Total")
        return current_y - 8 * mm

    y = table_header(y)
    c.setFont(FONT_REGULAR_NAME, 9)
    for idx, item in enumerate(sale.items, start=1):
        c.drawString(22 * mm, y, str(idx))
        c.drawString(30 * mm, y, str(item.product_name or f"ID:{item.product_id}")[:45])
        c.drawRightString(110 * mm, y, str(item.quantity))
        c.drawRightString(135 * mm, y, f"{item.unit_price:.2f}")
        c.drawRightString(155 * mm, y, f"{item.discount_percentage:.2f}")
        c.drawRightString(188 * mm, y, f"{item.total_price:.2f}")
        c.setLineWidth(0.1)
        c.line(20 * mm, y - 2 * mm, 190 * mm, y - 2 * mm)
        y -= 6 * mm

        if y < 40 * mm:
            c.showPage()
            y = table_header(height - 20 * mm)
            c.setFont(FONT_REGULAR_NAME, 9)

    # --- 4. TOTALS ---
    y -= 5 * mm
    if y < 50 * mm:
        c.showPage()
        y = height - 30 * mm

    rows = [
        ("Subtotal:", sale.subtotal),
        ("Discount:", -sale.discount_amount),
        ("Tax:", sale.tax_amount),
    ]
    for label, value in rows:
        draw_text(150 * mm, y, label, font=FONT_BOLD_NAME, align="right")
        draw_text(188 * mm, y, _money(value), align="right")
        y -= 5 * mm

    y -= 1 * mm
    draw_text(150 * mm, y, "TOTAL:", font=FONT_BOLD_NAME, size=12, align="right")
    draw_text(188 * mm, y, _money(sale.total_amount), font=FONT_BOLD_NAME, size=12, align="right")
    y -= 7 * mm
    draw_text(150 * mm, y, "Paid:", align="right")
    draw_text(188 * mm, y, _money(sale.paid_amount), align="right")
    y -= 5 * mm
    draw_text(150 * mm, y, "Change:", align="right")
    draw_text(188 * mm, y, _money(sale.change_due), align="right")

    if sale.notes:
        y -= 10 * mm
        draw_text(20 * mm, y, f"Notes: {sale.notes[:90]}", size=9)

    draw_text(width / 2, 15 * mm, "Thank you for your purchase!", size=8, align="center")

    c.showPage()
    c.save()
    return buf.getvalue()
