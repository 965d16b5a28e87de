"""Registration confirmation PDFs rendered with reportlab."""

from __future__ import annotations

import io
import logging
import re
from typing import Iterable

from reportlab.graphics import renderPDF
from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas as pdf_canvas

from eventdesk.models import Event, PaymentStatus, Registration
from eventdesk.services.dates import format_event_dates

logger = logging.getLogger(__name__)

RENDERER_KEY = 'eventdesk.pdf_renderer'
DEFAULT_THEME = '#1d4ed8'
QR_SIZE = 40 * mm


class CertificateError(Exception):
    """Raised when a confirmation PDF cannot be produced."""


def _safe(value: str | None, fallback: str) -> str:
    cleaned = re.sub(r'[^a-zA-Z0-9]', '_', value or '')
    return cleaned or fallback


def attachment_name(event: Event, registration: Registration) -> str:
    return f"{_safe(registration.name, 'Registrant')}_{_safe(event.title, 'Event')}_Registration.pdf"


def _theme_color(event: Event):
    try:
        return colors.HexColor('#' + (event.color_theme or DEFAULT_THEME).lstrip('#'))
    except ValueError:
        return colors.HexColor(DEFAULT_THEME)


class CertificateRenderer:
    """Draws one A4 page per registration with a QR link to the public verify page."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')

    def verification_url(self, registration: Registration) -> str:
        return f"{self.base_url}/verify/{registration.id}"

    def render(self, event: Event, registration: Registration) -> bytes:
        return self.render_many(event, [registration])

    def render_many(self, event: Event, registrations: Iterable[Registration]) -> bytes:
        buffer = io.BytesIO()
        try:
            pdf = pdf_canvas.Canvas(buffer, pagesize=A4)
            pdf.setTitle(f"{event.title} - Registration")
            pages = 0
            for registration in registrations:
                self._draw_page(pdf, event, registration)
                pdf.showPage()
                pages += 1
            if pages == 0:
                pdf.setFont('Helvetica', 12)
                pdf.drawCentredString(A4[0] / 2, A4[1] / 2, 'No registrations')
                pdf.showPage()
            pdf.save()
        except (ValueError, TypeError, AttributeError) as exc:
            raise CertificateError(f"Could not render registration PDF for {event.id}: {exc}") from exc
        return buffer.getvalue()

    def _draw_page(self, pdf, event: Event, registration: Registration) -> None:
        width, height = A4
        theme = _theme_color(event)

        # Header band
        pdf.setFillColor(theme)
        pdf.rect(0, height - 45 * mm, width, 45 * mm, stroke=0, fill=1)
        pdf.setFillColor(colors.white)
        pdf.setFont('Helvetica-Bold', 22)
        pdf.drawCentredString(width / 2, height - 22 * mm, event.title[:60])
        pdf.setFont('Helvetica', 12)
        pdf.drawCentredString(width / 2, height - 32 * mm, 'Registration Confirmation')

        y = height - 62 * mm
        pdf.setFillColor(colors.HexColor('#0f172a'))
        pdf.setFont('Helvetica-Bold', 11)
        pdf.drawString(20 * mm, y, 'REGISTRATION ID')
        pdf.setFont('Courier-Bold', 20)
        pdf.drawString(20 * mm, y - 9 * mm, registration.id)

        rows = [
            ('Name', registration.name),
            ('Email', registration.email),
            ('Phone', registration.phone),
            ('School', registration.school),
        ]
        if registration.category:
            rows.append(('Category', registration.category))
        rows.extend([
            ('Date', format_event_dates(event.dates)),
            ('Time', event.time or 'TBA'),
            ('Venue', event.venue or event.location or 'TBA'),
        ])
        if registration.payment_status == PaymentStatus.COMPLETED:
            rows.append(('Payment', f"Paid (bKash {registration.transaction_id or '-'})"))

        y -= 24 * mm
        for label, value in rows:
            pdf.setFont('Helvetica', 9)
            pdf.setFillColor(colors.HexColor('#64748b'))
            pdf.drawString(20 * mm, y, label.upper())
            pdf.setFont('Helvetica-Bold', 12)
            pdf.setFillColor(colors.HexColor('#1e293b'))
            pdf.drawString(55 * mm, y, str(value or '-')[:70])
            y -= 10 * mm

        self._draw_qr(pdf, self.verification_url(registration), (width - QR_SIZE) / 2, 30 * mm)
        pdf.setFont('Helvetica', 9)
        pdf.setFillColor(colors.HexColor('#64748b'))
        pdf.drawCentredString(width / 2, 25 * mm, 'Scan to verify')
        pdf.drawCentredString(width / 2, 12 * mm, 'Bring this confirmation to check-in.')

    def _draw_qr(self, pdf, data: str, x: float, y: float) -> None:
        widget = QrCodeWidget(data)
        left, bottom, right, top = widget.getBounds()
        drawing = Drawing(
            QR_SIZE,
            QR_SIZE,
            transform=[QR_SIZE / (right - left), 0, 0, QR_SIZE / (top - bottom), 0, 0],
        )
        drawing.add(widget)
        renderPDF.draw(drawing, pdf, x, y)


__all__ = ['RENDERER_KEY', 'CertificateError', 'CertificateRenderer', 'attachment_name']
