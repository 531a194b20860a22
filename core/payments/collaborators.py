"""
Invoice and Email Collaborators
===============================

Adapters for the two outbound collaborators of the reconciliation
subsystem. Both are called only through the best-effort runner in
``core.payments.dispatch`` and may run on a worker thread, so they receive
plain snapshots and never touch the ORM.

- ``EmailSender``: Django mail framework + Django templates
  (``templates/payments/emails/<template>.html``).
- ``InvoiceRenderer``: draws a PDF invoice with reportlab into the
  configured Django file storage and returns where it was stored.

Author: DSP Development Team
Date: 2025-09-03
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import date
from email.utils import make_msgid
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import Storage, default_storage
from django.core.mail import EmailMultiAlternatives
from django.core.mail.utils import DNS_NAME
from django.template.loader import render_to_string
from django.utils.html import strip_tags
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

EMAIL_SUBJECTS = {
    "payment_success": "Payment Confirmed - Course Access Granted",
    "payment_failed": "Payment Failed",
    "bank_approval": "Bank Transfer Approved",
    "bank_rejection": "Bank Transfer Not Approved",
}


@dataclass(frozen=True)
class InvoiceLineItem:
    description: str
    quantity: int
    unit_price: int
    total: int


@dataclass(frozen=True)
class InvoiceData:
    invoice_number: str
    issued_on: date
    customer_name: str
    customer_email: str
    currency: str
    total: int
    payment_method: str
    transaction_id: str
    items: Sequence[InvoiceLineItem] = ()
    company: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RenderedInvoice:
    invoice_number: str
    public_path: str
    file_path: str
    content: bytes = b""
    filename: str = ""
    mimetype: str = "application/pdf"


@dataclass(frozen=True)
class EmailAttachment:
    filename: str
    content: bytes
    mimetype: str


@dataclass(frozen=True)
class SentEmail:
    message_id: str
    subject: str


class EmailSender:
    """
    Sends templated notification emails.

    ``send`` raises on transport failure; callers decide whether that matters.
    """

    template_dir = "payments/emails"

    def __init__(self, from_email: Optional[str] = None, connection=None):
        self.from_email = from_email or settings.DEFAULT_FROM_EMAIL
        self.connection = connection

    @staticmethod
    def subject_for(template_name: str) -> str:
        return EMAIL_SUBJECTS.get(template_name, template_name.replace("_", " ").title())

    def send(
        self,
        to: str,
        template_name: str,
        template_data: Dict[str, Any],
        attachments: Optional[List[EmailAttachment]] = None,
    ) -> SentEmail:
        subject = self.subject_for(template_name)
        html_body = render_to_string(f"{self.template_dir}/{template_name}.html", template_data)
        message_id = make_msgid(domain=getattr(settings, "EMAIL_MESSAGE_ID_DOMAIN", None) or str(DNS_NAME))

        message = EmailMultiAlternatives(
            subject=subject,
            body=strip_tags(html_body),
            from_email=self.from_email,
            to=[to],
            headers={"Message-ID": message_id},
            connection=self.connection,
        )
        message.attach_alternative(html_body, "text/html")
        for attachment in attachments or []:
            message.attach(attachment.filename, attachment.content, attachment.mimetype)

        message.send(fail_silently=False)
        logger.info("Sent %s email to %s (%s)", template_name, to, message_id)
        return SentEmail(message_id=message_id, subject=subject)


class InvoiceRenderer:
    """
    Draws a one-page A4 PDF invoice with reportlab and stores it.

    The PDF bytes are returned alongside the stored location so the
    dispatcher can attach them to the confirmation email without reading
    the file back.
    """

    page_size = A4
    margin = 20 * mm

    def __init__(self, storage: Optional[Storage] = None, directory: str = "invoices"):
        self.storage = storage or default_storage
        self.directory = directory

    def render(self, invoice: InvoiceData) -> RenderedInvoice:
        content = self.build_pdf(invoice)

        name = self.storage.save(
            f"{self.directory}/invoice-{invoice.invoice_number}.pdf", ContentFile(content)
        )
        try:
            file_path = self.storage.path(name)
        except NotImplementedError:
            # remote storages have no local path
            file_path = name

        logger.info("Rendered invoice %s to %s", invoice.invoice_number, name)
        return RenderedInvoice(
            invoice_number=invoice.invoice_number,
            public_path=self.storage.url(name),
            file_path=file_path,
            content=content,
            filename=os.path.basename(name),
            mimetype="application/pdf",
        )

    def build_pdf(self, invoice: InvoiceData) -> bytes:
        buffer = BytesIO()
        width, height = self.page_size
        left, right = self.margin, width - self.margin

        c = canvas.Canvas(buffer, pagesize=self.page_size)
        c.setTitle(f"Invoice {invoice.invoice_number}")
        c.setAuthor(invoice.company.get("name", ""))

        # Title
        y = height - 25 * mm
        c.setFont("Helvetica-Bold", 22)
        c.drawString(left, y, "INVOICE")

        # Company details, right aligned
        company_lines = [
            invoice.company.get(key)
            for key in ("name", "address", "email", "phone")
            if invoice.company.get(key)
        ]
        company_y = y
        for index, line in enumerate(company_lines):
            c.setFont("Helvetica-Bold" if index == 0 else "Helvetica", 10)
            c.drawRightString(right, company_y, line)
            company_y -= 14

        # Invoice meta
        y -= 30
        c.setFont("Helvetica", 10)
        meta = (
            ("Invoice number", invoice.invoice_number),
            ("Date", invoice.issued_on.strftime("%Y-%m-%d")),
            ("Payment method", invoice.payment_method),
            ("Transaction", invoice.transaction_id or "-"),
        )
        for label, value in meta:
            c.drawString(left, y, f"{label}:")
            c.drawString(left + 35 * mm, y, str(value))
            y -= 14

        # Customer
        y = min(y, company_y) - 16
        c.setFont("Helvetica-Bold", 11)
        c.drawString(left, y, "Billed to")
        c.setFont("Helvetica", 10)
        for line in (invoice.customer_name, invoice.customer_email):
            y -= 14
            c.drawString(left, y, line)

        # Items
        columns = (left, right - 70 * mm, right - 40 * mm, right)
        y -= 30
        c.setFont("Helvetica-Bold", 10)
        c.drawString(columns[0], y, "Description")
        c.drawRightString(columns[1], y, "Qty")
        c.drawRightString(columns[2], y, "Unit price")
        c.drawRightString(columns[3], y, "Total")
        y -= 6
        c.line(left, y, right, y)

        c.setFont("Helvetica", 10)
        for item in invoice.items:
            y -= 16
            if y < self.margin + 40:
                c.showPage()
                c.setFont("Helvetica", 10)
                y = height - self.margin
            c.drawString(columns[0], y, item.description)
            c.drawRightString(columns[1], y, str(item.quantity))
            c.drawRightString(columns[2], y, self._money(invoice.currency, item.unit_price))
            c.drawRightString(columns[3], y, self._money(invoice.currency, item.total))

        y -= 8
        c.line(left, y, right, y)
        y -= 18
        c.setFont("Helvetica-Bold", 11)
        c.drawRightString(columns[2], y, "Total paid")
        c.drawRightString(columns[3], y, self._money(invoice.currency, invoice.total))

        c.setFont("Helvetica", 9)
        c.drawString(left, self.margin, "Thank you for your purchase.")

        c.showPage()
        c.save()
        return buffer.getvalue()

    @staticmethod
    def _money(currency: str, amount: int) -> str:
        return f"{currency} {amount:,}"
