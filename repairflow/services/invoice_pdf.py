"""
PDF Generator for Repair Invoices
Renders a ticket (service line, parts, payments) into a one-document A4 invoice
"""

from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib import colors
from reportlab.lib.colors import HexColor
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from io import BytesIO
from typing import Dict, List
from xml.sax.saxutils import escape

from repairflow.core.logging_config import logger
from repairflow.models.ticket import Ticket
from repairflow.services import settings_service
from repairflow.utils.money import format_currency, round_money

INVOICE_SETTING_KEYS = (
    "company_name",
    "company_address",
    "company_phone",
    "company_email",
    "invoice_prefix",
    "invoice_terms",
    "invoice_footer",
    "show_terms_on_invoice",
    "currency_symbol",
    "currency_position",
)

HEADER_BG = HexColor("#1f2937")
GRID = HexColor("#d1d5db")


async def load_invoice_company(db: AsyncSession) -> Dict[str, str]:
    return await settings_service.get_settings_map(db, INVOICE_SETTING_KEYS)


def invoice_number(ticket: Ticket, company: Dict[str, str]) -> str:
    return f"{company.get('invoice_prefix') or ''}{ticket.ticket_number}"


class InvoicePDFGenerator:
    """Generate the customer invoice for a repair ticket"""

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        self.styles.add(ParagraphStyle(
            name='CompanyName',
            parent=self.styles['Title'],
            fontSize=20,
            textColor=HexColor('#111827'),
            spaceAfter=4,
            alignment=0,
            fontName='Helvetica-Bold'
        ))
        self.styles.add(ParagraphStyle(
            name='Small',
            parent=self.styles['Normal'],
            fontSize=9,
            textColor=HexColor('#4b5563'),
            leading=12
        ))
        self.styles.add(ParagraphStyle(
            name='SectionTitle',
            parent=self.styles['Normal'],
            fontSize=11,
            textColor=HexColor('#111827'),
            spaceBefore=10,
            spaceAfter=4,
            fontName='Helvetica-Bold'
        ))
        self.styles.add(ParagraphStyle(
            name='RightAligned',
            parent=self.styles['Normal'],
            alignment=TA_RIGHT
        ))

    def _money(self, amount: float, company: Dict[str, str]) -> str:
        return format_currency(
            amount,
            symbol=company.get("currency_symbol") or "$",
            position=company.get("currency_position") or "before",
        )

    def _text(self, value) -> str:
        return escape(str(value)) if value not in (None, "") else "-"

    def _header(self, ticket: Ticket, company: Dict[str, str]) -> List:
        contact = "<br/>".join(
            self._text(company[key])
            for key in ("company_address", "company_phone", "company_email")
            if company.get(key)
        )
        left = [
            Paragraph(self._text(company.get("company_name") or "RepairFlow"), self.styles['CompanyName']),
            Paragraph(contact, self.styles['Small']),
        ]
        right = [
            Paragraph(f"<b>INVOICE</b> {self._text(invoice_number(ticket, company))}", self.styles['RightAligned']),
            Paragraph(f"Date: {datetime.utcnow().strftime('%d %b %Y')}", self.styles['RightAligned']),
            Paragraph(f"Ticket: {self._text(ticket.ticket_number)}", self.styles['RightAligned']),
        ]
        table = Table([[left, right]], colWidths=[3.6 * inch, 2.9 * inch])
        table.setStyle(TableStyle([('VALIGN', (0, 0), (-1, -1), 'TOP')]))
        return [table, Spacer(1, 0.25 * inch)]

    def _parties(self, ticket: Ticket) -> List:
        customer = ticket.customer
        customer_block = "<br/>".join([
            f"<b>{self._text(customer.name if customer else None)}</b>",
            self._text(customer.phone if customer else None),
            self._text(customer.email if customer else None),
        ])
        device = " ".join(filter(None, [ticket.device_brand, ticket.device_model]))
        device_block = "<br/>".join([
            f"<b>{self._text(device)}</b>",
            f"Issue: {self._text(ticket.device_issue)}",
            f"Warranty: {ticket.warranty_days} days" if ticket.warranty_days else "",
        ])
        table = Table(
            [
                [Paragraph("Bill To", self.styles['SectionTitle']), Paragraph("Device", self.styles['SectionTitle'])],
                [Paragraph(customer_block, self.styles['Normal']), Paragraph(device_block, self.styles['Normal'])],
            ],
            colWidths=[3.25 * inch, 3.25 * inch],
        )
        table.setStyle(TableStyle([('VALIGN', (0, 0), (-1, -1), 'TOP')]))
        return [table, Spacer(1, 0.25 * inch)]

    def _items(self, ticket: Ticket, company: Dict[str, str]) -> List:
        total = ticket.total_price
        service_amount = round_money(total - ticket.parts_cost)

        rows = [["Description", "Qty", "Unit Price", "Total"]]
        rows.append([
            Paragraph(f"Repair service: {self._text(ticket.device_issue)}", self.styles['Normal']),
            "1",
            self._money(service_amount, company),
            self._money(service_amount, company),
        ])
        for line in ticket.parts:
            unit_price = float(line.part.unit_price or 0) if line.part else 0.0
            rows.append([
                Paragraph(self._text(line.part.name if line.part else None), self.styles['Normal']),
                str(line.quantity),
                self._money(unit_price, company),
                self._money(line.line_cost, company),
            ])

        table = Table(rows, colWidths=[3.4 * inch, 0.6 * inch, 1.25 * inch, 1.25 * inch], repeatRows=1)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), HEADER_BG),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('GRID', (0, 0), (-1, -1), 0.5, GRID),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
            ('TOPPADDING', (0, 0), (-1, -1), 6),
        ]))
        return [table, Spacer(1, 0.2 * inch)]

    def _totals(self, ticket: Ticket, company: Dict[str, str]) -> List:
        total = ticket.total_price
        paid = round_money(sum(float(p.amount or 0) for p in ticket.payments))
        rows = [
            ["Subtotal", self._money(total, company)],
            ["Paid", self._money(paid, company)],
            ["Balance Due", self._money(max(round_money(total - paid), 0.0), company)],
        ]
        table = Table(rows, colWidths=[1.5 * inch, 1.25 * inch], hAlign='RIGHT')
        table.setStyle(TableStyle([
            ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
            ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
            ('LINEABOVE', (0, -1), (-1, -1), 1, HEADER_BG),
        ]))
        return [table, Spacer(1, 0.25 * inch)]

    def _payments(self, ticket: Ticket, company: Dict[str, str]) -> List:
        if not ticket.payments:
            return []
        rows = [["Date", "Number", "Method", "Amount"]]
        for payment in ticket.payments:
            rows.append([
                payment.created_at.strftime('%d %b %Y') if payment.created_at else "-",
                payment.payment_number,
                payment.method.value.title() if payment.method else "-",
                self._money(float(payment.amount or 0), company),
            ])
        table = Table(rows, colWidths=[1.3 * inch, 2.2 * inch, 1.2 * inch, 1.8 * inch])
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('ALIGN', (-1, 0), (-1, -1), 'RIGHT'),
            ('LINEBELOW', (0, 0), (-1, 0), 0.5, GRID),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
        ]))
        return [Paragraph("Payment History", self.styles['SectionTitle']), table, Spacer(1, 0.25 * inch)]

    def _terms_and_footer(self, company: Dict[str, str]) -> List:
        story = []
        show_terms = (company.get("show_terms_on_invoice") or "").lower() in settings_service.TRUE_VALUES
        if show_terms and company.get("invoice_terms"):
            story.append(Paragraph("Terms", self.styles['SectionTitle']))
            story.append(Paragraph(self._text(company["invoice_terms"]), self.styles['Small']))
            story.append(Spacer(1, 0.2 * inch))
        if company.get("invoice_footer"):
            story.append(Paragraph(self._text(company["invoice_footer"]), self.styles['Small']))
        return story

    def generate_invoice(self, ticket: Ticket, company: Dict[str, str]) -> bytes:
        """
        Build the invoice PDF.

        Args:
            ticket: Ticket with customer, parts and payments loaded
            company: Setting values (see INVOICE_SETTING_KEYS)

        Returns:
            bytes: the PDF document
        """
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=54,
            leftMargin=54,
            topMargin=54,
            bottomMargin=54,
            title=f"Invoice {invoice_number(ticket, company)}",
        )

        story = []
        story.extend(self._header(ticket, company))
        story.extend(self._parties(ticket))
        story.extend(self._items(ticket, company))
        story.extend(self._totals(ticket, company))
        story.extend(self._payments(ticket, company))
        story.extend(self._terms_and_footer(company))

        doc.build(story)
        logger.info(f"Generated invoice PDF for ticket {ticket.ticket_number}")
        return buffer.getvalue()


# Singleton instance
invoice_generator = InvoicePDFGenerator()
