"""
Receipt PDF rendering with reportlab.

The receipt lists the business, the customer, and the charge with any
refund. Labels go through gettext, so callers that activate the
customer's language get a localized receipt.
"""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils.html import escape
from django.utils.translation import gettext as _
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from toolkit.helpers import long_date

if TYPE_CHECKING:
    from billing.models import Charge


def _lines(text: str) -> str:
    return "<br/>".join(escape(line) for line in (text or "").splitlines())


def receipt_rows(charge: Charge) -> list[tuple[str, str]]:
    """Label / value pairs printed in the receipt table."""
    rows = [
        (_("Receipt number"), charge.processor_id),
        (_("Date"), long_date(charge.receipt_date())),
        (_("Account billed"), f"{charge.customer.customer_name} ({charge.customer.email})"),
        (_("Amount"), charge.amount_with_currency()),
    ]
    charged_to = charge.charged_to()
    if charged_to:
        rows.append((_("Charged to"), charged_to))
    if charge.refunded():
        rows.append((_("Amount refunded"), charge.amount_refunded_with_currency()))
    return rows


def render_receipt(charge: Charge) -> bytes:
    """
    Render the receipt for a charge.

    Returns:
        PDF document bytes
    """
    styles = getSampleStyleSheet()
    base = ParagraphStyle("base", parent=styles["Normal"], fontSize=10, leading=13)
    head = ParagraphStyle("head", parent=styles["Heading1"], spaceAfter=12)
    small = ParagraphStyle("small", parent=base, fontSize=8.5, textColor=colors.grey)

    story = [
        Paragraph(escape(settings.BILLING_BUSINESS_NAME), head),
    ]
    if settings.BILLING_BUSINESS_ADDRESS:
        story.append(Paragraph(_lines(settings.BILLING_BUSINESS_ADDRESS), base))
    story.append(Spacer(1, 12))
    story.append(Paragraph(f"<b>{escape(_('Receipt'))}</b>", base))
    story.append(Spacer(1, 8))

    table = Table(
        [[Paragraph(escape(label), base), Paragraph(escape(value), base)] for label, value in receipt_rows(charge)],
        colWidths=[140, 340],
    )
    table.setStyle(
        TableStyle(
            [
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("LINEBELOW", (0, 0), (-1, -1), 0.25, colors.lightgrey),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
            ]
        )
    )
    story.append(table)

    extra = charge.customer.extra_billing_info
    if extra:
        story.append(Spacer(1, 12))
        story.append(Paragraph(_lines(extra), base))

    if settings.BILLING_SUPPORT_EMAIL:
        story.append(Spacer(1, 18))
        story.append(
            Paragraph(
                escape(
                    _("Questions? Contact us at %(email)s.")
                    % {"email": settings.BILLING_SUPPORT_EMAIL}
                ),
                small,
            )
        )

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=letter,
        leftMargin=50,
        rightMargin=50,
        topMargin=45,
        bottomMargin=45,
        title=charge.receipt_filename(),
    )
    doc.build(story)
    return buffer.getvalue()
