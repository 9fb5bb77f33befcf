"""
Snapshot exports of an invoice list.
The caller passes the rows it already holds; nothing here queries the store.
"""

import csv
import io
from typing import Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from docintake.pipeline.confidence import needs_review
from docintake.schemas.invoices import InvoiceResponse

EXPORT_COLUMNS = [
    "Invoice Date",
    "Billing Period Start",
    "Billing Period End",
    "Reading Type",
    "kWh Used",
    "Confidence",
    "Status",
]


def _row(invoice: InvoiceResponse) -> list:
    return [
        invoice.invoice_date.isoformat() if invoice.invoice_date else "",
        invoice.billing_period_start.isoformat() if invoice.billing_period_start else "",
        invoice.billing_period_end.isoformat() if invoice.billing_period_end else "",
        invoice.reading_type,
        str(invoice.kwh_used) if invoice.kwh_used is not None else "",
        str(invoice.overall_confidence) if invoice.overall_confidence is not None else "",
        invoice.document_status or "",
    ]


def export_invoices_csv(invoices: Sequence[InvoiceResponse]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_COLUMNS)
    for invoice in invoices:
        writer.writerow(_row(invoice))
    return output.getvalue()


def export_invoices_xlsx(invoices: Sequence[InvoiceResponse]) -> bytes:
    """Same columns as the CSV, as a formatted workbook."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Energy Invoices"

    header_font = Font(name="Arial", bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill("solid", fgColor="1F4E79")
    header_align = Alignment(horizontal="center", vertical="center", wrap_text=True)
    thin_border = Border(bottom=Side(style="thin", color="D9E2F3"))
    text_font = Font(name="Arial", size=10)
    low_font = Font(name="Arial", size=10, color="CC0000")

    for col_idx, header in enumerate(EXPORT_COLUMNS, 1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_align
    ws.freeze_panes = "A2"

    for row_idx, invoice in enumerate(invoices, 2):
        values = [
            invoice.invoice_date,
            invoice.billing_period_start,
            invoice.billing_period_end,
            invoice.reading_type,
            float(invoice.kwh_used) if invoice.kwh_used is not None else None,
            invoice.overall_confidence,
            invoice.document_status or "",
        ]
        for col_idx, value in enumerate(values, 1):
            c = ws.cell(row=row_idx, column=col_idx, value=value)
            c.font = text_font
            c.border = thin_border
            if col_idx <= 3:
                c.number_format = "DD/MM/YYYY"
        if needs_review(invoice.overall_confidence):
            ws.cell(row=row_idx, column=6).font = low_font

    col_widths = [14, 20, 20, 16, 14, 12, 14]
    for col_idx, width in enumerate(col_widths, 1):
        ws.column_dimensions[ws.cell(row=1, column=col_idx).column_letter].width = width
    ws.auto_filter.ref = ws.dimensions

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()
