"""
Report Export

Turns a date range of transactions into report rows, a CSV file for
spreadsheets, and a PDF table for printing.

DESIGN DECISION: Dates are rendered DD/MM/YYYY by slicing the ISO
string, never by parsing it into a datetime, so no time zone can
shift a transaction into the previous day.

DESIGN DECISION: Amounts use a decimal comma for pt-BR spreadsheets.
Every CSV data field is quoted so the comma never splits a value.
"""

import csv
import io
from decimal import Decimal
from typing import Iterable
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from finance_tracker.ledger.aggregation import DateLike, _as_iso
from finance_tracker.models.ledger import ReportRow, Transaction, TransactionType


REPORT_HEADERS = ["Data", "Descrição", "Tipo", "Categoria", "Valor"]
REPORT_TITLE = "Relatório Financeiro"


def format_date_br(iso_date: str) -> str:
    """`2025-03-07` -> `07/03/2025`."""
    return f"{iso_date[8:10]}/{iso_date[5:7]}/{iso_date[0:4]}"


def format_decimal_br(value: Decimal) -> str:
    """Two decimals, dot thousands separator, decimal comma: `1.234,50`."""
    text = f"{value:,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_brl(value: Decimal) -> str:
    """Currency display, e.g. `R$ 1.234,50` or `-R$ 10,00`."""
    sign = "-" if value < 0 else ""
    return f"{sign}R$ {format_decimal_br(abs(value))}"


def signed_amount(transaction: Transaction) -> str:
    """`+ 12,50` for income, `- 12,50` for everything else."""
    prefix = "+" if transaction.type == TransactionType.INCOME else "-"
    return f"{prefix} {transaction.amount:.2f}".replace(".", ",")


def report_filename(start_date: DateLike, end_date: DateLike, extension: str) -> str:
    return f"relatorio_financeiro_{_as_iso(start_date)}_{_as_iso(end_date)}.{extension}"


def build_report_rows(
    transactions: Iterable[Transaction],
    newest_first: bool = True,
) -> list[ReportRow]:
    """Format transactions for a report, newest first unless asked otherwise."""
    ordered = list(transactions)
    if newest_first:
        ordered = sorted(ordered, key=lambda t: t.date, reverse=True)

    return [
        ReportRow(
            date=format_date_br(t.date),
            description=t.description,
            type_label=t.type.label,
            category=t.category.value,
            amount=signed_amount(t),
        )
        for t in ordered
    ]


def export_csv(rows: list[ReportRow]) -> str:
    """
    CSV text with a plain header line and fully quoted data rows.

    Quotes inside descriptions are doubled, as spreadsheets expect.
    """
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(REPORT_HEADERS)

    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for row in rows:
        writer.writerow([row.date, row.description, row.type_label, row.category, row.amount])

    return buffer.getvalue().rstrip("\n")


# Landscape A4 leaves 267mm between the margins
PDF_COLUMN_WIDTHS = [25 * mm, 95 * mm, 40 * mm, 70 * mm, 30 * mm]
PDF_HEADER_COLOR = colors.HexColor("#2563EB")
PDF_STRIPE_COLOR = colors.HexColor("#F1F5F9")
PDF_GRID_COLOR = colors.HexColor("#CBD5E1")


def report_period(start_date: DateLike, end_date: DateLike) -> str:
    return f"Período: {format_date_br(_as_iso(start_date))} a {format_date_br(_as_iso(end_date))}"


def render_pdf(
    rows: list[ReportRow],
    start_date: DateLike,
    end_date: DateLike,
) -> bytes:
    """
    Printable report: title, period line and the rows as a table.

    The header row repeats on every page. Descriptions and categories
    wrap inside their cells; the amount column is right-aligned.

    Returns:
        The PDF document bytes
    """
    styles = getSampleStyleSheet()
    cell_style = ParagraphStyle("ReportCell", parent=styles["BodyText"], fontSize=9, leading=11)

    buffer = io.BytesIO()
    document = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        title=REPORT_TITLE,
        leftMargin=15 * mm,
        rightMargin=15 * mm,
        topMargin=15 * mm,
        bottomMargin=15 * mm,
    )

    story = [
        Paragraph(REPORT_TITLE, styles["Title"]),
        Paragraph(escape(report_period(start_date, end_date)), styles["Normal"]),
        Spacer(1, 6 * mm),
    ]

    if not rows:
        story.append(Paragraph("Nenhuma transação no período.", styles["Normal"]))
    else:
        data = [REPORT_HEADERS] + [
            [
                row.date,
                Paragraph(escape(row.description), cell_style),
                row.type_label,
                Paragraph(escape(row.category), cell_style),
                row.amount,
            ]
            for row in rows
        ]
        table = Table(data, colWidths=PDF_COLUMN_WIDTHS, repeatRows=1)
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), PDF_HEADER_COLOR),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("ALIGN", (-1, 0), (-1, -1), "RIGHT"),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, PDF_STRIPE_COLOR]),
            ("GRID", (0, 0), (-1, -1), 0.25, PDF_GRID_COLOR),
        ]))
        story.append(table)

    document.build(story)
    return buffer.getvalue()
