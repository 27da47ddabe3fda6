"""PDF summary report for one year ledger.

Layout (single US Letter document):
1) Title and tax year.
2) Filing profile, totals, and the headroom summary (or a note when the
   year's tax table is missing).
3) Income entries table.
4) Disclaimer footer.

Numbers come from the engine; this module only formats them.
"""

from __future__ import annotations

import io
import logging
import math
import tempfile
from pathlib import Path
from typing import List, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .engine import TableSource, compute_for_year
from .errors import ReportRenderError, TableUnavailable
from .models import FilingStatus, HeadroomResult, YearLedger

logger = logging.getLogger(__name__)

PAGE_MARGIN = 36
DISCLAIMER = "Planning estimates only — not tax or legal advice. Intended for personal use only."
SINGLE_FILER_NOTE = "Brackets come from the single-filer federal table for this year."


def format_currency(value: Optional[float]) -> str:
    """USD with cents and grouping; NaN/Infinity render as $0.00."""
    if value is None or not math.isfinite(value):
        value = 0.0
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def describe_bracket(result: HeadroomResult) -> str:
    upper = format_currency(result.bracket_upper) if result.bracket_upper is not None else "+"
    return f"{result.bracket_rate * 100:.4g}% ({format_currency(result.bracket_lower)} – {upper})"


def bracket_basis_note(ledger: YearLedger) -> Optional[str]:
    """Note shown when the chosen filing status differs from the bracket table's."""
    if ledger.profile is not None and ledger.profile.status != FilingStatus.SINGLE:
        return f"{ledger.profile.status.value} selected. {SINGLE_FILER_NOTE}"
    return None


def summary_rows(ledger: YearLedger, result: Optional[HeadroomResult]) -> List[List[str]]:
    """Label/value rows shown above the entries table."""
    rows: List[List[str]] = []
    if ledger.profile is not None:
        rows.append(["Filing Status", ledger.profile.status.value])
        rows.append(["Standard Deduction", format_currency(ledger.profile.standard_deduction)])
    rows.append(["Total Income", format_currency(ledger.total_income)])
    if result is not None:
        rows.append(["Taxable Income", format_currency(result.taxable_income)])
        rows.append(["Current Bracket", describe_bracket(result)])
        if result.dollars_to_next_bracket is not None:
            rows.append(["Headroom to Next Bracket", format_currency(result.dollars_to_next_bracket)])
        else:
            rows.append(["Headroom to Next Bracket", "Top bracket"])
    return rows


def render_report_pdf(ledger: YearLedger, result: Optional[HeadroomResult]) -> bytes:
    """Build the report and return the PDF bytes.

    `result` is None when the year's tax table is unavailable.
    """
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=LETTER,
        leftMargin=PAGE_MARGIN,
        rightMargin=PAGE_MARGIN,
        topMargin=PAGE_MARGIN,
        bottomMargin=PAGE_MARGIN,
        title=f"HeadroomCalc Report {ledger.year}",
    )
    styles = getSampleStyleSheet()
    story = []

    story.append(Paragraph("HeadroomCalc Report", styles["Title"]))
    story.append(Paragraph(f"Tax Year {ledger.year}", styles["Heading3"]))
    story.append(Spacer(1, 12))

    if ledger.profile is None:
        story.append(Paragraph("No filing profile set.", styles["Italic"]))

    summary = Table(summary_rows(ledger, result), colWidths=[180, 300], hAlign="LEFT")
    summary.setStyle(TableStyle([
        ("TEXTCOLOR", (0, 0), (0, -1), colors.grey),
        ("FONTNAME", (1, 0), (1, -1), "Helvetica-Bold"),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]))
    story.append(summary)

    note = bracket_basis_note(ledger)
    if result is not None and note:
        story.append(Spacer(1, 6))
        story.append(Paragraph(note, styles["Italic"]))

    if result is None:
        story.append(Spacer(1, 6))
        story.append(Paragraph("Tax table not available for this year.", styles["Italic"]))

    story.append(Spacer(1, 18))
    story.append(Paragraph(f"Income Entries ({len(ledger.entries)})", styles["Heading2"]))

    table_data = [["Name", "Source", "Amount"]] + [
        [e.display_name, e.source_type.value, format_currency(e.amount)]
        for e in ledger.entries
    ]
    t = Table(table_data, colWidths=[260, 140, 100], repeatRows=1, hAlign="LEFT")
    t.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#0e1117")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("ALIGN", (2, 0), (2, -1), "RIGHT"),
        ("LINEBELOW", (0, 0), (-1, -1), 0.25, colors.grey),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.whitesmoke]),
    ]))
    story.append(t)

    story.append(Spacer(1, 24))
    story.append(Paragraph(DISCLAIMER, styles["Italic"]))

    try:
        doc.build(story)
    except Exception as e:
        logger.exception("Failed to render report for %s", ledger.year)
        raise ReportRenderError(f"Could not render PDF: {e}") from e
    return buf.getvalue()


def report_filename(year: int) -> str:
    return f"HeadroomCalc_Report_{year}.pdf"


def build_report(ledger: YearLedger, provider: TableSource) -> bytes:
    """Compute headroom (if the table exists) and render the report."""
    try:
        result: Optional[HeadroomResult] = compute_for_year(ledger, provider)
    except TableUnavailable as e:
        logger.warning("Report for %s without headroom: %s", ledger.year, e)
        result = None
    return render_report_pdf(ledger, result)


def export_pdf(ledger: YearLedger, provider: TableSource, out_dir: Optional[str] = None) -> Path:
    """Write the report to `out_dir` (temp dir by default) and return its path."""
    target = Path(out_dir or tempfile.gettempdir()) / report_filename(ledger.year)
    target.write_bytes(build_report(ledger, provider))
    return target
