from __future__ import annotations

from pathlib import Path
from typing import Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    BaseDocTemplate,
    Frame,
    KeepTogether,
    PageTemplate,
    Paragraph,
    Spacer,
    Table,
    TableStyle,
)
from reportlab.platypus.flowables import Flowable

from attest.core.models import RemediationItem, RemediationPlan, Severity
from attest.core.version import get_attest_version


PRIMARY = colors.HexColor("#0A1628")
SECONDARY = colors.HexColor("#2E5BFF")
SEVERITY_COLORS = {
    Severity.CRITICAL: colors.HexColor("#F04438"),
    Severity.HIGH: colors.HexColor("#F79009"),
    Severity.MEDIUM: colors.HexColor("#FDB022"),
    Severity.LOW: colors.HexColor("#5A82FF"),
    Severity.INFORMATIONAL: colors.HexColor("#475467"),
}


def get_plan_styles() -> dict:
    """Return the paragraph styles used by the plan PDF."""
    stylesheet = getSampleStyleSheet()
    styles: dict[str, object] = {
        "Title": ParagraphStyle(
            "PlanTitle",
            parent=stylesheet["Title"],
            fontName="Helvetica-Bold",
            fontSize=22,
            leading=26,
            textColor=PRIMARY,
        ),
        "Heading1": ParagraphStyle(
            "Heading1",
            parent=stylesheet["Heading1"],
            fontName="Helvetica-Bold",
            fontSize=16,
            leading=20,
            textColor=PRIMARY,
            spaceAfter=8,
        ),
        "Heading2": ParagraphStyle(
            "Heading2",
            parent=stylesheet["Heading2"],
            fontName="Helvetica-Bold",
            fontSize=12,
            leading=15,
            textColor=PRIMARY,
            spaceAfter=4,
        ),
        "BodyText": ParagraphStyle(
            "BodyText",
            parent=stylesheet["BodyText"],
            fontName="Helvetica",
            fontSize=10,
            leading=13,
            spaceAfter=4,
        ),
        "TableBody": ParagraphStyle(
            "TableBody",
            parent=stylesheet["BodyText"],
            fontName="Helvetica",
            fontSize=8,
            leading=10,
        ),
    }
    for severity, color in SEVERITY_COLORS.items():
        styles[severity.value] = ParagraphStyle(
            severity.value,
            parent=stylesheet["BodyText"],
            fontName="Helvetica-Bold",
            fontSize=10,
            textColor=color,
        )
    return styles


def generate_plan_pdf(plan: RemediationPlan, output_path: str | Path, footer_text: Optional[str] = None) -> Path:
    """Render a remediation plan to PDF.

    Args:
        plan (RemediationPlan): Plan to render.
        output_path (str | Path): Destination file; parent directories are created.
        footer_text (str | None): Footer label, "Confidential" by default.

    Returns:
        Path: Path to the generated PDF.
    """
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    styles = get_plan_styles()
    report_date = plan.created_at.strftime("%Y-%m-%d")

    doc = BaseDocTemplate(
        str(path),
        pagesize=letter,
        leftMargin=inch,
        rightMargin=inch,
        topMargin=inch,
        bottomMargin=inch,
        title=f"Remediation Plan {plan.plan_id}",
    )
    frame = Frame(doc.leftMargin, doc.bottomMargin, doc.width, doc.height, id="normal")
    doc.addPageTemplates([PageTemplate(id="Body", frames=[frame], onPage=_page_decorator(plan, report_date, footer_text))])

    story: list[Flowable] = []
    story.extend(create_summary_section(plan, styles))
    story.extend(create_item_section("Automated Remediation", plan.automated_items, styles))
    story.extend(create_item_section("Manual Remediation", plan.manual_items, styles))
    doc.build(story)
    return path


def _page_decorator(plan: RemediationPlan, report_date: str, footer_text: Optional[str]):
    def handler(canvas, doc):
        del doc
        canvas.saveState()
        canvas.setStrokeColor(SECONDARY)
        canvas.setLineWidth(1)
        canvas.line(inch, letter[1] - inch + 6, letter[0] - inch, letter[1] - inch + 6)
        canvas.setFont("Helvetica", 9)
        canvas.setFillColor(PRIMARY)
        canvas.drawString(inch, letter[1] - inch + 12, "Compliance Remediation Plan")
        canvas.drawRightString(letter[0] - inch, letter[1] - inch + 12, f"Page {canvas.getPageNumber()}")
        canvas.setStrokeColor(colors.lightgrey)
        canvas.line(inch, inch - 12, letter[0] - inch, inch - 12)
        canvas.setFont("Helvetica", 8)
        canvas.setFillColor(colors.grey)
        canvas.drawString(inch, inch - 24, footer_text or "Confidential")
        canvas.drawCentredString(letter[0] / 2, inch - 24, f"Plan: {plan.plan_id}")
        canvas.drawRightString(letter[0] - inch, inch - 24, f"Date: {report_date}")
        canvas.restoreState()

    return handler


def create_summary_section(plan: RemediationPlan, styles: dict) -> list[Flowable]:
    story: list[Flowable] = [
        Paragraph("Remediation Plan", styles["Title"]),
        Paragraph(escape(plan.scope.describe()), styles["BodyText"]),
        Paragraph(f"Attest version {escape(get_attest_version())}", styles["BodyText"]),
        Spacer(1, 0.2 * inch),
        Paragraph("Executive Summary", styles["Heading1"]),
        Paragraph(escape(plan.executive_summary), styles["BodyText"]),
        Spacer(1, 0.1 * inch),
    ]
    rows = [
        ["Metric", "Value"],
        ["Findings", str(plan.total_findings)],
        ["Priority", plan.priority.value if plan.priority else "None"],
        ["Effort", f"{plan.effort} ({plan.effort_minutes} min)"],
        ["Automated items", str(len(plan.automated_items))],
        ["Manual items", str(len(plan.manual_items))],
        ["Projected risk reduction", f"{plan.projected_risk_reduction:.0%}"],
    ]
    story.append(_styled_table(rows, [2.4 * inch, 2.4 * inch]))

    if plan.timeline:
        story.append(Spacer(1, 0.2 * inch))
        story.append(Paragraph("Timeline", styles["Heading2"]))
        phase_rows = [["Phase", "Items", "Start (min)", "Duration (min)"]]
        for phase in plan.timeline:
            phase_rows.append(
                [phase.name, str(len(phase.finding_ids)), str(phase.start_offset_minutes), str(phase.duration_minutes)]
            )
        story.append(_styled_table(phase_rows, [2.6 * inch, 0.8 * inch, 1.1 * inch, 1.3 * inch]))
    return story


def create_item_section(title: str, items: list[RemediationItem], styles: dict) -> list[Flowable]:
    if not items:
        return []
    story: list[Flowable] = [Spacer(1, 0.25 * inch), Paragraph(title, styles["Heading1"])]
    rows: list[list] = [["Severity", "Control", "Title", "Effort"]]
    for item in items:
        rows.append(
            [
                Paragraph(item.severity.value, styles[item.severity.value]),
                item.control_id or "n/a",
                Paragraph(escape(item.title), styles["TableBody"]),
                f"{item.effort} / {item.effort_minutes} min",
            ]
        )
    story.append(_styled_table(rows, [0.9 * inch, 0.8 * inch, 3.0 * inch, 1.3 * inch]))
    for item in items:
        story.append(_item_block(item, styles))
    return story


def _item_block(item: RemediationItem, styles: dict) -> KeepTogether:
    content: list[Flowable] = [
        Spacer(1, 0.1 * inch),
        Paragraph(escape(f"{item.control_id or item.finding_id}: {item.title}"), styles["Heading2"]),
        Paragraph(escape(f"Resource: {item.resource_id}"), styles["TableBody"]),
    ]
    for step in item.steps:
        content.append(Paragraph(escape(f"{step.order}. {step.description}"), styles["BodyText"]))
    if item.dependencies:
        content.append(Paragraph(escape(f"Complete first: {', '.join(item.dependencies)}"), styles["TableBody"]))
    return KeepTogether(content)


def _styled_table(rows: list[list], col_widths: list[float]) -> Table:
    table = Table(rows, hAlign="LEFT", colWidths=col_widths, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), SECONDARY),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 1), (-1, -1), 9),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.lightgrey),
                ("BACKGROUND", (0, 1), (-1, -1), colors.whitesmoke),
            ]
        )
    )
    return table
