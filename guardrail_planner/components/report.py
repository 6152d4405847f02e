import io
from typing import Dict, List, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import (
    Image,
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

HEADER_COLOR = colors.HexColor("#E6ECE9")


def _table(rows: List[List[str]]) -> Table:
    table = Table(rows, hAlign="LEFT")
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ]
        )
    )
    return table


def _flatten(prefix: str, obj, rows: List[List[str]]) -> None:
    if isinstance(obj, dict):
        for k, v in obj.items():
            key = f"{prefix}{k}" if prefix else k
            _flatten(f"{key}.", v, rows)
    elif isinstance(obj, list):
        for i, v in enumerate(obj):
            _flatten(f"{prefix}{i}.", v, rows)
    elif obj is not None:
        rows.append([prefix[:-1], str(obj)])


def _money(x: float) -> str:
    return f"${x:,.0f}"


def build_pdf(scenario: dict, report: dict, charts: Optional[Dict] = None) -> bytes:
    """Create a PDF report of the inputs, the guardrail result and any charts.

    ``charts`` maps a title to a Plotly figure; rendering them needs the
    kaleido image engine.
    """
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=letter, leftMargin=36, rightMargin=36)
    styles = getSampleStyleSheet()
    story = [Paragraph("Guardrail Retirement Report", styles["Title"]), Spacer(1, 12)]

    # ---- Result ----
    story.append(Paragraph("Result", styles["Heading2"]))
    thresholds = report.get("guardrail_thresholds", {})
    summary = [
        ["Measure", "Value"],
        ["Probability of success", f"{report.get('probability_of_success', 0.0):.2f}%"],
        ["Guardrail status", str(report.get("guardrail_status", "")).replace("_", " ")],
        ["Guardrail band", f"{thresholds.get('lower', 0):g}% - {thresholds.get('upper', 0):g}% "
                           f"(target {thresholds.get('target', 0):g}%)"],
        ["Desired spending", _money(report.get("desired_spending", 0.0))],
        ["Recommended spending", _money(report.get("recommended_spending", 0.0))],
        ["Change", f"{_money(report.get('spending_change_amount', 0.0))} "
                   f"({report.get('spending_change_percentage', 0.0):+.2f}%)"],
        ["Withdrawal rate", f"{report.get('current_withdrawal_rate', 0.0):.2f}%"],
        ["Return model", str(report.get("model", "standard"))],
    ]
    story.extend([_table(summary), Spacer(1, 8)])
    story.append(Paragraph(report.get("interpretation", ""), styles["BodyText"]))
    story.append(Spacer(1, 12))

    p = report.get("monte_carlo", {}).get("percentiles", {})
    if p:
        story.append(Paragraph("Final portfolio value", styles["Heading3"]))
        keys = ["p10", "p25", "p50", "p75", "p90"]
        story.extend([_table([keys, [_money(p.get(k, 0.0)) for k in keys]]), Spacer(1, 12)])

    # ---- Input data ----
    story.append(Paragraph("Input Data", styles["Heading2"]))
    rows = [["Field", "Value"]]
    _flatten("", scenario, rows)
    story.extend([_table(rows), Spacer(1, 12)])

    # ---- Cash flow ----
    timeline = report.get("cashflow_timeline", [])
    if timeline:
        story.extend([PageBreak(), Paragraph("Planned Cash Flow", styles["Heading2"])])
        rows = [["Age", "Spending", "Income", "Expenses", "Net withdrawal"]]
        for row in timeline:
            rows.append([
                str(row["age"]),
                _money(row["spending"]),
                _money(row["income"]),
                _money(row["expenses"]),
                _money(row["net_withdrawal"]),
            ])
        story.append(_table(rows))

    # ---- Charts ----
    for title, fig in (charts or {}).items():
        story.extend([PageBreak(), Paragraph(title, styles["Heading2"])])
        img = fig.to_image(format="png", scale=2)
        story.append(Image(io.BytesIO(img), width=480, height=300))
        story.append(Spacer(1, 12))

    doc.build(story)
    pdf_bytes = buffer.getvalue()
    buffer.close()
    return pdf_bytes
