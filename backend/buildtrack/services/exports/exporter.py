import datetime as dt
from pathlib import Path
import pandas as pd
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from reportlab.lib.units import mm

from buildtrack.core.config import settings
from buildtrack.services.financials.summary import TREND_CATEGORIES


def _fmt_pct(v) -> str:
    return "unbounded" if v is None else f"{v:.2f} %"


def export_phase_financials_xlsx(report: dict, out_path: Path):
    # report: output of get_phase_financial_summary
    s = report["summary"]
    df_summary = pd.DataFrame(
        [
            ("Budget", s["budget_total"]),
            ("Actual", s["actual_total"]),
            ("Committed", s["committed_total"]),
            ("Estimated", s["estimated_total"]),
            ("Remaining", s["remaining"]),
            ("Variance", s["variance"]),
            ("Variance %", s["variance_percentage"]),
            ("Utilization %", s["utilization_percentage"]),
            ("Status", s["budget_status"]),
        ],
        columns=["metric", "value"],
    )
    df_categories = pd.DataFrame(report["category_breakdown"], columns=["category", "total", "count"])
    df_trends = pd.DataFrame(report["trends"], columns=["month", *TREND_CATEGORIES, "total"])
    df_committed = pd.DataFrame(
        [{"source": k, "amount": v} for k, v in report["committed_breakdown"].items()], columns=["source", "amount"]
    )
    df_variance = pd.DataFrame(
        [{"category": k, **v} for k, v in report["variance_by_category"].items()],
        columns=["category", "budgeted", "actual", "variance", "variance_percentage", "budget_status"],
    )

    out_path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(out_path, engine="xlsxwriter") as w:
        df_summary.to_excel(w, index=False, sheet_name="summary")
        df_categories.to_excel(w, index=False, sheet_name="categories")
        df_committed.to_excel(w, index=False, sheet_name="committed")
        df_variance.to_excel(w, index=False, sheet_name="variance")
        df_trends.to_excel(w, index=False, sheet_name="trends")
    return out_path


def export_phase_financials_pdf(report: dict, out_path: Path):
    out_path.parent.mkdir(parents=True, exist_ok=True)
    s = report["summary"]
    c = canvas.Canvas(str(out_path), pagesize=A4)
    width, height = A4
    y = height - 20*mm
    c.setFont("Helvetica-Bold", 14)
    c.drawString(20*mm, y, f"Phase financial report: {report['phase_code']} {report['phase_name']}")
    y -= 10*mm
    c.setFont("Helvetica", 11)
    lines = [
        f"Phase ID: {report['phase_id']}",
        f"Budget: {s['budget_total']:.2f}",
        f"Actual: {s['actual_total']:.2f}",
        f"Committed: {s['committed_total']:.2f}",
        f"Estimated: {s['estimated_total']:.2f}",
        f"Remaining: {s['remaining']:.2f}",
        f"Variance: {s['variance']:.2f} ({_fmt_pct(s['variance_percentage'])})",
        f"Utilization: {_fmt_pct(s['utilization_percentage'])}",
        f"Status: {s['budget_status']}",
    ]
    for ln in lines:
        c.drawString(20*mm, y, ln)
        y -= 7*mm

    y -= 5*mm
    c.setFont("Helvetica-Bold", 12)
    c.drawString(20*mm, y, "By category")
    y -= 8*mm
    c.setFont("Helvetica", 11)
    for row in report["category_breakdown"]:
        c.drawString(20*mm, y, f"{row['category']}: {row['total']:.2f} ({row['count']})")
        y -= 7*mm
    c.showPage()
    c.save()
    return out_path

def default_export_path(prefix: str, ext: str) -> Path:
    ts = dt.datetime.now(dt.timezone.utc).strftime("%Y%m%d_%H%M%S")
    return Path(settings.EXPORT_DIR) / f"{prefix}_{ts}.{ext}"
