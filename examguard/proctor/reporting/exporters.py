"""
Report Exporters - JSON, CSV and PDF renderings of a Report

Exporters only read the frozen Report; nothing here can change session state.
"""

import csv
import io
import json
import logging
import re

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas

from .report_builder import Report

logger = logging.getLogger(__name__)

# Events listed in the PDF before truncating
PDF_MAX_EVENTS = 30

COUNT_LABELS = [
    ("looking_away", "Looking Away Count"),
    ("no_face", "No Face Count"),
    ("multiple_faces", "Multiple Faces Count"),
    ("object_detected", "Object Detected Count")
]


def report_filename(report: Report, extension: str) -> str:
    """e.g. "Jane_Doe_proctoring_report.pdf" """
    name = re.sub(r"\s+", "_", report.candidate_name or "candidate")
    return f"{name}_proctoring_report.{extension}"


def export_json(report: Report) -> str:
    return json.dumps(report.to_dict(), indent=2)


def export_csv(report: Report) -> str:
    """
    Render the report as CSV.

    Summary rows (label, value) come first, then a blank row, then one
    row per event with the detail serialized as JSON.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\r\n")

    writer.writerow(["Candidate Name", report.candidate_name])
    writer.writerow(["Started At", report.started_at])
    writer.writerow(["Ended At", report.ended_at])
    writer.writerow(["Duration (ms)", report.duration_ms])
    writer.writerow(["Duration", report.duration_human])
    for kind, label in COUNT_LABELS:
        writer.writerow([label, report.counts_by_kind.get(kind, 0)])
    writer.writerow(["Integrity Score", report.integrity_score])
    writer.writerow(["Grade", report.grade])
    writer.writerow([])
    writer.writerow(["Event Timestamp", "Type", "Detail JSON"])

    for event in report.events:
        row = event.to_dict()
        writer.writerow([row["timestamp"], row["type"], json.dumps(row["detail"])])

    return buffer.getvalue()


def export_pdf(report: Report) -> bytes:
    """Render a one-to-few page PDF summary with the most recent events"""
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4
    margin = 0.6 * inch
    y = height - margin

    def line(text: str, font: str = "Helvetica", size: int = 11, leading: int = 14):
        nonlocal y
        if y < margin:
            c.showPage()
            y = height - margin
        c.setFont(font, size)
        c.drawString(margin, y, text)
        y -= leading

    line("Proctoring Report", "Helvetica-Bold", 18, 26)
    line(f"Candidate: {report.candidate_name}")
    line(f"Started: {report.started_at}")
    line(f"Ended: {report.ended_at}")
    line(f"Duration: {report.duration_human} ({report.duration_ms:.0f} ms)", leading=18)

    for kind, label in COUNT_LABELS:
        line(f"{label}: {report.counts_by_kind.get(kind, 0)}")

    y -= 6
    line(f"Integrity Score: {report.integrity_score} ({report.grade})", "Helvetica-Bold", 13, 20)
    line("Recent Events (most recent first):", size=10)

    max_chars = int((width - 2 * margin) / 5)
    for i, event in enumerate(report.events):
        if i >= PDF_MAX_EVENTS:
            line(f"...and {len(report.events) - PDF_MAX_EVENTS} more", size=9, leading=12)
            break
        row = event.to_dict()
        text = f"{row['timestamp']} - {row['type']} - {json.dumps(row['detail'])}"
        for start in range(0, len(text), max_chars):
            line(text[start:start + max_chars], size=9, leading=12)

    c.save()
    return buffer.getvalue()


EXPORTERS = {
    "json": (export_json, "application/json"),
    "csv": (export_csv, "text/csv"),
    "pdf": (export_pdf, "application/pdf")
}
