"""Report building and export"""

from .report_builder import Report, build_report, ms_to_human
from .exporters import EXPORTERS, export_csv, export_json, export_pdf, report_filename

__all__ = [
    "Report",
    "build_report",
    "ms_to_human",
    "EXPORTERS",
    "export_csv",
    "export_json",
    "export_pdf",
    "report_filename"
]
