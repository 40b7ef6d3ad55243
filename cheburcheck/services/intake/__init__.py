"""
Report Intake

Write path: reporter token + envelope + evidence batch → one atomic report.
"""

from .report_intake import ReportIntakeService
from .validation import validate_envelope, validate_evidence

__all__ = [
    "ReportIntakeService",
    "validate_envelope",
    "validate_evidence",
]
