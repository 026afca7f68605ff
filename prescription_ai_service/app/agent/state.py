import datetime as dt
from typing import Any, Dict, List, Optional, TypedDict

from app.schemas.models import (
    AnalysisBundle,
    DuplicateReport,
    ExtractedPrescription,
    FullData,
    ReminderSchedule,
    ValidationResult,
)

class PipelineState(TypedDict, total=False):
    # inputs
    text: str
    start_date: Optional[dt.date]
    today: Optional[dt.date]
    allow_invalid: bool

    # stage outputs
    extracted: ExtractedPrescription
    extraction_method: str
    extraction_errors: List[str]
    validation: ValidationResult
    status: str                      # ACCEPTED | REJECTED
    prescription: ExtractedPrescription  # deduplicated
    rejected_names: List[str]
    duplicate_report: DuplicateReport
    reminders: ReminderSchedule
    full_data: FullData
    bundle: AnalysisBundle

    audit: List[Dict[str, Any]]
