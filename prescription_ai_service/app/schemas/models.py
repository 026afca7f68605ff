import datetime as dt
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field

SpanKind = Literal["medication", "appointment", "instruction", "preamble", "unclassified"]
ReminderKind = Literal["medication", "appointment"]
DataSize = Literal["small", "medium", "large"]
Level = Literal["info", "warning"]
Priority = Literal["high", "medium", "low"]
AnalysisStatus = Literal["ACCEPTED", "REJECTED"]
ReviewCode = Literal["default_schedule", "spread_frequency"]

SAFETY_NOTE = (
    "Không phải lời khuyên y khoa. Ứng dụng chỉ sắp xếp thông tin có trong đơn thuốc; "
    "luôn làm theo chỉ định của bác sĩ/dược sĩ."
)

# ---------------------------
# Extracted records
# ---------------------------

class Medication(BaseModel):
    name: str = Field(..., min_length=1)
    dosage_text: Optional[str] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    frequency_text: Optional[str] = None
    frequency_count: Optional[int] = Field(default=None, description="Times per day parsed from frequency_text")
    timing: Optional[List[str]] = Field(default=None, description="Ordered time-of-day tokens, e.g. ['sáng', 'tối']")
    duration_text: Optional[str] = None
    instructions: Optional[List[str]] = None
    source_span_index: Optional[int] = Field(default=None, description="Span the record came from; None for manual entries")
    raw_text: Optional[str] = None

class Appointment(BaseModel):
    type: str = "Tái khám"
    date: Optional[str] = Field(default=None, description="YYYY-MM-DD")
    time: Optional[str] = Field(default=None, description="HH:MM 24-hour")
    location: Optional[str] = None
    doctor: Optional[str] = None
    notes: Optional[str] = None
    source_span_index: Optional[int] = None

class ExtractedPrescription(BaseModel):
    medications: List[Medication] = Field(default_factory=list)
    appointments: List[Appointment] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)
    span_count: int = 0

# ---------------------------
# Validation / duplicates
# ---------------------------

class ValidationResult(BaseModel):
    is_valid: bool = False
    confidence: int = Field(default=0, ge=0, le=100)
    reasons: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

class DuplicateEntry(BaseModel):
    kind: Literal["medication", "appointment"]
    key: List[Optional[str]]
    name: str
    original_index: int
    duplicate_index: int

class DuplicateSection(BaseModel):
    total: int = 0
    unique: int = 0
    duplicates: List[DuplicateEntry] = Field(default_factory=list)

class DuplicateReport(BaseModel):
    medications: DuplicateSection = Field(default_factory=DuplicateSection)
    appointments: DuplicateSection = Field(default_factory=DuplicateSection)
    instructions_removed: int = 0

    @property
    def total_duplicates(self) -> int:
        return (
            len(self.medications.duplicates)
            + len(self.appointments.duplicates)
            + self.instructions_removed
        )

# ---------------------------
# Reminders
# ---------------------------

class ReminderInstance(BaseModel):
    id: str
    kind: ReminderKind
    ref_name: str
    date: dt.date
    time: str  # "HH:MM"
    is_default_schedule: bool = False
    enabled: bool = True
    dosage_text: Optional[str] = None
    title: str = ""
    message: str = ""

class ReviewItem(BaseModel):
    name: str
    source_span_index: Optional[int] = None
    reason: str
    default_schedule: str
    suggestion: str
    code: ReviewCode = "default_schedule"

class DateRange(BaseModel):
    start: Optional[dt.date] = None
    end: Optional[dt.date] = None

class ReminderSummary(BaseModel):
    total_medication_reminders: int = 0
    total_appointment_reminders: int = 0
    total_reminders: int = 0
    medications_with_default_schedule: int = 0
    medications_with_default_duration: int = 0
    medications_needing_review: List[ReviewItem] = Field(default_factory=list)
    date_range: DateRange = Field(default_factory=DateRange)
    skipped: int = 0

class ReminderSchedule(BaseModel):
    medications: List[ReminderInstance] = Field(default_factory=list)
    appointments: List[ReminderInstance] = Field(default_factory=list)
    summary: ReminderSummary = Field(default_factory=ReminderSummary)

# ---------------------------
# Analysis bundle
# ---------------------------

class ReportSummary(BaseModel):
    total_medications: int = 0
    total_appointments: int = 0
    total_instructions: int = 0
    total_reminders: int = 0
    medications_with_default_schedule: int = 0
    medications_needing_review: List[ReviewItem] = Field(default_factory=list)
    date_range: DateRange = Field(default_factory=DateRange)
    confidence: Optional[int] = None
    generated_at: Optional[dt.datetime] = None

class Insight(BaseModel):
    type: str
    level: Level = "info"
    title: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)

class ReportWarning(BaseModel):
    type: str
    level: Level = "warning"
    title: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)

class Recommendation(BaseModel):
    type: str
    priority: Priority = "medium"
    title: str
    message: str
    action: Optional[str] = None

class ReportOption(BaseModel):
    id: str
    label: str
    description: str
    data_size: DataSize = "small"
    count: Optional[int] = None
    format: Optional[str] = None
    action: Optional[str] = None

class ReportOptions(BaseModel):
    view_options: List[ReportOption] = Field(default_factory=list)
    export_options: List[ReportOption] = Field(default_factory=list)
    action_options: List[ReportOption] = Field(default_factory=list)

    def all_ids(self) -> List[str]:
        return [o.id for o in self.view_options + self.export_options + self.action_options]

class AnalysisBundle(BaseModel):
    summary: ReportSummary
    insights: List[Insight] = Field(default_factory=list)
    warnings: List[ReportWarning] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)
    options: ReportOptions = Field(default_factory=ReportOptions)
    safety_note: str = SAFETY_NOTE

class FullData(BaseModel):
    """Everything retained for later get-data calls (the `_fullData` companion)."""
    prescription: ExtractedPrescription
    reminders: ReminderSchedule = Field(default_factory=ReminderSchedule)
    validation: Optional[ValidationResult] = None
    duplicate_report: Optional[DuplicateReport] = None
    extraction_method: str = "rule_based"
    rejected_names: List[str] = Field(default_factory=list)
    start_date: Optional[dt.date] = None
    generated_at: dt.datetime = Field(default_factory=dt.datetime.now)

# ---------------------------
# HTTP payloads
# ---------------------------

class AnalyzeRequest(BaseModel):
    text: str = Field(..., min_length=1, description="Text layer or OCR transcript of the prescription")
    start_date: Optional[dt.date] = None
    today: Optional[dt.date] = None
    allow_invalid: bool = False
    include_full_data: bool = False

class AnalyzeResponse(BaseModel):
    status: AnalysisStatus
    analysis_id: Optional[str] = None
    validation: ValidationResult
    recommendation: str
    extraction_method: str
    bundle: Optional[AnalysisBundle] = None
    full_data: Optional[FullData] = None
    errors: List[str] = Field(default_factory=list)

class GetDataRequest(BaseModel):
    option_id: str
    analysis_id: Optional[str] = None
    data: Optional[FullData] = None
    today: Optional[dt.date] = None

class GetDataResponse(BaseModel):
    option_id: str
    data: Any

class CreateRemindersRequest(BaseModel):
    medications: List[Medication]
    appointments: List[Appointment] = Field(default_factory=list)
    start_date: Optional[dt.date] = None

class CheckDuplicatesRequest(BaseModel):
    medications: List[Medication]
    appointments: List[Appointment] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)

class CheckDuplicatesResponse(BaseModel):
    report: DuplicateReport
    clean_data: ExtractedPrescription
    message: str
