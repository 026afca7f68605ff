import re
from typing import Dict, List, Optional, Tuple

from app.schemas.models import (
    Appointment,
    DuplicateEntry,
    DuplicateReport,
    DuplicateSection,
    ExtractedPrescription,
    Medication,
)

_STRENGTH_TOKEN_RE = re.compile(r"\d+(?:[.,]\d+)?\s*(?:mcg|µg|mg|ml|iu|ui|g|%)(?!\w)", re.IGNORECASE)

def _collapse(text: Optional[str]) -> str:
    return re.sub(r"\s+", " ", text or "").strip()

def medication_key(med: Medication) -> Tuple[str, Optional[str]]:
    """(casefolded name, first strength token or first dosage token)."""
    name = _collapse(med.name).casefold()
    dosage = None
    if med.dosage_text:
        m = _STRENGTH_TOKEN_RE.search(med.dosage_text)
        token = m.group(0) if m else med.dosage_text.split(",")[0]
        dosage = re.sub(r"\s+", "", token).lower() or None
    return name, dosage

def appointment_key(apt: Appointment) -> Tuple[str, Optional[str], Optional[str]]:
    return _collapse(apt.type).casefold(), apt.date, apt.time

def _dedupe(items, key_fn, name_fn, kind) -> Tuple[list, DuplicateSection]:
    seen: Dict[tuple, int] = {}
    unique = []
    section = DuplicateSection(total=len(items))
    for i, item in enumerate(items):
        key = key_fn(item)
        if key in seen:
            section.duplicates.append(DuplicateEntry(
                kind=kind,
                key=list(key),
                name=name_fn(item),
                original_index=seen[key],
                duplicate_index=i,
            ))
            continue
        seen[key] = i
        unique.append(item)
    section.unique = len(unique)
    return unique, section

def _dedupe_instructions(notes: List[str]) -> Tuple[List[str], int]:
    seen = set()
    out: List[str] = []
    for note in notes:
        k = _collapse(note).casefold()
        if k in seen:
            continue
        seen.add(k)
        out.append(note)
    return out, len(notes) - len(out)

def resolve_duplicates(data: ExtractedPrescription) -> Tuple[ExtractedPrescription, DuplicateReport]:
    """
    Drop later repeats, keeping the earliest occurrence of each key.
    Idempotent: a second pass over the output reports nothing.
    """
    meds, med_section = _dedupe(data.medications, medication_key, lambda m: m.name, "medication")
    apts, apt_section = _dedupe(data.appointments, appointment_key, lambda a: a.type, "appointment")
    notes, removed = _dedupe_instructions(data.instructions)

    clean = ExtractedPrescription(
        medications=meds,
        appointments=apts,
        instructions=notes,
        span_count=data.span_count,
    )
    report = DuplicateReport(medications=med_section, appointments=apt_section, instructions_removed=removed)
    return clean, report

def find_duplicates(data: ExtractedPrescription) -> DuplicateReport:
    return resolve_duplicates(data)[1]

def duplicate_message(report: DuplicateReport) -> str:
    total = report.total_duplicates
    if total == 0:
        return "Không phát hiện dữ liệu trùng lặp."
    return (
        f"Phát hiện {len(report.medications.duplicates)} thuốc trùng, "
        f"{len(report.appointments.duplicates)} lịch hẹn trùng và "
        f"{report.instructions_removed} lời dặn trùng. Đã giữ lại bản ghi đầu tiên."
    )
