# app/services/llm/extraction_sanitize.py
from typing import Any, Dict, List, Optional

from app.core.errors import ExtractionError
from app.schemas.models import Appointment, ExtractedPrescription, Medication
from app.services.extraction import TIMING_TOKENS, find_frequency
from app.services.segmentation import Span, segment_text
from app.utils.time_utils import normalize_date, normalize_time

def _text(v: Any) -> Optional[str]:
    if v is None or isinstance(v, (dict, list)):
        return None
    s = str(v).strip()
    return s or None

def _text_list(v: Any) -> Optional[List[str]]:
    if isinstance(v, str):
        v = [v]
    if not isinstance(v, list):
        return None
    out = [s for s in (_text(x) for x in v) if s]
    return out or None

def normalize_timing(v: Any) -> Optional[List[str]]:
    out: List[str] = []
    for token in _text_list(v) or []:
        t = TIMING_TOKENS.get(token.lower())
        if t and t not in out:
            out.append(t)
    return out or None

def normalize_quantity(v: Any) -> Optional[float]:
    try:
        q = float(v)
    except (TypeError, ValueError):
        return None
    return q if q > 0 else None

def _locate_span(name: str, spans: List[Span]) -> Optional[int]:
    needle = name.casefold()
    for span in spans:
        if needle in span.text.casefold():
            return span.index
    return None

def sanitize_medication(m: Dict[str, Any], spans: List[Span]) -> Optional[Medication]:
    name = _text(m.get("name"))
    if not name:
        return None

    frequency_text = frequency_count = None
    found = find_frequency(_text(m.get("frequency")) or "")
    if found:
        frequency_text, frequency_count, _ = found

    span_index = _locate_span(name, spans)
    return Medication(
        name=name,
        dosage_text=_text(m.get("dosage")),
        quantity=normalize_quantity(m.get("quantity")),
        unit=_text(m.get("unit")),
        frequency_text=frequency_text,
        frequency_count=frequency_count,
        timing=normalize_timing(m.get("timing")),
        duration_text=_text(m.get("duration")),
        instructions=_text_list(m.get("instructions")),
        source_span_index=span_index,
        raw_text=spans[span_index].text if span_index is not None else None,
    )

def sanitize_appointment(a: Dict[str, Any], spans: List[Span]) -> Appointment:
    notes = _text(a.get("notes"))
    kinds = [s for s in spans if s.kind == "appointment"]
    return Appointment(
        type=_text(a.get("type")) or "Tái khám",
        date=normalize_date(_text(a.get("date")) or ""),
        time=normalize_time(_text(a.get("time")) or ""),
        location=_text(a.get("location")),
        doctor=_text(a.get("doctor")),
        notes=notes,
        source_span_index=kinds[0].index if kinds else None,
    )

def sanitize_extracted_prescription(raw: Dict[str, Any], text: str) -> ExtractedPrescription:
    """
    Map model JSON onto the same records the rule-based extractor produces.
    Absent fields stay None; unknown timing words and bad dates are dropped.
    """
    if not isinstance(raw, dict):
        raise ExtractionError(f"model output is a {type(raw).__name__}, expected an object")
    for key in ("medications", "appointments"):
        if raw.get(key) is not None and not isinstance(raw[key], list):
            raise ExtractionError(f"model field {key!r} is not a list")

    spans = segment_text(text)
    result = ExtractedPrescription(span_count=len(spans))

    for m in raw.get("medications") or []:
        if isinstance(m, dict):
            med = sanitize_medication(m, spans)
            if med:
                result.medications.append(med)

    for a in raw.get("appointments") or []:
        if isinstance(a, dict):
            result.appointments.append(sanitize_appointment(a, spans))

    result.instructions = _text_list(raw.get("instructions")) or []
    return result
