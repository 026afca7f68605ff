import logging
import re
from typing import Iterable, List, Optional, Tuple

from app.schemas.models import Appointment, ExtractedPrescription, Medication
from app.services.segmentation import NON_NAME_WORDS, Span, segment_text
from app.utils.time_utils import find_date, find_time, normalize_date, normalize_time

logger = logging.getLogger(__name__)

STRENGTH_UNITS = r"mcg|µg|mg|ml|iu|ui|g|%"
COUNT_UNITS = r"viên|vien|ống|ong|gói|goi|chai|lọ|lo|tuýp|tuyp|túi|tui|hộp|hop|giọt|giot|nang"

_NUMBER = r"\d+(?:[.,]\d+)?"
_STRENGTH_RE = re.compile(rf"(?<![\d.,])({_NUMBER})\s*({STRENGTH_UNITS})(?!\w)", re.IGNORECASE)
_COUNT_RE = re.compile(rf"(?<![\d.,])({_NUMBER})\s*({COUNT_UNITS})(?!\w)", re.IGNORECASE)

WORD_COUNTS = {
    "một": 1, "mot": 1, "hai": 2, "ba": 3, "bốn": 4, "bon": 4, "tư": 4,
    "năm": 5, "nam": 5, "sáu": 6,
}
_COUNT_WORD = r"\d+|một|mot|hai|ba|bốn|bon|tư|năm|nam|sáu"

# 3 lần/ngày, 3 lần mỗi ngày, 3 lần trong ngày, 2x/day, 2 times/day
_FREQ_RE = re.compile(
    rf"(?<!\w)({_COUNT_WORD})\s*(?:lần|lan|x|times?)\s*(?:/|mỗi|moi|một|mot|trong|per|a)?\s*(?:ngày|ngay|day)(?!\w)",
    re.IGNORECASE,
)
# ngày uống 2 lần, ngày 3 lần
_FREQ_DAY_FIRST_RE = re.compile(
    rf"(?<!\w)(?:ngày|ngay)\s*(?:uống|uong|dùng|dung)?\s*({_COUNT_WORD})\s*(?:lần|lan)(?!\w)",
    re.IGNORECASE,
)

TIMING_TOKENS = {
    "sáng": "sáng", "sang": "sáng",
    "trưa": "trưa", "trua": "trưa",
    "chiều": "chiều", "chieu": "chiều",
    "tối": "tối", "toi": "tối",
    "khuya": "khuya",
    "đêm": "đêm", "dem": "đêm",
}
_TIMING_RE = re.compile(r"(?<!\w)(" + "|".join(TIMING_TOKENS) + r")(?!\w)", re.IGNORECASE)

_MEAL_RE = re.compile(
    r"(?<!\w)(trước\s*(?:bữa\s*)?ăn|truoc\s*(?:bua\s*)?an|sau\s*(?:bữa\s*)?ăn|sau\s*(?:bua\s*)?an"
    r"|trong\s*bữa\s*ăn|cùng\s*bữa\s*ăn|khi\s*đói|khi\s*doi|khi\s*no)(?!\w)",
    re.IGNORECASE,
)

_DURATION_RE = re.compile(r"(?<![\w.,/])(\d+)\s*(ngày|ngay|tuần|tuan|tháng|thang|days?|weeks?)(?!\w)", re.IGNORECASE)

_LEADING_MARKER_RE = re.compile(r"^\s*\d{1,3}\s*\.\s*")
_NAME_STOP_CHARS = "(:;,/[{"
_NAME_TRAILING = ".,;:-"

_APPOINTMENT_TYPES = [
    (re.compile(r"tái\s*khám|tai\s*kham", re.IGNORECASE), "Tái khám"),
    (re.compile(r"khám\s*lại|kham\s*lai", re.IGNORECASE), "Khám lại"),
    (re.compile(r"hẹn\s*khám|hen\s*kham|ngày\s*hẹn|lịch\s*hẹn", re.IGNORECASE), "Hẹn khám"),
]
_DOCTOR_RE = re.compile(
    r"(?<!\w)(?:ThS\.?\s*BS\.?|BSCKI{1,2}\.?|BS\.?|Bác\s*sĩ|Bác\s*sỹ|Bac\s*si|Dr\.?)\s*:?\s*"
    r"((?:[^\W\d_][\w]*\.?\s*){1,5})",
)
_LOCATION_RE = re.compile(
    r"(?<!\w)((?:Bệnh\s*viện|Benh\s*vien|Phòng\s*khám|Phong\s*kham|Khoa|Phòng|Phong)\s+[^\n,;.]{2,60})",
    re.IGNORECASE,
)
_LABELED_LOCATION_RE = re.compile(r"(?:Địa\s*điểm|Dia\s*diem|Tại|Nơi\s*khám)\s*:\s*([^\n,;]{2,80})", re.IGNORECASE)

# ---------------------------
# Field parsers
# ---------------------------

def parse_count_word(token: str) -> Optional[int]:
    t = (token or "").strip().lower()
    if t.isdigit():
        return int(t)
    return WORD_COUNTS.get(t)

def find_frequency(text: str) -> Optional[Tuple[str, int, Tuple[int, int]]]:
    """Return (matched text, times per day, (start, end)) for the first frequency phrase."""
    best = None
    for regex in (_FREQ_RE, _FREQ_DAY_FIRST_RE):
        m = regex.search(text or "")
        if m and (best is None or m.start() < best.start()):
            best = m
    if best is None:
        return None
    count = parse_count_word(best.group(1))
    if not count:
        return None
    return best.group(0).strip(), count, best.span()

def parse_frequency_count(frequency_text: Optional[str]) -> Optional[int]:
    found = find_frequency(frequency_text or "")
    return found[1] if found else None

def find_timing(text: str) -> List[Tuple[str, Tuple[int, int]]]:
    seen = set()
    out = []
    for m in _TIMING_RE.finditer(text or ""):
        token = TIMING_TOKENS[m.group(1).lower()]
        if token in seen:
            continue
        seen.add(token)
        out.append((token, m.span()))
    return out

def find_duration(text: str) -> Optional[Tuple[str, Tuple[int, int]]]:
    m = _DURATION_RE.search(text or "")
    return (m.group(0).strip(), m.span()) if m else None

def _normalize_amount(number: str, unit: str) -> str:
    return f"{number.replace(',', '.')}{unit}"

def extract_name(body: str) -> Tuple[Optional[str], int]:
    """
    Leading run of capitalized tokens. Stops at the first token that starts
    with a digit, is a unit/instruction word, or carries a separator.
    Returns the name and the offset in body where it ends.
    """
    name_tokens: List[str] = []
    end = 0
    for m in re.finditer(r"\S+", body):
        token = m.group(0)
        stop_after = False

        cut = min((token.find(c) for c in _NAME_STOP_CHARS if c in token), default=-1)
        if cut == 0:
            break
        if cut > 0:
            token = token[:cut]
            stop_after = True

        # "Paracetamol500mg" -> "Paracetamol"
        glued = re.match(rf"^([^\W\d_][^\W\d_\-]+)(?={_NUMBER}\s*(?:{STRENGTH_UNITS}|{COUNT_UNITS})$)", token, re.IGNORECASE)
        if glued and not name_tokens:
            name_tokens.append(glued.group(1))
            end = m.start() + len(glued.group(1))
            break

        clean = token.rstrip(_NAME_TRAILING)
        if not clean or not clean[0].isalpha():
            break
        if name_tokens and clean.lower() in NON_NAME_WORDS:
            break
        if re.fullmatch(rf"(?:{STRENGTH_UNITS}|{COUNT_UNITS})", clean, re.IGNORECASE):
            break
        if not name_tokens and not clean[0].isupper():
            break
        # later tokens must be capitalized too ("Vitamin C", "Vitamin B12")
        if name_tokens and not clean[0].isupper():
            break

        name_tokens.append(clean)
        end = m.start() + len(clean)
        if stop_after or token != clean:
            break

    name = " ".join(name_tokens).strip()
    return (name or None), end

def _leftover(text: str, consumed: Iterable[Tuple[int, int]]) -> Optional[str]:
    mask = [False] * len(text)
    for start, end in consumed:
        for i in range(max(0, start), min(len(text), end)):
            mask[i] = True
    pieces: List[str] = []
    buf = []
    for ch, used in zip(text, mask):
        if used:
            if buf:
                pieces.append("".join(buf))
                buf = []
        else:
            buf.append(ch)
    if buf:
        pieces.append("".join(buf))

    cleaned = []
    for p in pieces:
        p = re.sub(r"(?<!\w)[x×](?!\w)", " ", p)
        p = re.sub(r"\s+", " ", p).strip(" ,;:-/+")
        if p and re.search(r"[^\W\d_]{2,}", p):
            cleaned.append(p)
    return " ".join(cleaned) if cleaned else None

# ---------------------------
# Record extractors
# ---------------------------

def extract_medication(span: Span) -> Optional[Medication]:
    """
    Map one medication span to a Medication. Only what is written in the span
    is filled in; everything else stays None.
    """
    marker = _LEADING_MARKER_RE.match(span.text)
    body = span.text[marker.end():] if marker else span.text

    name, name_end = extract_name(body)
    if not name:
        logger.debug("no medication name in span", extra={"span_index": span.index})
        return None

    consumed: List[Tuple[int, int]] = [(0, name_end)]

    strengths = [(m.span(), _normalize_amount(m.group(1), m.group(2))) for m in _STRENGTH_RE.finditer(body, name_end)]
    counts = [(m.span(), m.group(1), m.group(2)) for m in _COUNT_RE.finditer(body, name_end)]
    consumed += [s for s, _ in strengths] + [s for s, _, _ in counts]

    dosage_text = None
    if strengths:
        dosage_text = ", ".join(v for _, v in strengths)
    elif counts:
        dosage_text = f"{counts[0][1]} {counts[0][2]}"

    quantity = unit = None
    if counts:
        try:
            quantity = float(counts[0][1].replace(",", "."))
        except ValueError:
            quantity = None
        unit = counts[0][2].lower()

    frequency_text = frequency_count = None
    found = find_frequency(body[name_end:])
    if found:
        frequency_text, frequency_count, (fs, fe) = found
        consumed.append((fs + name_end, fe + name_end))

    timing = None
    timing_found = find_timing(body[name_end:])
    if timing_found:
        timing = [t for t, _ in timing_found]
        consumed += [(s + name_end, e + name_end) for _, (s, e) in timing_found]

    duration_text = None
    duration_found = find_duration(body[name_end:])
    if duration_found:
        duration_text, (ds, de) = duration_found
        consumed.append((ds + name_end, de + name_end))

    instructions: List[str] = []
    for m in _MEAL_RE.finditer(body, name_end):
        phrase = re.sub(r"\s+", " ", m.group(0)).lower()
        if phrase not in instructions:
            instructions.append(phrase)
        consumed.append(m.span())

    rest = _leftover(body, consumed)
    if rest:
        instructions.append(rest)

    return Medication(
        name=name,
        dosage_text=dosage_text,
        quantity=quantity,
        unit=unit,
        frequency_text=frequency_text,
        frequency_count=frequency_count,
        timing=timing,
        duration_text=duration_text,
        instructions=instructions or None,
        source_span_index=span.index,
        raw_text=span.text,
    )

def extract_appointment(span: Span) -> Appointment:
    text = span.text

    apt_type = "Tái khám"
    for regex, label in _APPOINTMENT_TYPES:
        if regex.search(text):
            apt_type = label
            break

    date_match = find_date(text)
    apt_date = normalize_date(date_match.group(0)) if date_match else None

    # look for the time outside the date so "30.12" never reads as a clock
    time_source = text
    if date_match:
        time_source = text[:date_match.start()] + " " + text[date_match.end():]
    time_match = find_time(time_source)
    apt_time = normalize_time(time_match.group(0)) if time_match else None

    doctor = None
    doc_match = _DOCTOR_RE.search(text)
    if doc_match:
        # personal names are capitalized; stop at the first lowercase word
        words = []
        for w in doc_match.group(1).split():
            if not w[0].isupper():
                break
            words.append(w)
        doctor = " ".join(words).strip(" .") or None

    location = None
    loc_match = _LABELED_LOCATION_RE.search(text) or _LOCATION_RE.search(text)
    if loc_match:
        location = loc_match.group(1).strip() or None

    return Appointment(
        type=apt_type,
        date=apt_date,
        time=apt_time,
        location=location,
        doctor=doctor,
        notes=re.sub(r"\s+", " ", text).strip(),
        source_span_index=span.index,
    )

def extract_instruction(span: Span) -> Optional[str]:
    text = span.text.strip()
    return text or None

_MED_HINT_RE = re.compile(rf"(?:{_STRENGTH_RE.pattern})|(?:{_COUNT_RE.pattern})|(?:{_FREQ_RE.pattern})", re.IGNORECASE)

def simple_extract_meds(span: Span) -> List[Medication]:
    """
    Best-effort path for text without item markers: one medication per line,
    and only for lines that look like a medication instruction.
    """
    meds: List[Medication] = []
    for ln in (span.text or "").splitlines():
        ln = ln.strip()
        # must look like a medicine line (strength/count/frequency)
        if not ln or not _MED_HINT_RE.search(ln):
            continue
        if not ln[0].isalpha():
            continue
        med = extract_medication(Span(index=span.index, kind="medication", text=ln, start=0, end=len(ln)))
        if med:
            meds.append(med)
    return meds

def extract_prescription(text: str) -> ExtractedPrescription:
    """Rule-based extraction: segment the text, then map each span by kind."""
    spans = segment_text(text)
    result = ExtractedPrescription(span_count=len(spans))

    for span in spans:
        if span.kind == "medication":
            med = extract_medication(span)
            if med:
                result.medications.append(med)
        elif span.kind == "appointment":
            result.appointments.append(extract_appointment(span))
        elif span.kind == "instruction":
            note = extract_instruction(span)
            if note:
                result.instructions.append(note)
        elif span.kind == "unclassified":
            result.medications.extend(simple_extract_meds(span))

    logger.info(
        "rule-based extraction done",
        extra={
            "spans": len(spans),
            "medications": len(result.medications),
            "appointments": len(result.appointments),
            "instructions": len(result.instructions),
        },
    )
    return result
