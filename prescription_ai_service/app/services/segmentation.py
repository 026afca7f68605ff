"""
Split one extracted-text blob into ordered per-entry spans.

Prescriptions number their medicines ("1. Paracetamol ...", "2. ..."), and
PDF/OCR extraction often glues several numbered lines onto one physical
line. Item boundaries are therefore taken from marker positions, not from
newlines: every ordinal marker is located first and each span runs from one
boundary to the next. Appointment and doctor's-note zones do not follow the
numbering, so they are opened by keyword anchors instead.
"""

import re
from dataclasses import dataclass
from typing import List, Tuple

from app.schemas.models import SpanKind

# "12. X" - digits, dot, optional spaces, then a letter (checked for case below)
_MARKER_RE = re.compile(r"(?<![\w.,/])(\d{1,3})\s*\.\s*(?=[^\W\d_])")
_WORD_RE = re.compile(r"[^\W\d_][\w\-]*")

# capitalized words that follow a number in dosage lines but never start a drug name
NON_NAME_WORDS = {
    "uống", "uong", "ngày", "ngay", "sáng", "sang", "trưa", "trua", "chiều", "chieu",
    "tối", "toi", "viên", "vien", "ống", "ong", "gói", "goi", "chai", "lọ", "lo",
    "túi", "tui", "hộp", "hop", "lần", "lan", "trước", "truoc", "sau", "khi",
    "nhỏ", "nho", "xịt", "xit", "bôi", "boi", "ngậm", "ngam", "tuần", "tuan", "tháng", "thang",
}

APPOINTMENT_ANCHORS = re.compile(
    r"tái\s*khám|tai\s*kham|khám\s*lại|kham\s*lai|hẹn\s*khám|hen\s*kham|ngày\s*hẹn|lịch\s*hẹn",
    re.IGNORECASE,
)
INSTRUCTION_ANCHORS = re.compile(
    r"lời\s*dặn|loi\s*dan|lời\s*khuyên|dặn\s*dò|chú\s*ý|chu\s*y(?!\w)|lưu\s*ý|luu\s*y(?!\w)|hướng\s*dẫn|huong\s*dan",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class Span:
    index: int
    kind: SpanKind
    text: str
    start: int
    end: int


def find_markers(text: str) -> List[int]:
    """Start offsets of ordinal markers that open a medication entry."""
    positions: List[int] = []
    for m in _MARKER_RE.finditer(text):
        word = _WORD_RE.match(text, m.end())
        if not word:
            continue
        token = word.group(0)
        # lowercase after the number is a price/quantity, not an item
        if not token[0].isupper():
            continue
        if token.lower() in NON_NAME_WORDS:
            continue
        positions.append(m.start())
    return positions


def find_anchors(text: str) -> List[Tuple[int, SpanKind]]:
    """
    Start offsets of keyword zones. Chained phrases of one kind
    ("Hẹn khám lại", "Ngày hẹn tái khám") open a single zone.
    """
    found: List[Tuple[int, int, SpanKind]] = []
    for m in APPOINTMENT_ANCHORS.finditer(text):
        found.append((m.start(), m.end(), "appointment"))
    for m in INSTRUCTION_ANCHORS.finditer(text):
        found.append((m.start(), m.end(), "instruction"))
    found.sort()

    anchors: List[Tuple[int, SpanKind]] = []
    last_end, last_kind = -1, None
    for start, end, kind in found:
        if kind == last_kind and (start < last_end or not re.search(r"\w", text[last_end:start])):
            last_end = max(last_end, end)
            continue
        anchors.append((start, kind))
        last_end, last_kind = end, kind
    return anchors


def _follows_marker_on_line(text: str, pos: int, markers: List[int]) -> bool:
    line_start = text.rfind("\n", 0, pos) + 1
    return any(line_start <= m < pos for m in markers)


def segment_text(text: str) -> List[Span]:
    """
    Split text into spans in document order.

    Never raises. With no markers and no anchors the whole text comes back as
    a single "unclassified" span; blank input gives no spans.
    """
    if not text or not text.strip():
        return []

    markers = find_markers(text)
    boundaries = {pos: "medication" for pos in markers}
    for pos, kind in find_anchors(text):
        # inline "Hướng dẫn: sáng 1 viên" is the entry's own usage text
        if kind == "instruction" and _follows_marker_on_line(text, pos, markers):
            continue
        # an appointment anchor inside a numbered line still cuts it; a marker at the same spot wins
        boundaries.setdefault(pos, kind)

    if not boundaries:
        stripped = text.strip()
        start = text.find(stripped)
        return [Span(index=0, kind="unclassified", text=stripped, start=start, end=start + len(stripped))]

    ordered = sorted(boundaries.items())
    pieces: List[Tuple[int, int, SpanKind]] = []

    first = ordered[0][0]
    if text[:first].strip():
        pieces.append((0, first, "preamble"))

    for i, (pos, kind) in enumerate(ordered):
        end = ordered[i + 1][0] if i + 1 < len(ordered) else len(text)
        pieces.append((pos, end, kind))

    spans: List[Span] = []
    for start, end, kind in pieces:
        chunk = text[start:end]
        stripped = chunk.strip()
        if not stripped:
            continue
        offset = start + chunk.find(stripped)
        spans.append(Span(index=len(spans), kind=kind, text=stripped, start=offset, end=offset + len(stripped)))
    return spans
