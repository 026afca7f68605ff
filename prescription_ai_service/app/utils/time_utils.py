# app/utils/time_utils.py
from __future__ import annotations

import re
from datetime import date
from typing import Optional

_HHMM_RE = re.compile(r"^(\d{1,2}):(\d{2})$")

# 14:00, 14h00, 14h, 2:30 PM, 8 giờ 30, 8 giờ
_TIME_RE = re.compile(
    r"(?<!\d)(\d{1,2})\s*(?:[:h]\s*(\d{2})|giờ(?:\s*(\d{1,2}))?|h(?![a-zà-ỹ]))(?:\s*(AM|PM|am|pm))?",
    re.IGNORECASE,
)
# 30-12-2025, 30/12/2025, 30.12.2025, 30 - 12 - 2025, 30/12/25
_DATE_RE = re.compile(r"(?<!\d)(\d{1,2})\s*[-/.]\s*(\d{1,2})\s*[-/.]\s*(\d{4}|\d{2})(?!\d)")
# ngày 30 tháng 12 năm 2025
_LONG_DATE_RE = re.compile(r"ngày\s*(\d{1,2})\s*tháng\s*(\d{1,2})\s*năm\s*(\d{4})", re.IGNORECASE)
_ISO_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

def hhmm_to_minutes(hhmm: str) -> int:
    m = _HHMM_RE.match((hhmm or "").strip())
    if not m:
        raise ValueError(f"not an HH:MM time: {hhmm!r}")
    h, mins = int(m.group(1)), int(m.group(2))
    if not (0 <= h <= 23 and 0 <= mins <= 59):
        raise ValueError(f"time out of range: {hhmm!r}")
    return h * 60 + mins

def minutes_to_hhmm(total_minutes: int) -> str:
    total_minutes = max(0, min(23 * 60 + 59, total_minutes))
    h = total_minutes // 60
    m = total_minutes % 60
    return f"{h:02d}:{m:02d}"

def valid_hhmm(hhmm: str) -> bool:
    try:
        hhmm_to_minutes(hhmm)
    except ValueError:
        return False
    return True

def find_time(text: str) -> Optional[re.Match]:
    """First time-of-day expression in text whose value is a real clock time."""
    for m in _TIME_RE.finditer(text or ""):
        if _match_to_hhmm(m) is not None:
            return m
    return None

def _match_to_hhmm(m: re.Match) -> Optional[str]:
    hour = int(m.group(1))
    minute = int(m.group(2) or m.group(3) or 0)
    meridiem = (m.group(4) or "").upper()
    if meridiem == "PM" and hour < 12:
        hour += 12
    elif meridiem == "AM" and hour == 12:
        hour = 0
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return f"{hour:02d}:{minute:02d}"

def normalize_time(value: str) -> Optional[str]:
    """
    Normalize a time expression to "HH:MM".
    Returns None when nothing parseable is found.
    """
    if not value:
        return None
    m = find_time(value)
    return _match_to_hhmm(m) if m else None

def find_date(text: str) -> Optional[re.Match]:
    """First numeric or long-form date in text that is a real calendar date."""
    candidates = list(_DATE_RE.finditer(text or "")) + list(_LONG_DATE_RE.finditer(text or ""))
    candidates.sort(key=lambda m: m.start())
    for m in candidates:
        if _match_to_date(m) is not None:
            return m
    return None

def _match_to_date(m: re.Match) -> Optional[date]:
    day, month, year = m.group(1), m.group(2), m.group(3)
    if len(year) == 2:
        year = "20" + year
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None

def normalize_date(value: str) -> Optional[str]:
    """
    Normalize DD-MM-YYYY style (or already ISO) dates to "YYYY-MM-DD".
    Returns None for anything that is not a real calendar date.
    """
    d = parse_date(value)
    return d.isoformat() if d else None

def parse_date(value) -> Optional[date]:
    if isinstance(value, date):
        return value
    if not value:
        return None
    text = str(value).strip()
    iso = _ISO_RE.match(text)
    if iso:
        try:
            return date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))
        except ValueError:
            return None
    m = find_date(text)
    return _match_to_date(m) if m else None
