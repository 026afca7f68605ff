import datetime as dt
import logging
import re
import uuid
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Tuple

from app.core.logging_config import get_logger
from app.schemas.models import (
    Appointment,
    DateRange,
    ExtractedPrescription,
    Medication,
    ReminderInstance,
    ReminderSchedule,
    ReminderSummary,
    ReviewItem,
)
from app.services.extraction import parse_frequency_count
from app.utils.time_utils import hhmm_to_minutes, minutes_to_hhmm, normalize_time, parse_date, valid_hhmm

DEFAULT_TIMES = ["07:00", "12:00", "20:00"]
SPREAD_WINDOW = ("06:00", "22:00")
MAX_DAILY_DOSES = 12
DEFAULT_HORIZON_DAYS = 7
MAX_HORIZON_DAYS = 365
DEFAULT_APPOINTMENT_TIME = "08:00"

TIMING_TIMES = {
    "sáng": "07:00",
    "trưa": "12:00",
    "chiều": "17:00",
    "tối": "20:00",
    "khuya": "22:00",
    "đêm": "22:00",
    # manually entered records
    "morning": "07:00",
    "noon": "12:00",
    "afternoon": "17:00",
    "evening": "20:00",
    "night": "22:00",
}

FREQUENCY_TIMES = {
    1: ["08:00"],
    2: ["08:00", "20:00"],
    3: ["08:00", "13:00", "20:00"],
    4: ["08:00", "12:00", "16:00", "20:00"],
}

_DURATION_RE = re.compile(r"(\d+)\s*(ngày|ngay|tuần|tuan|tháng|thang|days?|weeks?|months?)", re.IGNORECASE)
_UNIT_DAYS = {
    "ngày": 1, "ngay": 1, "day": 1, "days": 1,
    "tuần": 7, "tuan": 7, "week": 7, "weeks": 7,
    "tháng": 30, "thang": 30, "month": 30, "months": 30,
}

def _reminder_id() -> str:
    return "rem_" + uuid.uuid4().hex[:10]

def parse_duration_days(duration_text: Optional[str]) -> Optional[int]:
    """Days in duration_text, or None when absent or outside 1..365."""
    m = _DURATION_RE.search(duration_text or "")
    if not m:
        return None
    days = int(m.group(1)) * _UNIT_DAYS[m.group(2).lower()]
    if not (1 <= days <= MAX_HORIZON_DAYS):
        return None
    return days

def _times_from_timing(timing: Iterable[str]) -> List[str]:
    out: List[str] = []
    for token in timing:
        t = (token or "").strip().lower()
        hhmm = TIMING_TIMES.get(t) or (t if valid_hhmm(t) else None)
        if hhmm and hhmm not in out:
            out.append(hhmm)
    return sorted(out)

def _frequency_count(med: Medication) -> Optional[int]:
    if med.frequency_count:
        return med.frequency_count
    if med.frequency_text:
        return parse_frequency_count(med.frequency_text)
    return None

def spread_times(count: int) -> List[str]:
    """count doses spaced evenly from 06:00 to 22:00."""
    first, last = hhmm_to_minutes(SPREAD_WINDOW[0]), hhmm_to_minutes(SPREAD_WINDOW[1])
    step = (last - first) // (count - 1)
    return [minutes_to_hhmm(first + i * step) for i in range(count)]

def unlisted_frequency(med: Medication) -> Optional[int]:
    """Daily count above the frequency table when timing gives no usable time."""
    if _times_from_timing(med.timing or []):
        return None
    count = _frequency_count(med)
    if count and max(FREQUENCY_TIMES) < count <= MAX_DAILY_DOSES:
        return count
    return None

def times_for_medication(med: Medication) -> Tuple[List[str], bool]:
    """
    Time-of-day list for one medication and whether it is the default schedule.

    timing wins over frequency; a frequency/timing mismatch is reported by
    validation, not reconciled here. Timing tokens that map to no time and a
    frequency without a usable count count as absent.
    """
    times = _times_from_timing(med.timing or [])
    if times:
        return times, False
    count = _frequency_count(med)
    if count in FREQUENCY_TIMES:
        return list(FREQUENCY_TIMES[count]), False
    if unlisted_frequency(med):
        return spread_times(count), False
    return list(DEFAULT_TIMES), True

def _medication_message(med: Medication) -> str:
    msg = f"Đã đến giờ uống thuốc {med.name}"
    if med.dosage_text:
        msg += f" ({med.dosage_text})"
    if med.quantity is not None and med.unit:
        qty = int(med.quantity) if float(med.quantity).is_integer() else med.quantity
        msg += f" - {qty} {med.unit}"
    if med.instructions:
        msg += "\n" + "; ".join(med.instructions)
    return msg

_REVIEW_SUGGESTION = "Vui lòng kiểm tra đơn thuốc và điều chỉnh giờ nhắc. Không tự ý thay đổi liều lượng bác sĩ đã kê."

def _review_item(med: Medication) -> ReviewItem:
    written = [t for t in (med.timing or []) if t] + ([med.frequency_text] if med.frequency_text else [])
    if written:
        reason = f"Không xác định được giờ uống từ \"{', '.join(written)}\""
    else:
        reason = "Không tìm thấy thời điểm uống hoặc tần suất trong đơn thuốc"
    return ReviewItem(
        name=med.name,
        source_span_index=med.source_span_index,
        reason=reason,
        default_schedule="3 lần/ngày: " + ", ".join(DEFAULT_TIMES),
        suggestion=_REVIEW_SUGGESTION,
    )

def _spread_review_item(med: Medication, count: int, times: List[str]) -> ReviewItem:
    return ReviewItem(
        name=med.name,
        source_span_index=med.source_span_index,
        reason=f"Đơn thuốc ghi {count} lần/ngày, giờ nhắc được chia đều trong ngày",
        default_schedule=f"{count} lần/ngày: " + ", ".join(times),
        suggestion=_REVIEW_SUGGESTION,
        code="spread_frequency",
    )

def _make_instance(kind, ref_name, day, hhmm, **fields) -> Optional[ReminderInstance]:
    if not isinstance(day, dt.date) or not valid_hhmm(hhmm or ""):
        return None
    h, m = hhmm.strip().split(":")
    return ReminderInstance(
        id=_reminder_id(),
        kind=kind,
        ref_name=ref_name,
        date=day,
        time=f"{int(h):02d}:{m}",
        **fields,
    )

def _sort_key(r: ReminderInstance):
    return (r.date, r.time, r.ref_name)

def generate_reminders(
    prescription: ExtractedPrescription,
    start_date: Optional[dt.date] = None,
    logger: Optional[logging.Logger] = None,
) -> ReminderSchedule:
    """
    Materialize reminder instances for a deduplicated prescription.

    A medication is never dropped for missing metadata; it gets the default
    times and/or horizon and shows up in medications_needing_review instead.
    """
    log = get_logger(__name__, logger)
    start = start_date or dt.date.today()
    summary = ReminderSummary()
    med_reminders: List[ReminderInstance] = []
    apt_reminders: List[ReminderInstance] = []

    for med in prescription.medications:
        times, is_default = times_for_medication(med)
        days = parse_duration_days(med.duration_text)
        if days is None:
            days = DEFAULT_HORIZON_DAYS
            summary.medications_with_default_duration += 1
        if is_default:
            summary.medications_with_default_schedule += 1
            summary.medications_needing_review.append(_review_item(med))
        elif unlisted_frequency(med):
            summary.medications_needing_review.append(_spread_review_item(med, len(times), times))

        for offset in range(days):
            day = start + dt.timedelta(days=offset)
            for hhmm in times:
                inst = _make_instance(
                    "medication", med.name, day, hhmm,
                    is_default_schedule=is_default,
                    dosage_text=med.dosage_text,
                    title=f"Uống thuốc: {med.name}",
                    message=_medication_message(med),
                )
                if inst is None:
                    summary.skipped += 1
                    continue
                med_reminders.append(inst)

    for apt in prescription.appointments:
        if not apt.date:
            # undated appointments get no reminder; the report warns about them
            continue
        reminder = _appointment_reminder(apt)
        if reminder is None:
            summary.skipped += 1
            log.info("appointment reminder skipped", extra={"date": apt.date, "time": apt.time})
            continue
        apt_reminders.append(reminder)

    med_reminders.sort(key=_sort_key)
    apt_reminders.sort(key=_sort_key)

    summary.total_medication_reminders = len(med_reminders)
    summary.total_appointment_reminders = len(apt_reminders)
    summary.total_reminders = len(med_reminders) + len(apt_reminders)
    all_days = [r.date for r in med_reminders + apt_reminders]
    if all_days:
        summary.date_range = DateRange(start=min(all_days), end=max(all_days))

    log.info(
        "reminders generated",
        extra={
            "medication_reminders": summary.total_medication_reminders,
            "appointment_reminders": summary.total_appointment_reminders,
            "default_schedule": summary.medications_with_default_schedule,
            "skipped": summary.skipped,
        },
    )
    return ReminderSchedule(medications=med_reminders, appointments=apt_reminders, summary=summary)

def _appointment_reminder(apt: Appointment) -> Optional[ReminderInstance]:
    day = parse_date(apt.date)
    if day is None:
        return None
    hhmm = normalize_time(apt.time) if apt.time else DEFAULT_APPOINTMENT_TIME
    if hhmm is None:
        return None
    notes = f"\n{apt.notes}" if apt.notes else ""
    return _make_instance(
        "appointment", apt.type, day, hhmm,
        title=f"Nhắc tái khám: {apt.type}",
        message=f"Bạn có lịch {apt.type} lúc {hhmm} ngày {day.strftime('%d/%m/%Y')}.{notes}",
    )

# ---------------------------
# Helpers over generated reminders
# ---------------------------

def group_reminders_by_date(reminders: Iterable[ReminderInstance]) -> Dict[str, List[ReminderInstance]]:
    grouped: Dict[str, List[ReminderInstance]] = OrderedDict()
    for r in sorted(reminders, key=_sort_key):
        grouped.setdefault(r.date.isoformat(), []).append(r)
    return grouped

def filter_reminders_by_date_range(
    reminders: Iterable[ReminderInstance],
    start: dt.date,
    end: dt.date,
) -> List[ReminderInstance]:
    return sorted((r for r in reminders if start <= r.date <= end), key=_sort_key)
