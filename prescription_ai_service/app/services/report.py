"""
Analysis bundle and lazy per-option retrieval.

analyze_data() builds a small bundle: summary, heuristic insights, warnings,
recommendations and a catalog of options. The heavy parts (per-day reminder
list, full medication detail) are not inlined; a client picks an option id
and calls get_data_by_option() against the retained FullData.
"""

import datetime as dt
import json
from typing import Any, Callable, Dict, List, Optional

from app.schemas.models import (
    AnalysisBundle,
    FullData,
    Insight,
    Recommendation,
    ReportOption,
    ReportOptions,
    ReportSummary,
    ReportWarning,
)
from app.services.planning import (
    DEFAULT_TIMES,
    filter_reminders_by_date_range,
    group_reminders_by_date,
    parse_duration_days,
)
from app.utils.time_utils import parse_date

LOW_CONFIDENCE = 60
MANY_MEDICATIONS = 5
TOO_MANY_MEDICATIONS = 10
WEEK_DAYS = 7

def _size_for(count: int) -> str:
    if count <= 10:
        return "small"
    if count <= 50:
        return "medium"
    return "large"

def _today(today: Optional[dt.date]) -> dt.date:
    return today or dt.date.today()

# ---------------------------
# Summary / insights / warnings / recommendations
# ---------------------------

def build_summary(full: FullData) -> ReportSummary:
    p, r = full.prescription, full.reminders.summary
    return ReportSummary(
        total_medications=len(p.medications),
        total_appointments=len(p.appointments),
        total_instructions=len(p.instructions),
        total_reminders=r.total_reminders,
        medications_with_default_schedule=r.medications_with_default_schedule,
        medications_needing_review=list(r.medications_needing_review),
        date_range=r.date_range,
        confidence=full.validation.confidence if full.validation else None,
        generated_at=full.generated_at,
    )

def build_insights(full: FullData, today: dt.date) -> List[Insight]:
    meds = full.prescription.medications
    insights: List[Insight] = []

    if len(meds) > TOO_MANY_MEDICATIONS:
        insights.append(Insight(
            type="medication_count",
            level="warning",
            title="Số lượng thuốc nhiều",
            message=f"Bạn đang dùng {len(meds)} loại thuốc. Hãy chú ý uống đúng giờ và theo dõi tác dụng phụ.",
            details={"count": len(meds)},
        ))
    elif len(meds) > MANY_MEDICATIONS:
        insights.append(Insight(
            type="medication_count",
            title="Số lượng thuốc trung bình",
            message=f"Bạn đang dùng {len(meds)} loại thuốc. Nhớ uống đúng giờ nhé!",
            details={"count": len(meds)},
        ))

    high_freq = [m.name for m in meds if (m.frequency_count or 0) >= 3]
    if high_freq:
        insights.append(Insight(
            type="high_frequency",
            title="Thuốc uống nhiều lần/ngày",
            message=f"Có {len(high_freq)} loại thuốc cần uống 3-4 lần/ngày. Đặt nhắc nhở để không quên!",
            details={"medications": high_freq},
        ))

    upcoming = sorted(
        d for d in (parse_date(a.date) for a in full.prescription.appointments) if d and d >= today
    )
    if upcoming:
        nearest = upcoming[0]
        days_until = (nearest - today).days
        insights.append(Insight(
            type="appointment",
            title="Lịch tái khám sắp tới",
            message=(
                f"Bạn có lịch tái khám vào {nearest.strftime('%d/%m/%Y')} (còn {days_until} ngày). "
                "Nhớ chuẩn bị đầy đủ giấy tờ!"
            ),
            details={"date": nearest.isoformat(), "days_until": days_until},
        ))

    durations = [d for d in (parse_duration_days(m.duration_text) for m in meds) if d]
    if durations:
        longest = max(durations)
        insights.append(Insight(
            type="treatment_duration",
            title="Thời gian điều trị",
            message=f"Liệu trình điều trị kéo dài {longest} ngày. Hãy kiên trì uống thuốc đầy đủ!",
            details={"days": longest},
        ))
    return insights

def build_warnings(full: FullData) -> List[ReportWarning]:
    p, summary = full.prescription, full.reminders.summary
    warnings: List[ReportWarning] = []

    if full.validation and full.validation.confidence < LOW_CONFIDENCE:
        warnings.append(ReportWarning(
            type="low_confidence",
            title="Độ tin cậy thấp",
            message=f"Độ tin cậy của đơn thuốc chỉ {full.validation.confidence}%. Vui lòng đối chiếu với đơn gốc.",
            details={"confidence": full.validation.confidence},
        ))

    if summary.medications_with_default_schedule:
        warnings.append(ReportWarning(
            type="default_schedule",
            title="Lịch nhắc mặc định",
            message=(
                f"{summary.medications_with_default_schedule} loại thuốc đang dùng lịch nhắc MẶC ĐỊNH "
                f"(3 lần/ngày: {', '.join(DEFAULT_TIMES)}) do thiếu thông tin thời gian uống. "
                "Vui lòng xem lại và điều chỉnh cho phù hợp."
            ),
            details={"medications": [
                item.name for item in summary.medications_needing_review if item.code == "default_schedule"
            ]},
        ))

    spread = [item for item in summary.medications_needing_review if item.code == "spread_frequency"]
    if spread:
        warnings.append(ReportWarning(
            type="spread_frequency",
            title="Tần suất uống cao",
            message=(
                f"{len(spread)} loại thuốc uống nhiều hơn 4 lần/ngày. Giờ nhắc được chia đều trong ngày, "
                "vui lòng đối chiếu với hướng dẫn của bác sĩ."
            ),
            details={"medications": [item.name for item in spread], "schedules": [item.default_schedule for item in spread]},
        ))

    if full.rejected_names:
        warnings.append(ReportWarning(
            type="invalid_medication_name",
            title="Tên thuốc không hợp lệ",
            message=f"{len(full.rejected_names)} mục không giống tên thuốc nên không được tạo lịch nhắc.",
            details={"names": list(full.rejected_names)},
        ))

    no_dosage = [m.name for m in p.medications if not m.dosage_text]
    if no_dosage:
        warnings.append(ReportWarning(
            type="missing_dosage",
            title="Thiếu thông tin liều lượng",
            message=f"{len(no_dosage)} loại thuốc không có thông tin liều lượng rõ ràng. Hãy hỏi bác sĩ!",
            details={"medications": no_dosage},
        ))

    no_date_time = [a.type for a in p.appointments if not a.date or not a.time]
    if no_date_time:
        warnings.append(ReportWarning(
            type="missing_appointment_time",
            title="Lịch khám thiếu thông tin",
            message=f"{len(no_date_time)} lịch khám chưa có ngày giờ cụ thể. Hãy liên hệ bệnh viện để xác nhận!",
            details={"count": len(no_date_time)},
        ))

    mismatched = [
        m.name for m in p.medications
        if m.frequency_count and m.timing and m.frequency_count != len(m.timing)
    ]
    if mismatched:
        warnings.append(ReportWarning(
            type="frequency_timing_mismatch",
            title="Tần suất và thời điểm uống không khớp",
            message=(
                f"{len(mismatched)} loại thuốc có số lần uống khác với số thời điểm ghi trong đơn. "
                "Lịch nhắc dùng thời điểm ghi trong đơn; vui lòng kiểm tra lại."
            ),
            details={"medications": mismatched},
        ))

    if summary.skipped:
        warnings.append(ReportWarning(
            type="skipped_reminders",
            title="Một số nhắc nhở bị bỏ qua",
            message=f"{summary.skipped} nhắc nhở có ngày/giờ không hợp lệ nên không được tạo.",
            details={"skipped": summary.skipped},
        ))
    return warnings

def build_recommendations(full: FullData) -> List[Recommendation]:
    p, summary = full.prescription, full.reminders.summary
    recs: List[Recommendation] = []

    if summary.medications_needing_review:
        recs.append(Recommendation(
            type="review_schedule",
            priority="high",
            title="Xem lại lịch uống thuốc",
            message=(
                "Một số thuốc chưa có giờ uống rõ ràng trong đơn và đang dùng lịch tự động. "
                "Hãy điều chỉnh giờ nhắc theo hướng dẫn của bác sĩ. "
                "Không tự ý thay đổi liều lượng bác sĩ đã kê."
            ),
            action="review_schedule",
        ))

    recs.append(Recommendation(
        type="set_reminders",
        priority="high",
        title="Đặt nhắc nhở",
        message="Bật thông báo để nhận nhắc nhở uống thuốc và tái khám đúng giờ.",
        action="enable_notifications",
    ))

    if p.appointments:
        recs.append(Recommendation(
            type="prepare_appointment",
            title="Chuẩn bị tái khám",
            message="Mang theo đơn thuốc, kết quả xét nghiệm, X-quang khi đi tái khám.",
            action="add_to_calendar",
        ))

    if len(p.medications) > MANY_MEDICATIONS:
        recs.append(Recommendation(
            type="track_side_effects",
            title="Theo dõi tác dụng phụ",
            message=(
                "Ghi chú lại nếu có triệu chứng bất thường sau khi uống thuốc. "
                "Nếu thấy có dấu hiệu bất thường, hãy liên hệ bác sĩ hoặc đến cơ sở y tế gần nhất."
            ),
        ))

    recs.append(Recommendation(
        type="save_prescription",
        priority="low",
        title="Lưu trữ đơn thuốc",
        message="Lưu đơn thuốc vào hồ sơ sức khỏe để dễ tra cứu sau này.",
        action="export_json",
    ))
    return recs

# ---------------------------
# Options catalog
# ---------------------------

def _all_reminders(full: FullData):
    return full.reminders.medications + full.reminders.appointments

def _week(full: FullData, today: dt.date):
    return filter_reminders_by_date_range(_all_reminders(full), today, today + dt.timedelta(days=WEEK_DAYS - 1))

def build_options(full: FullData, today: dt.date) -> ReportOptions:
    p = full.prescription
    total = len(_all_reminders(full))
    today_count = len(filter_reminders_by_date_range(_all_reminders(full), today, today))
    week_count = len(_week(full, today))

    view = [
        ReportOption(id="summary", label="Xem tóm tắt",
                     description="Thông tin tổng quan về thuốc và lịch khám"),
        ReportOption(id="medications", label="Danh sách thuốc",
                     description=f"{len(p.medications)} loại thuốc",
                     data_size=_size_for(len(p.medications)), count=len(p.medications)),
        ReportOption(id="appointments", label="Lịch tái khám",
                     description=f"{len(p.appointments)} lịch khám",
                     count=len(p.appointments)),
        ReportOption(id="reminders_today", label="Nhắc nhở hôm nay",
                     description="Lịch uống thuốc và tái khám hôm nay",
                     data_size=_size_for(today_count), count=today_count),
        ReportOption(id="reminders_week", label="Nhắc nhở 7 ngày tới",
                     description=f"{week_count} nhắc nhở",
                     data_size=_size_for(week_count), count=week_count),
        ReportOption(id="calendar", label="Lịch uống thuốc",
                     description="Xem lịch theo ngày",
                     data_size=_size_for(total), count=total),
        ReportOption(id="instructions", label="Lời dặn bác sĩ",
                     description=f"{len(p.instructions)} lời dặn",
                     count=len(p.instructions)),
    ]
    export = [
        ReportOption(id="export_json", label="Xuất JSON", description="Tải dữ liệu dạng JSON",
                     data_size="large", format="json"),
        ReportOption(id="export_text", label="Xuất văn bản", description="Tải báo cáo dạng văn bản",
                     data_size="medium", format="text"),
        ReportOption(id="share", label="Chia sẻ", description="Chia sẻ với bác sĩ hoặc người thân",
                     format="text"),
    ]
    actions = [
        ReportOption(id="enable_notifications", label="Bật thông báo",
                     description="Nhận nhắc nhở uống thuốc", action="enable_notifications",
                     count=total),
        ReportOption(id="add_to_calendar", label="Thêm vào lịch",
                     description="Đồng bộ lịch tái khám với lịch cá nhân", action="add_to_calendar",
                     count=len(full.reminders.appointments)),
        ReportOption(id="set_alarm", label="Đặt báo thức",
                     description="Tạo báo thức cho từng lần uống thuốc", action="set_alarm",
                     count=len(full.reminders.medications)),
    ]
    return ReportOptions(view_options=view, export_options=export, action_options=actions)

def analyze_data(full: FullData, today: Optional[dt.date] = None) -> AnalysisBundle:
    day = _today(today)
    return AnalysisBundle(
        summary=build_summary(full),
        insights=build_insights(full, day),
        warnings=build_warnings(full),
        recommendations=build_recommendations(full),
        options=build_options(full, day),
    )

# ---------------------------
# Lazy retrieval
# ---------------------------

def _dump(items) -> List[Dict[str, Any]]:
    return [i.model_dump(mode="json") for i in items]

def render_text_report(full: FullData) -> str:
    p = full.prescription
    lines = ["ĐƠN THUỐC", ""]
    lines.append(f"Thuốc ({len(p.medications)}):")
    for i, m in enumerate(p.medications, 1):
        parts = [m.name]
        if m.dosage_text:
            parts.append(m.dosage_text)
        if m.frequency_text:
            parts.append(m.frequency_text)
        if m.timing:
            parts.append(", ".join(m.timing))
        if m.duration_text:
            parts.append(m.duration_text)
        lines.append(f"  {i}. " + " - ".join(parts))
    if p.appointments:
        lines += ["", f"Lịch khám ({len(p.appointments)}):"]
        for a in p.appointments:
            when = " ".join(x for x in (a.date, a.time) if x) or "chưa rõ ngày giờ"
            lines.append(f"  - {a.type}: {when}")
    if p.instructions:
        lines += ["", "Lời dặn:"]
        lines += [f"  - {n}" for n in p.instructions]
    summary = full.reminders.summary
    lines += ["", f"Tổng số nhắc nhở: {summary.total_reminders}"]
    if summary.medications_needing_review:
        lines.append("Cần xem lại lịch: " + ", ".join(i.name for i in summary.medications_needing_review))
    return "\n".join(lines)

def _option_summary(full, today):
    return build_summary(full).model_dump(mode="json")

def _option_medications(full, today):
    return _dump(full.prescription.medications)

def _option_appointments(full, today):
    return _dump(full.prescription.appointments)

def _option_reminders_today(full, today):
    return _dump(filter_reminders_by_date_range(_all_reminders(full), today, today))

def _option_reminders_week(full, today):
    return _dump(_week(full, today))

def _option_calendar(full, today):
    return {day: _dump(items) for day, items in group_reminders_by_date(_all_reminders(full)).items()}

def _option_instructions(full, today):
    return list(full.prescription.instructions)

def _option_export_json(full, today):
    return json.loads(full.model_dump_json())

def _option_export_text(full, today):
    return {"format": "text", "content": render_text_report(full)}

def _option_share(full, today):
    return {"format": "text", "title": "Đơn thuốc của tôi", "content": render_text_report(full)}

def _option_enable_notifications(full, today):
    return {"action": "enable_notifications", "reminders": _dump(_all_reminders(full))}

def _option_add_to_calendar(full, today):
    return {"action": "add_to_calendar", "events": _dump(full.reminders.appointments)}

def _option_set_alarm(full, today):
    alarms = [
        {"date": r.date.isoformat(), "time": r.time, "label": r.title}
        for r in full.reminders.medications if r.enabled
    ]
    return {"action": "set_alarm", "alarms": alarms}

OPTION_HANDLERS: Dict[str, Callable[[FullData, dt.date], Any]] = {
    "summary": _option_summary,
    "medications": _option_medications,
    "appointments": _option_appointments,
    "reminders_today": _option_reminders_today,
    "reminders_week": _option_reminders_week,
    "calendar": _option_calendar,
    "instructions": _option_instructions,
    "export_json": _option_export_json,
    "export_text": _option_export_text,
    "share": _option_share,
    "enable_notifications": _option_enable_notifications,
    "add_to_calendar": _option_add_to_calendar,
    "set_alarm": _option_set_alarm,
}

def get_data_by_option(full: FullData, option_id: str, today: Optional[dt.date] = None) -> Optional[Any]:
    """Resolve one option id to its JSON-ready slice; None for an unknown id."""
    handler = OPTION_HANDLERS.get(option_id)
    if handler is None:
        return None
    return handler(full, _today(today))
