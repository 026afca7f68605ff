import re
from collections import Counter
from typing import List, Tuple

from app.schemas.models import ExtractedPrescription, Medication, ValidationResult

MAX_MEDICATIONS = 60
PLAUSIBLE_MAX = 30
VALID_THRESHOLD = 40
CONFIDENT_THRESHOLD = 60

DOSAGE_FIRST_BONUS = 10
DOSAGE_EXTRA_BONUS = 5
DOSAGE_MAX_BONUS = 20

MEDICAL_KEYWORDS = [
    "bác sĩ", "bác sỹ", "doctor",
    "bệnh viện", "hospital",
    "phòng khám", "clinic",
    "đơn thuốc", "prescription",
    "tái khám", "follow up",
    "lời dặn", "instructions",
    "liều lượng", "dosage",
    "uống thuốc", "medication",
    "chẩn đoán", "diagnosis",
    "triệu chứng", "symptoms",
    "điều trị", "treatment",
]

def is_valid_medication_name(name: str) -> bool:
    n = (name or "").strip()
    if not (2 <= len(n) <= 80):
        return False
    if n.isdigit():
        return False
    return n[0].isalpha() and n[0].isupper()

def split_invalid_names(data: ExtractedPrescription) -> Tuple[ExtractedPrescription, List[str]]:
    """Copy of data without medications failing the name check, plus the dropped names."""
    dropped = [m.name for m in data.medications if not is_valid_medication_name(m.name)]
    if not dropped:
        return data, []
    kept = [m for m in data.medications if is_valid_medication_name(m.name)]
    return data.model_copy(update={"medications": kept}), dropped

def find_medical_keywords(data: ExtractedPrescription) -> List[str]:
    parts: List[str] = list(data.instructions)
    for m in data.medications:
        parts += [m.name, m.dosage_text or "", m.raw_text or ""]
        parts += m.instructions or []
    for a in data.appointments:
        parts += [a.type, a.location or "", a.doctor or "", a.notes or ""]
    blob = " ".join(parts).lower()
    return [k for k in MEDICAL_KEYWORDS if k in blob]

def _collapse(name: str) -> str:
    return re.sub(r"\s+", " ", name or "").strip().casefold()

def _frequency_timing_warnings(meds: List[Medication]) -> List[str]:
    out = []
    for m in meds:
        if m.frequency_count and m.timing and m.frequency_count != len(m.timing):
            out.append(
                f"{m.name}: tần suất ({m.frequency_text}) không khớp với thời điểm uống "
                f"({', '.join(m.timing)}). Vui lòng kiểm tra lại."
            )
    return out

def validate_prescription(data: ExtractedPrescription) -> ValidationResult:
    """
    Score how much the extracted set looks like a real prescription.

    Pure: never raises. is_valid=False is a normal result that the caller shows
    to the user together with reasons.
    """
    result = ValidationResult()
    meds = data.medications
    count = len(meds)

    if count == 0:
        result.reasons.append("Không tìm thấy thông tin thuốc")
        return result

    if count > MAX_MEDICATIONS:
        result.reasons.append(f"Số lượng thuốc quá nhiều ({count}). Có thể không phải đơn thuốc.")
        result.warnings.append("Văn bản có thể bị tách dòng sai hoặc không phải đơn thuốc.")
        return result

    valid_meds = [m for m in meds if is_valid_medication_name(m.name)]
    for m in meds:
        if not is_valid_medication_name(m.name):
            result.warnings.append(f"Tên thuốc không hợp lệ, đã bỏ qua: {m.name!r}")
    if not valid_meds:
        result.reasons.append("Tất cả tên thuốc đều không hợp lệ. Có thể không phải đơn thuốc.")
        return result

    score = 10.0

    name_ratio = len(valid_meds) / count
    score += name_ratio * 30
    if name_ratio < 0.5:
        result.warnings.append("Nhiều tên thuốc không hợp lệ. Có thể không phải đơn thuốc.")

    # counted per distinct name: a repeated entry cannot offset its duplicate penalty
    with_dosage = len({_collapse(m.name) for m in valid_meds if m.dosage_text})
    if with_dosage:
        score += min(DOSAGE_FIRST_BONUS + DOSAGE_EXTRA_BONUS * (with_dosage - 1), DOSAGE_MAX_BONUS)
    else:
        score -= 10
    if with_dosage * 2 < len(valid_meds):
        result.warnings.append("Nhiều thuốc thiếu liều lượng.")

    if data.appointments:
        score += 10
    if data.instructions:
        score += 10

    if count <= PLAUSIBLE_MAX:
        score += 10
    else:
        score -= 10
        result.warnings.append(f"Số lượng thuốc lớn bất thường ({count}).")

    names = Counter(_collapse(m.name) for m in meds)
    repeated = sum(n - 1 for n in names.values() if n > 1)
    if repeated:
        score -= min(repeated * 5, 15)
        result.warnings.append(f"Có {repeated} tên thuốc bị lặp lại.")

    keywords = find_medical_keywords(data)
    score += min(len(keywords) * 2, 10)

    result.confidence = max(0, min(100, round(score)))
    result.warnings.extend(_frequency_timing_warnings(meds))

    if result.confidence >= CONFIDENT_THRESHOLD:
        result.is_valid = True
        result.reasons.append("Đây là đơn thuốc hợp lệ")
    elif result.confidence >= VALID_THRESHOLD:
        result.is_valid = True
        result.reasons.append("Có thể là đơn thuốc nhưng thiếu thông tin")
        result.warnings.append("Độ tin cậy thấp. Vui lòng kiểm tra lại.")
    else:
        result.reasons.append("Không phải đơn thuốc hoặc không đọc được")
        result.warnings.append("File này có thể không phải đơn thuốc. Vui lòng upload đúng file.")

    return result

def get_recommendation(result: ValidationResult) -> str:
    if result.confidence >= 80:
        return "Đơn thuốc hợp lệ. Bạn có thể tiếp tục tạo lịch nhắc."
    if result.confidence >= 60:
        return "Đơn thuốc hợp lệ nhưng thiếu một số thông tin. Vui lòng kiểm tra lại."
    if result.confidence >= 40:
        return "Độ tin cậy thấp. Vui lòng kiểm tra xem đây có phải đơn thuốc không."
    return "File này có thể không phải đơn thuốc. Vui lòng upload đúng file đơn thuốc."
