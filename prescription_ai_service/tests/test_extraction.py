"""
Unit tests for the rule-based field extractor
"""

from app.services.extraction import (
    extract_prescription,
    find_frequency,
    parse_frequency_count,
)


def test_example_two_medications():
    """The two-entry example extracts both names and only what is written"""
    result = extract_prescription("1. Paracetamol 500mg 1 Viên 3 lần/ngày Thay băng. 2. Vitamin C 1000mg")
    assert result.span_count == 2
    assert [m.name for m in result.medications] == ["Paracetamol", "Vitamin C"]

    para, vit = result.medications
    assert para.dosage_text == "500mg"
    assert para.frequency_text == "3 lần/ngày"
    assert para.frequency_count == 3
    assert para.quantity == 1.0
    assert para.unit == "viên"
    assert para.timing is None
    assert para.instructions and "Thay băng" in para.instructions[0]

    assert vit.dosage_text == "1000mg"
    assert vit.frequency_text is None
    assert vit.frequency_count is None
    assert vit.timing is None
    assert vit.duration_text is None
    assert vit.instructions is None


def test_timing_duration_and_meal_instruction(sample_prescription_text):
    """Time-of-day words go to timing; meal relations go to instructions"""
    result = extract_prescription(sample_prescription_text)
    amox = result.medications[2]
    assert amox.name == "Amoxicillin"
    assert amox.dosage_text == "500mg"
    assert amox.timing == ["sáng", "tối"]
    assert amox.duration_text == "7 ngày"
    assert amox.instructions == ["sau ăn"]
    assert amox.source_span_index == 3


def test_appointment_fields(sample_prescription_text):
    result = extract_prescription(sample_prescription_text)
    assert len(result.appointments) == 1
    apt = result.appointments[0]
    assert apt.type == "Tái khám"
    assert apt.date == "2025-01-22"
    assert apt.time == "08:30"
    assert apt.location == "Phòng khám Nội"
    assert apt.source_span_index == 5


def test_instruction_block(sample_prescription_text):
    result = extract_prescription(sample_prescription_text)
    assert result.instructions == ["Lời dặn: Uống nhiều nước, nghỉ ngơi."]


def test_glued_name_and_dosage():
    """OCR often drops the space between name and strength"""
    med = extract_prescription("1. Paracetamol500mg 2 lần/ngày").medications[0]
    assert med.name == "Paracetamol"
    assert med.dosage_text == "500mg"
    assert med.frequency_count == 2


def test_several_strengths_are_joined():
    med = extract_prescription("1. Augmentin 500mg/125mg 2 lần/ngày").medications[0]
    assert med.name == "Augmentin"
    assert med.dosage_text == "500mg, 125mg"


def test_unclassified_text_uses_line_fallback():
    """Without markers each medicine-looking line becomes one record"""
    text = "Paracetamol 500mg 3 lần/ngày\nghi chú không liên quan\nVitamin C 1000mg"
    result = extract_prescription(text)
    assert [m.name for m in result.medications] == ["Paracetamol", "Vitamin C"]
    assert all(m.source_span_index == 0 for m in result.medications)


def test_invalid_appointment_date_left_absent():
    result = extract_prescription("1. Paracetamol 500mg\nTái khám ngày 31/02/2025")
    assert result.appointments[0].date is None


def test_frequency_word_forms():
    assert parse_frequency_count("ngày uống hai lần") == 2
    assert parse_frequency_count("2 lần mỗi ngày") == 2
    assert parse_frequency_count("1 lần/ngày") == 1
    assert parse_frequency_count("2x/day") == 2
    assert find_frequency("Vitamin C 1000mg") is None


def test_no_text_no_records():
    result = extract_prescription("")
    assert result.medications == []
    assert result.span_count == 0


def test_appointment_doctor_and_hospital():
    text = "1. Paracetamol 500mg\nHẹn khám lại ngày 05-02-2025 lúc 14:00, BS Nguyễn Văn An, Bệnh viện Bạch Mai"
    apt = extract_prescription(text).appointments[0]
    assert apt.type == "Khám lại"
    assert apt.date == "2025-02-05"
    assert apt.time == "14:00"
    assert apt.doctor == "Nguyễn Văn An"
    assert apt.location == "Bệnh viện Bạch Mai"


def test_inline_usage_note_keeps_timing():
    """Usage text after 'Hướng dẫn:' inside a numbered entry still fills its timing"""
    result = extract_prescription(
        "1. Amoxicillin 500mg Hướng dẫn: sáng 1 viên, tối 1 viên 2. Paracetamol 500mg 2 lần/ngày"
    )
    amox = result.medications[0]
    assert amox.name == "Amoxicillin"
    assert amox.timing == ["sáng", "tối"]
    assert result.instructions == []
