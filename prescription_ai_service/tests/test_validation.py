"""
Unit tests for the prescription validator
"""

from app.schemas.models import Appointment, ExtractedPrescription, Medication, ValidationResult
from app.services.extraction import extract_prescription
from app.services.validation import (
    get_recommendation,
    is_valid_medication_name,
    split_invalid_names,
    validate_prescription,
)


def test_sample_prescription_is_valid(sample_prescription_text):
    result = validate_prescription(extract_prescription(sample_prescription_text))
    assert result.is_valid
    assert result.confidence >= 80
    assert "Đây là đơn thuốc hợp lệ" in result.reasons


def test_zero_medications_is_invalid():
    """Nothing extracted is a hard reject with zero confidence"""
    result = validate_prescription(ExtractedPrescription(appointments=[Appointment(date="2025-01-22")]))
    assert not result.is_valid
    assert result.confidence == 0
    assert result.reasons


def test_removing_all_medications_forces_invalid():
    data = ExtractedPrescription(medications=[Medication(name="Paracetamol", dosage_text="500mg")])
    assert validate_prescription(data).is_valid
    data.medications = []
    assert not validate_prescription(data).is_valid


def test_adding_dosage_never_lowers_confidence():
    """Confidence is monotone in dosage presence"""
    meds = [Medication(name="Paracetamol"), Medication(name="Omeprazol", dosage_text="20mg")]
    before = validate_prescription(ExtractedPrescription(medications=meds)).confidence

    meds_with_dosage = [Medication(name="Paracetamol", dosage_text="500mg"), meds[1]]
    after = validate_prescription(ExtractedPrescription(medications=meds_with_dosage)).confidence
    assert after >= before
    assert after > before


def test_too_many_medications_rejected():
    meds = [Medication(name=f"Thuoc{i}", dosage_text="10mg") for i in range(61)]
    result = validate_prescription(ExtractedPrescription(medications=meds))
    assert not result.is_valid


def test_all_names_invalid_rejected():
    meds = [Medication(name="abc"), Medication(name="123")]
    result = validate_prescription(ExtractedPrescription(medications=meds))
    assert not result.is_valid
    assert result.confidence == 0


def test_low_confidence_still_valid_with_warning():
    """A lone medication without dosage lands in the 40-59 band"""
    result = validate_prescription(ExtractedPrescription(medications=[Medication(name="Paracetamol")]))
    assert result.is_valid
    assert 40 <= result.confidence < 60
    assert "Độ tin cậy thấp. Vui lòng kiểm tra lại." in result.warnings


def test_duplicate_names_lower_confidence():
    single = [Medication(name="Paracetamol", dosage_text="500mg")]
    doubled = single + [Medication(name="paracetamol", dosage_text="500mg")]
    a = validate_prescription(ExtractedPrescription(medications=single)).confidence
    b = validate_prescription(ExtractedPrescription(medications=doubled)).confidence
    assert b < a


def test_frequency_timing_mismatch_is_a_warning():
    """Inconsistent frequency and timing are reported, not reconciled"""
    med = Medication(
        name="Paracetamol", dosage_text="500mg",
        frequency_text="2 lần/ngày", frequency_count=2, timing=["sáng", "trưa", "tối"],
    )
    result = validate_prescription(ExtractedPrescription(medications=[med]))
    assert any("Paracetamol" in w and "không khớp" in w for w in result.warnings)
    assert med.frequency_count == 2
    assert med.timing == ["sáng", "trưa", "tối"]


def test_name_shape():
    assert is_valid_medication_name("Vitamin C")
    assert is_valid_medication_name("Đan sâm")
    assert not is_valid_medication_name("x")
    assert not is_valid_medication_name("paracetamol")
    assert not is_valid_medication_name("12345")


def test_recommendation_bands():
    assert "tiếp tục tạo lịch nhắc" in get_recommendation(ValidationResult(is_valid=True, confidence=85))
    assert "thiếu một số thông tin" in get_recommendation(ValidationResult(is_valid=True, confidence=65))
    assert "Độ tin cậy thấp" in get_recommendation(ValidationResult(is_valid=True, confidence=45))
    assert "không phải đơn thuốc" in get_recommendation(ValidationResult(confidence=10))


def test_adding_a_medication_never_lowers_confidence():
    """Another valid-looking name, with or without dosage, cannot reduce the score"""
    base = [Medication(name="Paracetamol", dosage_text="500mg")]
    before = validate_prescription(ExtractedPrescription(medications=base)).confidence

    for extra in (Medication(name="Omeprazol"), Medication(name="Omeprazol", dosage_text="20mg")):
        after = validate_prescription(ExtractedPrescription(medications=base + [extra])).confidence
        assert after >= before


def test_confidence_grows_with_each_dosed_medication():
    names = ["Paracetamol", "Omeprazol", "Metformin", "Loratadin"]
    scores = [
        validate_prescription(ExtractedPrescription(
            medications=[Medication(name=n, dosage_text="10mg") for n in names[:k]]
        )).confidence
        for k in range(1, len(names) + 1)
    ]
    assert scores == sorted(scores)


def test_rejected_names_are_listed_in_warnings():
    meds = [Medication(name="Paracetamol", dosage_text="500mg"), Medication(name="A", dosage_text="10mg")]
    result = validate_prescription(ExtractedPrescription(medications=meds))
    assert any("'A'" in w and "không hợp lệ" in w for w in result.warnings)
    assert not any("Paracetamol" in w for w in result.warnings)


def test_split_invalid_names():
    data = ExtractedPrescription(medications=[Medication(name="Paracetamol"), Medication(name="A")])
    kept, dropped = split_invalid_names(data)
    assert [m.name for m in kept.medications] == ["Paracetamol"]
    assert dropped == ["A"]
    # input untouched
    assert len(data.medications) == 2

    same, none_dropped = split_invalid_names(kept)
    assert same is kept
    assert none_dropped == []
