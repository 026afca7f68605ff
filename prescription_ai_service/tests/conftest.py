"""
Pytest configuration and shared fixtures.
"""

import datetime as dt

import pytest

from app.schemas.models import Appointment, ExtractedPrescription, Medication
from app.services.bundle_store import clear_bundles
from app.services.extraction_chain import ExtractionChain


@pytest.fixture
def sample_prescription_text():
    """Prescription text layer with a header, merged lines, a note and a follow-up visit"""
    return (
        "BỆNH VIỆN ĐA KHOA TỈNH\n"
        "ĐƠN THUỐC\n"
        "Ngày 15/01/2025\n"
        "1. Paracetamol 500mg 1 Viên 3 lần/ngày Thay băng. 2. Vitamin C 1000mg\n"
        "3. Amoxicillin 500mg x 7 ngày, sáng tối sau ăn\n"
        "Lời dặn: Uống nhiều nước, nghỉ ngơi.\n"
        "Tái khám ngày 22/01/2025 lúc 8h30 tại Phòng khám Nội\n"
    )


@pytest.fixture
def start_date():
    return dt.date(2025, 1, 15)


@pytest.fixture
def rule_based_chain():
    """Chain with no AI strategies and a no-op sleep"""
    return ExtractionChain([], sleep=lambda s: None)


@pytest.fixture
def manual_prescription():
    """Records as a user would enter them by hand (no source spans)"""
    return ExtractedPrescription(
        medications=[
            Medication(name="Paracetamol", dosage_text="500mg", frequency_text="2 lần/ngày"),
            Medication(name="Vitamin C", dosage_text="1000mg"),
            Medication(name="Omeprazol", dosage_text="20mg", timing=["sáng"], duration_text="2 tuần"),
        ],
        appointments=[
            Appointment(type="Tái khám", date="2025-01-22", time="09:00"),
        ],
        instructions=["Uống nhiều nước"],
    )


@pytest.fixture(autouse=True)
def _empty_bundle_store():
    clear_bundles()
    yield
    clear_bundles()
