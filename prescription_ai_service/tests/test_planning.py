"""
Unit tests for the reminder scheduler
"""

import datetime as dt
import logging

import pytest

from app.schemas.models import Appointment, ExtractedPrescription, Medication
from app.services.extraction import extract_prescription
from app.services.planning import (
    DEFAULT_TIMES,
    filter_reminders_by_date_range,
    generate_reminders,
    group_reminders_by_date,
    parse_duration_days,
    spread_times,
    times_for_medication,
)


def _for(schedule, name):
    return [r for r in schedule.medications if r.ref_name == name]


def test_example_scenario(start_date):
    """Paracetamol follows its frequency; Vitamin C falls back to the flagged default"""
    data = extract_prescription("1. Paracetamol 500mg 1 Viên 3 lần/ngày Thay băng. 2. Vitamin C 1000mg")
    schedule = generate_reminders(data, start_date=start_date)

    para = _for(schedule, "Paracetamol")
    assert len(para) == 3 * 7
    assert not any(r.is_default_schedule for r in para)
    assert sorted({r.time for r in para}) == ["08:00", "13:00", "20:00"]

    vit = _for(schedule, "Vitamin C")
    assert len(vit) == 3 * 7
    assert all(r.is_default_schedule for r in vit)
    assert sorted({r.time for r in vit}) == DEFAULT_TIMES

    review = schedule.summary.medications_needing_review
    assert [item.name for item in review] == ["Vitamin C"]
    assert review[0].source_span_index == 1


def test_default_flag_is_exact(manual_prescription, start_date):
    """Only the medication with neither timing nor frequency is flagged"""
    schedule = generate_reminders(manual_prescription, start_date=start_date)
    flagged = {r.ref_name for r in schedule.medications if r.is_default_schedule}
    assert flagged == {"Vitamin C"}
    assert schedule.summary.medications_with_default_schedule == 1
    assert len(schedule.summary.medications_needing_review) == 1


def test_frequency_text_without_count_is_parsed(manual_prescription, start_date):
    schedule = generate_reminders(manual_prescription, start_date=start_date)
    para = _for(schedule, "Paracetamol")
    assert len(para) == 2 * 7
    assert {r.time for r in para} == {"08:00", "20:00"}


def test_timing_and_duration(manual_prescription, start_date):
    schedule = generate_reminders(manual_prescription, start_date=start_date)
    omep = _for(schedule, "Omeprazol")
    assert len(omep) == 14
    assert {r.time for r in omep} == {"07:00"}
    assert omep[-1].date == start_date + dt.timedelta(days=13)


def test_default_horizon_counted(manual_prescription, start_date):
    schedule = generate_reminders(manual_prescription, start_date=start_date)
    # Paracetamol and Vitamin C carry no duration
    assert schedule.summary.medications_with_default_duration == 2


def test_appointment_single_instance(manual_prescription, start_date):
    schedule = generate_reminders(manual_prescription, start_date=start_date)
    assert len(schedule.appointments) == 1
    apt = schedule.appointments[0]
    assert apt.date == dt.date(2025, 1, 22)
    assert apt.time == "09:00"
    assert apt.kind == "appointment"


def test_appointment_without_time_uses_morning(start_date):
    data = ExtractedPrescription(appointments=[Appointment(date="22/01/2025")])
    schedule = generate_reminders(data, start_date=start_date)
    assert schedule.appointments[0].time == "08:00"


def test_malformed_instances_are_skipped(start_date):
    """Bad dates or times are dropped and counted, never raised"""
    data = ExtractedPrescription(appointments=[
        Appointment(date="32/13/2025"),
        Appointment(date="2025-01-20", time="25:99"),
        Appointment(date="2025-01-21"),
        Appointment(),
    ])
    schedule = generate_reminders(data, start_date=start_date)
    assert schedule.summary.skipped == 2
    assert len(schedule.appointments) == 1


def test_summary_totals_and_date_range(manual_prescription, start_date):
    schedule = generate_reminders(manual_prescription, start_date=start_date)
    s = schedule.summary
    assert s.total_medication_reminders == 14 + 21 + 14
    assert s.total_appointment_reminders == 1
    assert s.total_reminders == 50
    assert s.date_range.start == start_date
    assert s.date_range.end == dt.date(2025, 1, 28)


def test_output_sorted_by_date_time_name(manual_prescription, start_date):
    meds = generate_reminders(manual_prescription, start_date=start_date).medications
    keys = [(r.date, r.time, r.ref_name) for r in meds]
    assert keys == sorted(keys)
    assert all(r.enabled for r in meds)
    assert len({r.id for r in meds}) == len(meds)


@pytest.mark.parametrize("text, days", [
    ("7 ngày", 7),
    ("x 10 ngay", 10),
    ("2 tuần", 14),
    ("1 tháng", 30),
    ("400 ngày", None),
    ("0 ngày", None),
    (None, None),
])
def test_parse_duration_days(text, days):
    assert parse_duration_days(text) == days


def test_manual_english_and_literal_timing():
    med = Medication(name="Metformin", timing=["morning", "21:30", "bogus"])
    times, is_default = times_for_medication(med)
    assert times == ["07:00", "21:30"]
    assert not is_default


@pytest.mark.parametrize("med", [
    Medication(name="Loratadin", frequency_text="khi cần"),
    Medication(name="Loratadin", timing=["bogus"]),
    Medication(name="Loratadin", timing=["bogus"], frequency_text="khi cần"),
])
def test_unusable_timing_or_frequency_is_flagged(med, start_date):
    """A frequency with no count or timing with no known word counts as absent"""
    times, is_default = times_for_medication(med)
    assert times == DEFAULT_TIMES
    assert is_default

    schedule = generate_reminders(ExtractedPrescription(medications=[med]), start_date=start_date)
    assert {r.is_default_schedule for r in schedule.medications} == {True}
    assert schedule.summary.medications_with_default_schedule == 1
    review = schedule.summary.medications_needing_review
    assert [item.name for item in review] == ["Loratadin"]
    assert review[0].code == "default_schedule"
    assert "Không xác định được giờ uống" in review[0].reason


def test_frequency_above_table_is_spread_and_reviewed(start_date):
    """'5 lần/ngày' gets five evenly spaced doses and a review item, never the 3-dose default"""
    data = extract_prescription("1. Amoxicillin 500mg 5 lần/ngày")
    assert data.medications[0].frequency_count == 5

    schedule = generate_reminders(data, start_date=start_date)
    day_one = [r.time for r in schedule.medications if r.date == start_date]
    assert day_one == ["06:00", "10:00", "14:00", "18:00", "22:00"]
    assert not any(r.is_default_schedule for r in schedule.medications)
    assert schedule.summary.medications_with_default_schedule == 0

    review = schedule.summary.medications_needing_review
    assert len(review) == 1
    assert review[0].code == "spread_frequency"
    assert "5 lần/ngày" in review[0].reason


def test_spread_times_are_distinct_and_in_window():
    for count in range(5, 13):
        times = spread_times(count)
        assert len(set(times)) == count
        assert times[0] == "06:00"
        assert times == sorted(times)
        assert times[-1] <= "22:00"


def test_implausible_frequency_falls_back_to_flagged_default():
    times, is_default = times_for_medication(Medication(name="Amoxicillin", frequency_count=30))
    assert times == DEFAULT_TIMES
    assert is_default


@pytest.mark.parametrize("written, expected", [
    ("14h30", "14:30"),
    ("8:30 PM", "20:30"),
    ("9 giờ", "09:00"),
])
def test_manual_appointment_time_is_normalized(written, expected, start_date):
    data = ExtractedPrescription(appointments=[Appointment(date="2025-01-22", time=written)])
    schedule = generate_reminders(data, start_date=start_date)
    assert schedule.summary.skipped == 0
    assert schedule.appointments[0].time == expected


def test_group_and_filter_helpers(manual_prescription, start_date):
    schedule = generate_reminders(manual_prescription, start_date=start_date)
    everything = schedule.medications + schedule.appointments
    grouped = group_reminders_by_date(everything)
    assert list(grouped)[0] == "2025-01-15"
    assert len(grouped["2025-01-15"]) == 2 + 3 + 1

    one_day = filter_reminders_by_date_range(everything, start_date, start_date)
    assert len(one_day) == 6


def test_injected_logger_receives_summary(manual_prescription, start_date, caplog):
    log = logging.getLogger("test.planning")
    with caplog.at_level(logging.INFO, logger="test.planning"):
        generate_reminders(manual_prescription, start_date=start_date, logger=log)
    assert any(r.message == "reminders generated" for r in caplog.records)
