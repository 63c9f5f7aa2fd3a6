from datetime import date, datetime, time, timezone
from decimal import Decimal
import pytest

from academy.core.validations import clean_phone_number, SESSION_DURATION_OPTIONS
from academy.staff.crud.sessions import times_overlap
from academy.staff.crud.coaches import coach_display_status, is_late_time_in
from academy.staff.crud.dashboard import attendance_rate
from academy.staff.models.coach_attendance import CoachSessionTime, CoachAttendanceRecord
from academy.students.crud.attendance import requires_duration
from academy.students.crud.calculations import (
    calculate_balance,
    calculate_progress,
    calculate_remaining,
    in_cycle,
    package_status,
    renewal_reason,
)

TODAY = date(2025, 7, 10)


def test_balance_subtracts_payments_and_adds_charges():
    assert calculate_balance(5000, 1000, 1500, 250) == Decimal("2750.00")


def test_balance_never_negative():
    assert calculate_balance(1000, 800, 500, 0) == Decimal("0.00")


def test_balance_accepts_decimal_and_none():
    assert calculate_balance(Decimal("100.50"), None, None, Decimal("0.25")) == Decimal("100.75")


def test_remaining_and_progress():
    assert calculate_remaining(8, 2.5) == 5.5
    assert calculate_remaining(4, 6) == 0.0
    assert calculate_progress(8, 2) == 25.0
    assert calculate_progress(0, 3) == 0.0
    assert calculate_progress(4, 9) == 100.0


def test_package_status_completed_when_nothing_left():
    assert package_status(8, 8, 0, date(2025, 8, 1), TODAY) == "completed"


def test_package_status_expired_after_expiration_date():
    assert package_status(8, 3, 5, date(2025, 7, 9), TODAY) == "expired"


def test_package_status_ongoing_on_expiration_day():
    assert package_status(8, 3, 5, TODAY, TODAY) == "ongoing"
    assert package_status(8, 3, 5, None, TODAY) == "ongoing"


def test_renewal_reason_follows_status():
    assert renewal_reason("completed") == "renewal - completed"
    assert renewal_reason("expired") == "renewal - expired"
    assert renewal_reason("ongoing") == "renewal - early"


def test_in_cycle_prefers_tag_over_dates():
    assert in_cycle(2, date(2020, 1, 1), 2, TODAY, None)
    assert not in_cycle(1, TODAY, 2, None, None)


def test_in_cycle_untagged_uses_window():
    start, end = date(2025, 7, 1), date(2025, 7, 31)
    assert in_cycle(None, TODAY, 1, start, end)
    assert not in_cycle(None, date(2025, 6, 30), 1, start, end)
    assert not in_cycle(None, date(2025, 8, 1), 1, start, end)
    assert in_cycle(None, date(2000, 1, 1), 1, None, None)


def test_times_overlap_is_half_open():
    assert times_overlap(time(9), time(10), time(9, 30), time(11))
    assert not times_overlap(time(9), time(10), time(10), time(11))
    assert times_overlap(time(9), time(12), time(10), time(11))


def test_coach_display_status():
    done = CoachSessionTime(
        time_in=datetime(2025, 7, 10, 1, 0, tzinfo=timezone.utc),
        time_out=datetime(2025, 7, 10, 2, 0, tzinfo=timezone.utc),
    )
    half = CoachSessionTime(time_in=datetime(2025, 7, 10, 1, 0, tzinfo=timezone.utc))

    assert coach_display_status(done, None) == "present"
    assert coach_display_status(half, None) == "pending"
    assert coach_display_status(None, None) == "pending"
    assert coach_display_status(done, CoachAttendanceRecord(status="absent")) == "absent"


def test_is_late_compares_in_academy_timezone():
    # 09:00 in Manila is 01:00 UTC
    on_time = datetime(2025, 7, 10, 0, 55, tzinfo=timezone.utc)
    late = datetime(2025, 7, 10, 1, 5, tzinfo=timezone.utc)

    assert not is_late_time_in(TODAY, time(9), on_time)
    assert is_late_time_in(TODAY, time(9), late)
    assert not is_late_time_in(TODAY, time(9), None)


def test_attendance_rate_rounds():
    assert attendance_rate(0, 0) == 0
    assert attendance_rate(2, 3) == 67
    assert attendance_rate(3, 3) == 100


def test_personal_packages_require_duration():
    assert requires_duration("Personal Training 10")
    assert requires_duration("semi-PERSONAL")
    assert not requires_duration("Group 8")
    assert not requires_duration(None)


def test_duration_options_are_half_hours():
    assert SESSION_DURATION_OPTIONS[0] == 0.5
    assert SESSION_DURATION_OPTIONS[-1] == 6.0
    assert len(SESSION_DURATION_OPTIONS) == 12


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("+63 917 123 4567", "+639171234567"),
        ("(02) 8123-4567", "0281234567"),
        ("", None),
        (None, None),
    ],
)
def test_clean_phone_number(raw, expected):
    assert clean_phone_number(raw) == expected


def test_clean_phone_number_rejects_short_numbers():
    with pytest.raises(ValueError):
        clean_phone_number("12-34")
