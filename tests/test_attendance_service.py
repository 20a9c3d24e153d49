"""
Payroll Back Office - Attendance Service Tests
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.models.attendance import AttendanceStatus
from app.services.attendance_service import (
    AttendanceService,
    classify_check_in,
    derive_shift_metrics,
    local_wall_clock,
)
from app.utils.error_handling import (
    BusinessRuleException,
    DuplicateAttendanceException,
    InvalidDateRangeException,
    NotFoundException,
)


DAY = date(2026, 10, 20)


def at(clock: str, day: date = DAY) -> datetime:
    hour, minute = clock.split(":")
    return datetime(day.year, day.month, day.day, int(hour), int(minute))


class TestCheckInClassification:

    def test_on_time(self):
        assert classify_check_in(at("09:00")) == AttendanceStatus.PRESENT

    def test_late_after_nine(self):
        assert classify_check_in(at("09:01")) == AttendanceStatus.LATE

    def test_absent_after_half_past_one(self):
        assert classify_check_in(at("13:31")) == AttendanceStatus.ABSENT


class TestShiftMetrics:
    """Tardiness, undertime, overtime and night hours."""

    def test_regular_shift(self):
        metrics = derive_shift_metrics(at("08:00"), at("17:00"))

        assert metrics.total_hours == Decimal("9.00")
        assert metrics.late_minutes == 0
        assert metrics.undertime_minutes == 0
        assert metrics.overtime_hours == Decimal("0")

    def test_late_counts_from_shift_start(self):
        metrics = derive_shift_metrics(at("09:30"), at("16:00"))

        assert metrics.late_minutes == 90
        assert metrics.undertime_minutes == 60

    def test_within_grace_is_not_late(self):
        assert derive_shift_metrics(at("08:45"), at("17:00")).late_minutes == 0

    def test_overtime_and_night_hours(self):
        metrics = derive_shift_metrics(at("08:00"), at("23:00"))

        assert metrics.overtime_hours == Decimal("6.00")
        assert metrics.night_differential_hours == Decimal("1.00")

    def test_night_window_across_midnight(self):
        metrics = derive_shift_metrics(at("20:00"), datetime(2026, 10, 21, 4, 0))

        assert metrics.night_differential_hours == Decimal("6.00")


class TestAttendanceService:

    @pytest.mark.asyncio
    async def test_check_in_then_out(self, db_session, employee):
        service = AttendanceService(db_session)

        record = await service.check_in(employee, at("08:10"), notes="Site visit")
        assert record.status == AttendanceStatus.PRESENT
        assert record.work_date == DAY

        record = await service.check_out(employee, at("18:10"))
        assert record.status == AttendanceStatus.CHECKED_OUT
        assert record.overtime_hours == Decimal("1.17")
        assert record.total_hours == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_second_check_in_same_day_fails(self, db_session, employee):
        service = AttendanceService(db_session)
        await service.check_in(employee, at("08:00"))

        with pytest.raises(DuplicateAttendanceException):
            await service.check_in(employee, at("12:00"))

    @pytest.mark.asyncio
    async def test_check_out_without_check_in(self, db_session, employee):
        with pytest.raises(NotFoundException):
            await AttendanceService(db_session).check_out(employee, at("17:00"))

    @pytest.mark.asyncio
    async def test_check_out_twice(self, db_session, employee):
        service = AttendanceService(db_session)
        await service.check_in(employee, at("08:00"))
        await service.check_out(employee, at("17:00"))

        with pytest.raises(BusinessRuleException):
            await service.check_out(employee, at("18:00"))

    @pytest.mark.asyncio
    async def test_check_out_before_check_in(self, db_session, employee):
        service = AttendanceService(db_session)
        await service.check_in(employee, at("10:00"))

        with pytest.raises(InvalidDateRangeException):
            await service.check_out(employee, at("09:00"))

    @pytest.mark.asyncio
    async def test_list_records_in_range(self, db_session, employee):
        service = AttendanceService(db_session)
        await service.check_in(employee, at("08:00", date(2026, 10, 20)))
        await service.check_in(employee, at("08:00", date(2026, 10, 21)))
        await service.check_in(employee, at("08:00", date(2026, 10, 22)))

        records = await service.list_records(employee.id, date(2026, 10, 21), date(2026, 10, 22))

        assert [r.work_date for r in records] == [date(2026, 10, 22), date(2026, 10, 21)]

    @pytest.mark.asyncio
    async def test_list_records_rejects_inverted_range(self, db_session, employee):
        with pytest.raises(InvalidDateRangeException):
            await AttendanceService(db_session).list_records(employee.id, date(2026, 10, 22), date(2026, 10, 21))


class TestTimezoneHandling:
    """Aware timestamps are converted to local wall-clock time before use."""

    def test_aware_value_is_converted_to_local_zone(self):
        assert local_wall_clock(datetime(2026, 10, 20, 0, 0, tzinfo=timezone.utc)) == at("08:00")

    def test_naive_value_is_taken_as_local(self):
        assert local_wall_clock(at("08:00")) == at("08:00")

    def test_default_is_naive(self):
        assert local_wall_clock().tzinfo is None

    def test_shift_metrics_accept_aware_values(self):
        manila = timezone(timedelta(hours=8))
        metrics = derive_shift_metrics(
            datetime(2026, 10, 20, 8, 0, tzinfo=manila),
            datetime(2026, 10, 20, 11, 0, tzinfo=timezone.utc),
        )

        assert metrics.late_minutes == 0
        assert metrics.overtime_hours == Decimal("2.00")

    @pytest.mark.asyncio
    async def test_aware_check_in_and_out(self, db_session, employee):
        service = AttendanceService(db_session)

        record = await service.check_in(employee, datetime(2026, 10, 20, 0, 0, tzinfo=timezone.utc))
        assert record.work_date == DAY
        assert record.check_in == at("08:00")
        assert record.status == AttendanceStatus.PRESENT

        record = await service.check_out(employee, datetime(2026, 10, 20, 9, 0, tzinfo=timezone.utc))
        assert record.check_out == at("17:00")
        assert record.late_minutes == 0
        assert record.overtime_hours == Decimal("0.00")
        assert record.total_hours == Decimal("9.00")

    @pytest.mark.asyncio
    async def test_naive_check_in_then_aware_check_out(self, db_session, employee):
        service = AttendanceService(db_session)
        await service.check_in(employee, at("08:00"))

        record = await service.check_out(employee, datetime(2026, 10, 20, 10, 0, tzinfo=timezone.utc))

        assert record.check_out == at("18:00")
        assert record.overtime_hours == Decimal("1.00")

    @pytest.mark.asyncio
    async def test_utc_date_differs_from_local_work_date(self, db_session, employee):
        record = await AttendanceService(db_session).check_in(
            employee, datetime(2026, 10, 19, 23, 30, tzinfo=timezone.utc)
        )

        assert record.work_date == DAY
        assert record.check_in == at("07:30")
