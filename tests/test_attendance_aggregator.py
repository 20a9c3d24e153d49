"""
Payroll Back Office - Attendance Aggregator Tests

Period totals from daily attendance, approved leave and declared holidays.
October 2026: the 1st is a Thursday, the 4th and 11th are Sundays.
"""

from datetime import date, datetime, time
from decimal import Decimal
from uuid import uuid4

import pytest

from app.models.attendance import AttendanceRecord
from app.models.leave import LeaveRequest, LeaveType
from app.models.payroll import PayrollPeriod
from app.services.attendance_aggregator import (
    AttendanceAggregator,
    AttendanceAggregationService,
    count_working_days,
)
from app.utils.error_handling import AttendanceDataMissingException

from conftest import create_attendance, create_employee


SUNDAY = 6
PAY_START = date(2026, 10, 1)
PAY_END = date(2026, 10, 15)


def row(day: date, complete: bool = True, late: int = 0, overtime: str = "0", night: str = "0") -> AttendanceRecord:
    return AttendanceRecord(
        employee_id=uuid4(),
        work_date=day,
        check_in=datetime.combine(day, time(8, 0)),
        check_out=datetime.combine(day, time(17, 0)) if complete else None,
        late_minutes=late,
        undertime_minutes=0,
        overtime_hours=Decimal(overtime),
        night_differential_hours=Decimal(night),
    )


def leave(leave_type: LeaveType, start: date, end: date, status: str = "approved") -> LeaveRequest:
    return LeaveRequest(
        employee_id=uuid4(),
        leave_type=leave_type,
        start_date=start,
        end_date=end,
        number_of_days=0,
        reason="test",
        status=status,
    )


@pytest.fixture
def aggregator() -> AttendanceAggregator:
    return AttendanceAggregator(rest_weekday=SUNDAY, holiday_hours=8, fallback_policy="assume_full")


class TestWorkingDays:

    def test_rest_day_excluded(self):
        assert count_working_days(PAY_START, PAY_END, SUNDAY) == 13

    def test_single_rest_day_counts_zero(self):
        assert count_working_days(date(2026, 10, 4), date(2026, 10, 4), SUNDAY) == 0


class TestAttendanceTotals:
    """Work days come from the rows themselves."""

    def test_complete_rows_are_present_days(self, aggregator):
        records = [
            row(date(2026, 10, 1), late=15, overtime="1.5"),
            row(date(2026, 10, 2), night="2"),
            row(date(2026, 10, 3), complete=False),
        ]

        summary = aggregator.aggregate_attendance(uuid4(), records, PAY_START, PAY_END, PAY_START, PAY_END)

        assert summary.work_days == 3
        assert summary.present_days == 2
        assert summary.absence_days == 1
        assert summary.late_minutes == 15
        assert summary.overtime_hours == Decimal("1.5")
        assert summary.night_differential_hours == Decimal("2")
        assert summary.assumed_full_attendance is False

    def test_rest_day_rows_are_skipped(self, aggregator):
        records = [row(date(2026, 10, 4)), row(date(2026, 10, 5))]

        summary = aggregator.aggregate_attendance(uuid4(), records, PAY_START, PAY_END, PAY_START, PAY_END)

        assert summary.work_days == 1
        assert summary.present_days == 1

    def test_rows_outside_cutoff_are_ignored(self, aggregator):
        records = [row(date(2026, 9, 28)), row(date(2026, 10, 2))]

        summary = aggregator.aggregate_attendance(
            uuid4(), records, date(2026, 9, 29), date(2026, 10, 13), PAY_START, PAY_END
        )

        assert summary.work_days == 1

    def test_no_rows_assumes_full_attendance(self, aggregator):
        summary = aggregator.aggregate_attendance(uuid4(), [], PAY_START, PAY_END, PAY_START, PAY_END)

        assert summary.assumed_full_attendance is True
        assert summary.present_days == 13
        assert summary.work_days == 13
        assert summary.absence_days == 0

    def test_assumed_attendance_is_at_least_one_day(self, aggregator):
        sunday = date(2026, 10, 4)

        summary = aggregator.aggregate_attendance(uuid4(), [], sunday, sunday, sunday, sunday)

        assert summary.present_days == 1

    def test_require_attendance_policy_raises(self):
        strict = AttendanceAggregator(rest_weekday=SUNDAY, fallback_policy="require_attendance")

        with pytest.raises(AttendanceDataMissingException):
            strict.aggregate_attendance(uuid4(), [], PAY_START, PAY_END, PAY_START, PAY_END)


class TestLeaveTotals:
    """Approved leave clipped to the pay window."""

    def test_paid_and_unpaid_split(self, aggregator):
        leaves = [
            leave(LeaveType.SICK, date(2026, 10, 5), date(2026, 10, 6)),
            leave(LeaveType.VACATION, date(2026, 10, 7), date(2026, 10, 7)),
            leave(LeaveType.UNPAID, date(2026, 10, 8), date(2026, 10, 9)),
        ]

        summary = aggregator.aggregate_leave(leaves, PAY_START, PAY_END)

        assert summary.paid_leave_days == 3
        assert summary.sick_leave_days == 2
        assert summary.vacation_leave_days == 1
        assert summary.unpaid_leave_days == 2

    def test_leave_clipped_and_rest_day_excluded(self, aggregator):
        # Oct 10 (Sat) to Oct 20; inside the window: 10, 12-15 (11th is Sunday)
        summary = aggregator.aggregate_leave(
            [leave(LeaveType.PERSONAL, date(2026, 10, 10), date(2026, 10, 20))],
            PAY_START,
            PAY_END,
        )

        assert summary.paid_leave_days == 5

    def test_unapproved_leave_ignored(self, aggregator):
        summary = aggregator.aggregate_leave(
            [leave(LeaveType.SICK, date(2026, 10, 5), date(2026, 10, 6), status="approved_by_hr_staff")],
            PAY_START,
            PAY_END,
        )

        assert summary.paid_leave_days == 0


class TestHolidayTotals:
    """Declared holidays count only when the employee checked in."""

    def test_worked_holidays_by_type(self, aggregator):
        special_days = [
            {"date": "2026-10-02", "type": "special_holiday", "name": "Founding Day"},
            {"date": "2026-10-09", "type": "regular_holiday", "name": "Heroes Day"},
            {"date": "2026-10-12", "type": "regular_holiday", "name": "Not worked"},
        ]
        records = [row(date(2026, 10, 2)), row(date(2026, 10, 9))]

        summary = aggregator.aggregate_holidays(special_days, records, PAY_START, PAY_END)

        assert summary.special_holiday_hours == Decimal("8")
        assert summary.regular_holiday_hours == Decimal("8")
        assert summary.holidays_worked == ["2026-10-02", "2026-10-09"]

    def test_holiday_outside_pay_window_ignored(self, aggregator):
        special_days = [{"date": "2026-10-20", "type": "special_holiday"}]
        records = [row(date(2026, 10, 20))]

        summary = aggregator.aggregate_holidays(special_days, records, PAY_START, PAY_END)

        assert summary.special_holiday_hours == Decimal("0")

    def test_aggregate_uses_period_windows(self, aggregator):
        period = PayrollPeriod(
            name="Oct A",
            start_date=PAY_START,
            end_date=PAY_END,
            cutoff_start=date(2026, 9, 29),
            cutoff_end=date(2026, 10, 13),
            special_days=[],
        )
        records = [row(date(2026, 9, 29)), row(date(2026, 10, 14))]

        result = aggregator.aggregate(uuid4(), period, records, [])

        assert result.attendance.work_days == 1
        assert result.to_dict()["leave"]["paid_leave_days"] == 0


class TestAggregationService:
    """Database-backed fetch plus aggregation."""

    @pytest.mark.asyncio
    async def test_aggregate_for_period(self, db_session):
        worker = await create_employee(db_session, "AGG-001")
        await create_attendance(db_session, worker, date(2026, 10, 1))
        await create_attendance(db_session, worker, date(2026, 10, 2), check_in="09:30")
        period = PayrollPeriod(
            name="Oct A",
            start_date=PAY_START,
            end_date=PAY_END,
            cutoff_start=PAY_START,
            cutoff_end=PAY_END,
            special_days=[],
        )

        service = AttendanceAggregationService(
            db_session,
            AttendanceAggregator(rest_weekday=SUNDAY, fallback_policy="assume_full"),
        )
        result = await service.aggregate_for_period(worker.id, period)

        assert result.attendance.present_days == 2
        assert result.attendance.late_minutes == 90
        assert await service.has_attendance(PAY_START, PAY_END) is True
        assert await service.has_attendance(date(2026, 11, 1), date(2026, 11, 15)) is False
