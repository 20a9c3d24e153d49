"""
Payroll Back Office - Attendance Aggregator

Reduces daily attendance rows, approved leave and declared holidays into
per-employee period totals used by the payroll computer.

Windows:
- attendance totals use the period's cutoff window
- leave totals and the no-attendance fallback use the pay window
- holiday totals use the pay window
"""

import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.attendance import AttendanceRecord
from app.models.leave import LeaveRequest, LeaveType
from app.models.payroll import PayrollPeriod, SpecialDayType
from app.services.approval_chain import STATUS_APPROVED
from app.utils.error_handling import AttendanceDataMissingException

logger = logging.getLogger(__name__)


FALLBACK_ASSUME_FULL = "assume_full"
FALLBACK_REQUIRE_ATTENDANCE = "require_attendance"


def iter_days(start: date, end: date) -> Iterable[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def count_working_days(start: date, end: date, rest_weekday: int) -> int:
    return sum(1 for day in iter_days(start, end) if day.weekday() != rest_weekday)


@dataclass
class AttendanceSummary:
    work_days: int = 0
    present_days: int = 0
    absence_days: int = 0
    late_minutes: int = 0
    undertime_minutes: int = 0
    overtime_hours: Decimal = Decimal("0")
    night_differential_hours: Decimal = Decimal("0")
    assumed_full_attendance: bool = False


@dataclass
class LeaveSummary:
    paid_leave_days: int = 0
    unpaid_leave_days: int = 0
    sick_leave_days: int = 0
    vacation_leave_days: int = 0


@dataclass
class HolidaySummary:
    special_holiday_hours: Decimal = Decimal("0")
    regular_holiday_hours: Decimal = Decimal("0")
    holidays_worked: List[str] = field(default_factory=list)


@dataclass
class PeriodAggregate:
    attendance: AttendanceSummary
    leave: LeaveSummary
    holidays: HolidaySummary

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attendance": asdict(self.attendance),
            "leave": asdict(self.leave),
            "holidays": asdict(self.holidays),
        }


class AttendanceAggregator:
    """
    Pure reduction over already-fetched rows.

    Work days are counted from the attendance rows themselves, skipping the
    weekly rest day. A row is a present day only with both check-in and
    check-out. When there are no rows at all the fallback policy decides:
    ``assume_full`` counts every non-rest day of the pay window as present
    (at least 1) and flags the summary; ``require_attendance`` raises.
    """

    def __init__(
        self,
        rest_weekday: Optional[int] = None,
        holiday_hours: Optional[int] = None,
        fallback_policy: Optional[str] = None,
    ):
        self.rest_weekday = settings.weekly_rest_day if rest_weekday is None else rest_weekday
        self.holiday_hours = Decimal(settings.holiday_hours_assumed if holiday_hours is None else holiday_hours)
        self.fallback_policy = fallback_policy or settings.attendance_fallback_policy

    def aggregate_attendance(
        self,
        employee_id: uuid.UUID,
        records: Sequence[AttendanceRecord],
        cutoff_start: date,
        cutoff_end: date,
        pay_start: date,
        pay_end: date,
    ) -> AttendanceSummary:
        in_window = [r for r in records if cutoff_start <= r.work_date <= cutoff_end]

        if not in_window:
            if self.fallback_policy == FALLBACK_REQUIRE_ATTENDANCE:
                raise AttendanceDataMissingException(employee_id, cutoff_start, cutoff_end)
            assumed = max(count_working_days(pay_start, pay_end, self.rest_weekday), 1)
            logger.warning(
                f"No attendance for employee {employee_id} between {cutoff_start} and {cutoff_end}; "
                f"assuming {assumed} present day(s)"
            )
            return AttendanceSummary(
                work_days=assumed,
                present_days=assumed,
                absence_days=0,
                assumed_full_attendance=True,
            )

        summary = AttendanceSummary()
        for record in in_window:
            if record.work_date.weekday() == self.rest_weekday:
                continue
            summary.work_days += 1
            if not record.is_complete:
                continue
            summary.present_days += 1
            summary.late_minutes += record.late_minutes or 0
            summary.undertime_minutes += record.undertime_minutes or 0
            summary.overtime_hours += Decimal(str(record.overtime_hours or 0))
            summary.night_differential_hours += Decimal(str(record.night_differential_hours or 0))

        summary.absence_days = summary.work_days - summary.present_days
        return summary

    def aggregate_leave(
        self,
        leaves: Sequence[LeaveRequest],
        pay_start: date,
        pay_end: date,
    ) -> LeaveSummary:
        """Approved leave days falling inside the pay window, rest days excluded."""
        summary = LeaveSummary()
        for leave in leaves:
            if leave.status != STATUS_APPROVED:
                continue
            start = max(leave.start_date, pay_start)
            end = min(leave.end_date, pay_end)
            if start > end:
                continue
            days = count_working_days(start, end, self.rest_weekday)

            leave_type = LeaveType(leave.leave_type)
            if leave_type == LeaveType.UNPAID:
                summary.unpaid_leave_days += days
                continue
            summary.paid_leave_days += days
            if leave_type == LeaveType.SICK:
                summary.sick_leave_days += days
            elif leave_type == LeaveType.VACATION:
                summary.vacation_leave_days += days
        return summary

    def aggregate_holidays(
        self,
        special_days: Sequence[Dict[str, Any]],
        records: Sequence[AttendanceRecord],
        pay_start: date,
        pay_end: date,
    ) -> HolidaySummary:
        """Declared holidays with a check-in add the assumed hours to their bucket."""
        checked_in = {r.work_date for r in records if r.check_in is not None}
        summary = HolidaySummary()
        for day in special_days or []:
            holiday_date = day["date"] if isinstance(day["date"], date) else date.fromisoformat(str(day["date"]))
            if not (pay_start <= holiday_date <= pay_end) or holiday_date not in checked_in:
                continue
            day_type = SpecialDayType(day["type"])
            if day_type == SpecialDayType.SPECIAL_HOLIDAY:
                summary.special_holiday_hours += self.holiday_hours
            else:
                summary.regular_holiday_hours += self.holiday_hours
            summary.holidays_worked.append(holiday_date.isoformat())
        return summary

    def aggregate(
        self,
        employee_id: uuid.UUID,
        period: PayrollPeriod,
        records: Sequence[AttendanceRecord],
        leaves: Sequence[LeaveRequest],
    ) -> PeriodAggregate:
        return PeriodAggregate(
            attendance=self.aggregate_attendance(
                employee_id,
                records,
                period.cutoff_start,
                period.cutoff_end,
                period.start_date,
                period.end_date,
            ),
            leave=self.aggregate_leave(leaves, period.start_date, period.end_date),
            holidays=self.aggregate_holidays(period.special_days, records, period.start_date, period.end_date),
        )


class AttendanceAggregationService:
    """Fetches attendance and leave rows for one employee and aggregates them."""

    def __init__(self, db: AsyncSession, aggregator: Optional[AttendanceAggregator] = None):
        self.db = db
        self.aggregator = aggregator or AttendanceAggregator()

    async def fetch_attendance(self, employee_id: uuid.UUID, start: date, end: date) -> List[AttendanceRecord]:
        result = await self.db.execute(
            select(AttendanceRecord)
            .where(
                and_(
                    AttendanceRecord.employee_id == employee_id,
                    AttendanceRecord.work_date >= start,
                    AttendanceRecord.work_date <= end,
                )
            )
            .order_by(AttendanceRecord.work_date)
        )
        return list(result.scalars().all())

    async def fetch_approved_leave(self, employee_id: uuid.UUID, start: date, end: date) -> List[LeaveRequest]:
        result = await self.db.execute(
            select(LeaveRequest).where(
                and_(
                    LeaveRequest.employee_id == employee_id,
                    LeaveRequest.status == STATUS_APPROVED,
                    LeaveRequest.start_date <= end,
                    LeaveRequest.end_date >= start,
                )
            )
        )
        return list(result.scalars().all())

    async def aggregate_for_period(self, employee_id: uuid.UUID, period: PayrollPeriod) -> PeriodAggregate:
        window_start = min(period.cutoff_start, period.start_date)
        window_end = max(period.cutoff_end, period.end_date)
        records = await self.fetch_attendance(employee_id, window_start, window_end)
        leaves = await self.fetch_approved_leave(employee_id, period.start_date, period.end_date)
        return self.aggregator.aggregate(employee_id, period, records, leaves)

    async def has_attendance(self, start: date, end: date) -> bool:
        result = await self.db.execute(
            select(AttendanceRecord.id)
            .where(and_(AttendanceRecord.work_date >= start, AttendanceRecord.work_date <= end))
            .limit(1)
        )
        return result.first() is not None
