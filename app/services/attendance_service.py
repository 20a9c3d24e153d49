"""
Payroll Back Office - Attendance Service

Daily check-in/check-out capture and the shift metrics derived from it.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.attendance import AttendanceRecord, AttendanceStatus
from app.models.employee import Employee
from app.utils.error_handling import (
    BusinessRuleException,
    DuplicateAttendanceException,
    InvalidDateRangeException,
    NotFoundException,
)

logger = logging.getLogger(__name__)


TWO_PLACES = Decimal("0.01")


def local_wall_clock(at: Optional[datetime] = None) -> datetime:
    """
    Naive wall-clock time in the configured zone.

    Aware values are converted to that zone first; naive values are taken
    as already local. None means now.
    """
    zone = ZoneInfo(settings.timezone)
    if at is None:
        at = datetime.now(zone)
    if at.tzinfo is not None:
        at = at.astimezone(zone).replace(tzinfo=None)
    return at


def _hours(delta: timedelta) -> Decimal:
    return Decimal(str(delta.total_seconds())) / Decimal("3600")


def classify_check_in(at: datetime) -> AttendanceStatus:
    """present up to the late threshold, late after it, absent after the absent threshold."""
    clock = local_wall_clock(at).time()
    if clock > settings.absent_threshold:
        return AttendanceStatus.ABSENT
    if clock > settings.late_threshold:
        return AttendanceStatus.LATE
    return AttendanceStatus.PRESENT


@dataclass
class ShiftMetrics:
    total_hours: Decimal
    late_minutes: int
    undertime_minutes: int
    overtime_hours: Decimal
    night_differential_hours: Decimal


def night_overlap_hours(check_in: datetime, check_out: datetime) -> Decimal:
    """Hours of [check_in, check_out] inside the night window (wraps midnight)."""
    check_in, check_out = local_wall_clock(check_in), local_wall_clock(check_out)
    total = timedelta()
    day = check_in.date() - timedelta(days=1)
    while day <= check_out.date():
        window_start = datetime.combine(day, settings.night_window_start)
        window_end = datetime.combine(day, settings.night_window_end)
        if window_end <= window_start:
            window_end += timedelta(days=1)
        start = max(check_in, window_start)
        end = min(check_out, window_end)
        if end > start:
            total += end - start
        day += timedelta(days=1)
    return _hours(total)


def derive_shift_metrics(check_in: datetime, check_out: datetime) -> ShiftMetrics:
    """Tardiness, undertime, overtime and night hours for one worked day."""
    check_in, check_out = local_wall_clock(check_in), local_wall_clock(check_out)
    work_day = check_in.date()
    shift_start = datetime.combine(work_day, settings.shift_start)
    shift_end = datetime.combine(work_day, settings.shift_end)

    late_minutes = 0
    if check_in.time() > settings.late_threshold:
        late_minutes = int((check_in - shift_start).total_seconds() // 60)

    undertime_minutes = 0
    if check_out < shift_end:
        undertime_minutes = int((shift_end - check_out).total_seconds() // 60)

    overtime = Decimal("0")
    if check_out > shift_end:
        overtime = _hours(check_out - max(shift_end, check_in))

    return ShiftMetrics(
        total_hours=_hours(check_out - check_in).quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
        late_minutes=late_minutes,
        undertime_minutes=undertime_minutes,
        overtime_hours=overtime.quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
        night_differential_hours=night_overlap_hours(check_in, check_out).quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
    )


def apply_times(record: AttendanceRecord, check_in: datetime, check_out: datetime) -> AttendanceRecord:
    """Set both timestamps and every derived field on a record."""
    check_in, check_out = local_wall_clock(check_in), local_wall_clock(check_out)
    metrics = derive_shift_metrics(check_in, check_out)
    record.check_in = check_in
    record.check_out = check_out
    record.total_hours = metrics.total_hours
    record.late_minutes = metrics.late_minutes
    record.undertime_minutes = metrics.undertime_minutes
    record.overtime_hours = metrics.overtime_hours
    record.night_differential_hours = metrics.night_differential_hours
    record.status = AttendanceStatus.CHECKED_OUT
    return record


class AttendanceService:
    """Attendance capture."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_record(self, employee_id: uuid.UUID, work_date: date) -> Optional[AttendanceRecord]:
        result = await self.db.execute(
            select(AttendanceRecord).where(
                and_(
                    AttendanceRecord.employee_id == employee_id,
                    AttendanceRecord.work_date == work_date,
                )
            )
        )
        return result.scalar_one_or_none()

    async def check_in(
        self,
        employee: Employee,
        at: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> AttendanceRecord:
        at = local_wall_clock(at)
        work_date = at.date()
        # Read before commit; a rollback expires the instance
        employee_id = employee.id

        if await self.get_record(employee_id, work_date) is not None:
            raise DuplicateAttendanceException(employee_id, work_date)

        record = AttendanceRecord(
            employee_id=employee_id,
            work_date=work_date,
            check_in=at,
            status=classify_check_in(at),
            notes=notes,
        )
        self.db.add(record)
        try:
            await self.db.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent check-in; the unique key decides
            await self.db.rollback()
            logger.warning(f"Concurrent check-in rejected for employee {employee_id} on {work_date}")
            raise DuplicateAttendanceException(employee_id, work_date) from e
        await self.db.refresh(record)

        logger.info(f"Employee {employee_id} checked in at {at.isoformat()} ({record.status.value})")
        return record

    async def check_out(self, employee: Employee, at: Optional[datetime] = None) -> AttendanceRecord:
        at = local_wall_clock(at)
        record = await self.get_record(employee.id, at.date())
        if record is None or record.check_in is None:
            raise NotFoundException("AttendanceRecord", message="No check-in found for today")
        if record.check_out is not None:
            raise BusinessRuleException(
                "Already checked out for today",
                rule="SINGLE_CHECK_OUT",
            )
        checked_in = local_wall_clock(record.check_in)
        if at <= checked_in:
            raise InvalidDateRangeException(
                record.check_in.isoformat(),
                at.isoformat(),
                message="Check-out must be after check-in",
            )

        apply_times(record, checked_in, at)
        await self.db.commit()
        await self.db.refresh(record)

        logger.info(f"Employee {employee.id} checked out at {at.isoformat()} ({record.total_hours}h)")
        return record

    async def list_records(
        self,
        employee_id: uuid.UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[AttendanceRecord]:
        if start_date and end_date and start_date > end_date:
            raise InvalidDateRangeException(start_date, end_date)

        query = select(AttendanceRecord).where(AttendanceRecord.employee_id == employee_id)
        if start_date:
            query = query.where(AttendanceRecord.work_date >= start_date)
        if end_date:
            query = query.where(AttendanceRecord.work_date <= end_date)
        result = await self.db.execute(query.order_by(AttendanceRecord.work_date.desc()))
        return list(result.scalars().all())
