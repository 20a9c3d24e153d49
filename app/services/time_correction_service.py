"""
Payroll Back Office - Time Correction Service

Employees ask for a corrected check-in/out on one of their own attendance
rows. The correction runs through the shared approval chain and is written
onto the attendance row only once the chain is fully approved.
"""

import logging
import uuid
from datetime import date
from typing import List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import commit_or_conflict
from app.models.attendance import AttendanceRecord
from app.models.employee import Employee
from app.models.payroll import PayrollPeriod, PayrollPeriodStatus
from app.models.time_correction import TimeCorrectionRequest
from app.schemas.attendance import TimeCorrectionCreate
from app.services.approval_chain import TERMINAL_STATUSES, TIME_CORRECTION_CHAIN, ApprovalChain
from app.services.attendance_service import apply_times, local_wall_clock
from app.utils.error_handling import (
    AppException,
    AuthorizationException,
    NotFoundException,
    PeriodLockedException,
    ValidationException,
)

logger = logging.getLogger(__name__)


LOCKED_PERIOD_STATUSES = (PayrollPeriodStatus.LOCKED, PayrollPeriodStatus.PAYROLL_RUN)


async def find_locked_period(db: AsyncSession, work_date: date) -> Optional[PayrollPeriod]:
    """Locked period whose pay or cutoff window covers ``work_date``."""
    result = await db.execute(
        select(PayrollPeriod).where(
            and_(
                PayrollPeriod.status.in_(LOCKED_PERIOD_STATUSES),
                or_(
                    and_(PayrollPeriod.start_date <= work_date, PayrollPeriod.end_date >= work_date),
                    and_(PayrollPeriod.cutoff_start <= work_date, PayrollPeriod.cutoff_end >= work_date),
                ),
            )
        )
    )
    return result.scalars().first()


class TimeCorrectionService:
    """Time correction requests."""

    def __init__(self, db: AsyncSession, chain: ApprovalChain = TIME_CORRECTION_CHAIN):
        self.db = db
        self.chain = chain

    async def get_request(self, request_id: uuid.UUID) -> TimeCorrectionRequest:
        request = await self.db.get(TimeCorrectionRequest, request_id)
        if request is None:
            raise NotFoundException("TimeCorrectionRequest", request_id)
        return request

    async def _ensure_not_locked(self, work_date: date, operation: str) -> None:
        period = await find_locked_period(self.db, work_date)
        if period is not None:
            raise PeriodLockedException(period.name, operation)

    async def submit(self, employee: Employee, data: TimeCorrectionCreate) -> TimeCorrectionRequest:
        attendance = await self.db.get(AttendanceRecord, data.attendance_id)
        if attendance is None:
            raise NotFoundException("AttendanceRecord", data.attendance_id)
        if attendance.employee_id != employee.id:
            raise AuthorizationException("Time corrections can only be requested for your own attendance")
        corrected_in = local_wall_clock(data.corrected_check_in)
        corrected_out = local_wall_clock(data.corrected_check_out)
        if corrected_in.date() != attendance.work_date or corrected_out.date() != attendance.work_date:
            raise ValidationException(
                "Corrected times must fall on the attendance record's work date",
                field="corrected_check_in",
            )
        await self._ensure_not_locked(attendance.work_date, "time correction")

        request = TimeCorrectionRequest(
            employee_id=employee.id,
            attendance_id=attendance.id,
            work_date=attendance.work_date,
            original_check_in=attendance.check_in,
            original_check_out=attendance.check_out,
            corrected_check_in=corrected_in,
            corrected_check_out=corrected_out,
            reason=data.reason,
        )
        self.chain.start(request, employee.id, employee.role)
        self.db.add(request)
        await self.db.commit()
        await self.db.refresh(request)

        logger.info(f"Time correction {request.id} submitted by {employee.id} for {attendance.work_date}")
        return request

    async def approve(
        self,
        request_id: uuid.UUID,
        approver: Employee,
        comment: Optional[str] = None,
    ) -> TimeCorrectionRequest:
        request = await self.get_request(request_id)
        try:
            outcome = self.chain.approve(
                request,
                actor_id=approver.id,
                actor_role=approver.role,
                comment=comment,
                actor_name=approver.full_name,
            )
            if outcome.approved:
                await self._apply(request)
        except AppException:
            await self.db.rollback()
            raise

        await commit_or_conflict(self.db, "TimeCorrectionRequest")
        await self.db.refresh(request)
        return request

    async def reject(self, request_id: uuid.UUID, approver: Employee, reason: str) -> TimeCorrectionRequest:
        request = await self.get_request(request_id)
        try:
            self.chain.reject(
                request,
                actor_id=approver.id,
                actor_role=approver.role,
                reason=reason,
                actor_name=approver.full_name,
            )
        except AppException:
            await self.db.rollback()
            raise

        await commit_or_conflict(self.db, "TimeCorrectionRequest")
        await self.db.refresh(request)
        return request

    async def _apply(self, request: TimeCorrectionRequest) -> None:
        await self._ensure_not_locked(request.work_date, "time correction")
        attendance = await self.db.get(AttendanceRecord, request.attendance_id)
        if attendance is None:
            raise NotFoundException("AttendanceRecord", request.attendance_id)

        apply_times(attendance, request.corrected_check_in, request.corrected_check_out)
        attendance.is_corrected = True
        logger.info(f"Attendance {attendance.id} corrected by request {request.id}")

    async def list_for_employee(self, employee_id: uuid.UUID) -> List[TimeCorrectionRequest]:
        result = await self.db.execute(
            select(TimeCorrectionRequest)
            .where(TimeCorrectionRequest.employee_id == employee_id)
            .order_by(TimeCorrectionRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def pending_for(self, approver: Employee) -> List[TimeCorrectionRequest]:
        slots = self.chain.pending_levels_for(approver.role)
        if not slots:
            return []
        result = await self.db.execute(
            select(TimeCorrectionRequest)
            .where(
                and_(
                    TimeCorrectionRequest.status.not_in(TERMINAL_STATUSES),
                    TimeCorrectionRequest.employee_id != approver.id,
                    or_(*[
                        and_(
                            TimeCorrectionRequest.submitter_role == role,
                            TimeCorrectionRequest.current_approval_level == level,
                        )
                        for role, level in slots
                    ]),
                )
            )
            .order_by(TimeCorrectionRequest.created_at)
        )
        return list(result.scalars().all())
