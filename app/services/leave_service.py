"""
Payroll Back Office - Leave Service

Leave submission and approval. Routing and status changes go through the
shared approval chain; the balance is debited only when the chain reaches
its terminal approved state.
"""

import logging
import uuid
from datetime import date
from typing import List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import commit_or_conflict
from app.models.employee import Employee
from app.models.leave import LeaveRequest, LeaveType
from app.schemas.leave import LeaveRequestCreate
from app.services.approval_chain import LEAVE_CHAIN, TERMINAL_STATUSES, ApprovalChain
from app.services.attendance_aggregator import count_working_days
from app.services.leave_balance import LeaveBalanceLedger
from app.utils.error_handling import (
    AppException,
    EmployeeNotFoundException,
    NotFoundException,
    ValidationException,
)

logger = logging.getLogger(__name__)


class LeaveService:
    """Leave requests with role-routed approval and balance debit."""

    def __init__(
        self,
        db: AsyncSession,
        ledger: Optional[LeaveBalanceLedger] = None,
        chain: ApprovalChain = LEAVE_CHAIN,
    ):
        self.db = db
        self.ledger = ledger or LeaveBalanceLedger()
        self.chain = chain

    @staticmethod
    def count_leave_days(start_date: date, end_date: date) -> int:
        """Calendar days in the range, weekly rest day excluded."""
        return count_working_days(start_date, end_date, settings.weekly_rest_day)

    async def get_request(self, request_id: uuid.UUID) -> LeaveRequest:
        request = await self.db.get(LeaveRequest, request_id)
        if request is None:
            raise NotFoundException("LeaveRequest", request_id)
        return request

    async def get_balance(self, employee: Employee, today: Optional[date] = None) -> tuple:
        """(balance, reset_date, was_reset) after applying any pending reset."""
        was_reset = self.ledger.refresh(employee, today)
        if self.db.is_modified(employee):
            await self.db.commit()
        return employee.leave_balance, employee.leave_reset_date, was_reset

    async def submit(
        self,
        employee: Employee,
        data: LeaveRequestCreate,
        today: Optional[date] = None,
    ) -> LeaveRequest:
        today = today or date.today()
        if data.start_date < today:
            raise ValidationException("Leave cannot start in the past", field="start_date")

        days = self.count_leave_days(data.start_date, data.end_date)
        if days <= 0:
            raise ValidationException("Requested range contains no working days", field="end_date")

        self.ledger.ensure_sufficient(employee, days, today)

        request = LeaveRequest(
            employee_id=employee.id,
            leave_type=LeaveType(data.leave_type),
            start_date=data.start_date,
            end_date=data.end_date,
            number_of_days=days,
            reason=data.reason,
        )
        self.chain.start(request, employee.id, employee.role)
        self.db.add(request)
        await self.db.commit()
        await self.db.refresh(request)

        logger.info(
            f"Leave request {request.id} submitted by {employee.id} ({days} day(s), "
            f"{request.total_approvals_required} approval(s) required)"
        )
        return request

    async def approve(
        self,
        request_id: uuid.UUID,
        approver: Employee,
        comment: Optional[str] = None,
        today: Optional[date] = None,
    ) -> LeaveRequest:
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
                await self._debit(request, today)
        except AppException:
            await self.db.rollback()
            raise

        await commit_or_conflict(self.db, "LeaveRequest")
        await self.db.refresh(request)
        return request

    async def reject(self, request_id: uuid.UUID, approver: Employee, reason: str) -> LeaveRequest:
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

        await commit_or_conflict(self.db, "LeaveRequest")
        await self.db.refresh(request)
        return request

    async def _debit(self, request: LeaveRequest, today: Optional[date]) -> None:
        employee = await self.db.get(Employee, request.employee_id)
        if employee is None:
            raise EmployeeNotFoundException(request.employee_id)
        self.ledger.debit(employee, request.number_of_days, today)

    async def list_for_employee(self, employee_id: uuid.UUID) -> List[LeaveRequest]:
        result = await self.db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.employee_id == employee_id)
            .order_by(LeaveRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def pending_for(self, approver: Employee) -> List[LeaveRequest]:
        """Open requests waiting on the approver's role at their current level."""
        slots = self.chain.pending_levels_for(approver.role)
        if not slots:
            return []
        result = await self.db.execute(
            select(LeaveRequest)
            .where(
                and_(
                    LeaveRequest.status.not_in(TERMINAL_STATUSES),
                    LeaveRequest.employee_id != approver.id,
                    or_(*[
                        and_(
                            LeaveRequest.submitter_role == role,
                            LeaveRequest.current_approval_level == level,
                        )
                        for role, level in slots
                    ]),
                )
            )
            .order_by(LeaveRequest.created_at)
        )
        return list(result.scalars().all())
