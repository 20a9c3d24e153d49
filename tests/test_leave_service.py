"""
Payroll Back Office - Leave Tests

Lazy annual reset, balance checks and the leave approval workflow.
"""

from datetime import date
from uuid import uuid4

import pytest

from app.models.employee import Employee, EmployeeRole
from app.models.leave import LeaveRequest
from app.schemas.leave import LeaveRequestCreate
from app.services.leave_balance import LeaveBalanceLedger, add_one_year
from app.services.leave_service import LeaveService
from app.utils.error_handling import (
    AlreadyFinalizedException,
    ApproverNotAuthorizedException,
    InsufficientLeaveBalanceException,
    ValidationException,
)

from conftest import TODAY, create_employee


def ledger_employee(balance: int, reset: date = None) -> Employee:
    return Employee(id=uuid4(), leave_balance=balance, leave_reset_date=reset)


def leave_data(start: date, end: date, leave_type: str = "vacation") -> LeaveRequestCreate:
    return LeaveRequestCreate(leave_type=leave_type, start_date=start, end_date=end, reason="Family trip")


class TestLeaveBalanceLedger:
    """Lazy reset on read, single debit on approval."""

    def test_no_reset_before_anniversary(self):
        worker = ledger_employee(4, date(2026, 12, 31))

        assert LeaveBalanceLedger(15).refresh(worker, date(2026, 12, 31)) is False
        assert worker.leave_balance == 4

    def test_reset_after_anniversary(self):
        worker = ledger_employee(4, date(2025, 12, 31))

        assert LeaveBalanceLedger(15).refresh(worker, TODAY) is True
        assert worker.leave_balance == 15
        assert worker.leave_reset_date == date(2026, 12, 31)

    def test_reset_catches_up_several_years(self):
        worker = ledger_employee(0, date(2022, 12, 31))

        LeaveBalanceLedger(15).refresh(worker, TODAY)

        assert worker.leave_reset_date == date(2026, 12, 31)

    def test_missing_reset_date_is_initialized(self):
        worker = ledger_employee(10, None)

        assert LeaveBalanceLedger(15).refresh(worker, TODAY) is False
        assert worker.leave_reset_date == date(2026, 12, 31)
        assert worker.leave_balance == 10

    def test_debit_reduces_balance(self):
        worker = ledger_employee(10, date(2026, 12, 31))

        assert LeaveBalanceLedger(15).debit(worker, 3, TODAY) == 7

    def test_debit_beyond_balance_raises(self):
        worker = ledger_employee(2, date(2026, 12, 31))

        with pytest.raises(InsufficientLeaveBalanceException):
            LeaveBalanceLedger(15).debit(worker, 3, TODAY)
        assert worker.leave_balance == 2

    def test_leap_day_anniversary(self):
        assert add_one_year(date(2028, 2, 29)) == date(2029, 2, 28)


class TestLeaveSubmission:

    @pytest.mark.asyncio
    async def test_days_exclude_rest_day(self, db_session, employee):
        # Sat 24 Oct to Mon 26 Oct; Sunday excluded
        request = await LeaveService(db_session).submit(
            employee, leave_data(date(2026, 10, 24), date(2026, 10, 26)), today=TODAY
        )

        assert request.number_of_days == 2
        assert request.status == "pending"
        assert request.total_approvals_required == 2
        assert request.submitter_role == EmployeeRole.EMPLOYEE

    @pytest.mark.asyncio
    async def test_past_start_rejected(self, db_session, employee):
        with pytest.raises(ValidationException):
            await LeaveService(db_session).submit(
                employee, leave_data(date(2026, 10, 12), date(2026, 10, 13)), today=TODAY
            )

    @pytest.mark.asyncio
    async def test_rest_day_only_range_rejected(self, db_session, employee):
        with pytest.raises(ValidationException):
            await LeaveService(db_session).submit(
                employee, leave_data(date(2026, 10, 25), date(2026, 10, 25)), today=TODAY
            )

    @pytest.mark.asyncio
    async def test_insufficient_balance_rejected_at_submission(self, db_session):
        worker = await create_employee(db_session, "EMP-010", leave_balance=1)

        with pytest.raises(InsufficientLeaveBalanceException):
            await LeaveService(db_session).submit(
                worker, leave_data(date(2026, 10, 20), date(2026, 10, 22)), today=TODAY
            )

    @pytest.mark.asyncio
    async def test_balance_read_applies_reset(self, db_session):
        worker = await create_employee(db_session, "EMP-011", leave_balance=2, leave_reset_date=date(2025, 12, 31))

        balance, reset_date, was_reset = await LeaveService(db_session).get_balance(worker, TODAY)

        assert (balance, reset_date, was_reset) == (15, date(2026, 12, 31), True)


class TestLeaveApproval:
    """Role-routed approval with a debit on the final approval."""

    @pytest.mark.asyncio
    async def test_two_level_approval_debits_once(self, db_session, employee, hr_staff, hr_head):
        service = LeaveService(db_session)
        request = await service.submit(
            employee, leave_data(date(2026, 10, 20), date(2026, 10, 22)), today=TODAY
        )

        request = await service.approve(request.id, hr_staff, comment="Covered", today=TODAY)
        assert request.status == "approved_by_hr_staff"
        await db_session.refresh(employee)
        assert employee.leave_balance == 15

        request = await service.approve(request.id, hr_head, today=TODAY)
        assert request.status == "approved"
        await db_session.refresh(employee)
        assert employee.leave_balance == 12

        request_id = request.id
        with pytest.raises(AlreadyFinalizedException):
            await service.approve(request_id, hr_head, today=TODAY)

        await db_session.refresh(employee)
        assert employee.leave_balance == 12

    @pytest.mark.asyncio
    async def test_hr_staff_request_needs_only_hr_head(self, db_session, hr_staff, hr_head):
        service = LeaveService(db_session)
        request = await service.submit(
            hr_staff, leave_data(date(2026, 10, 20), date(2026, 10, 20)), today=TODAY
        )
        assert request.total_approvals_required == 1

        request = await service.approve(request.id, hr_head, today=TODAY)

        assert request.status == "approved"
        await db_session.refresh(hr_staff)
        assert hr_staff.leave_balance == 14

    @pytest.mark.asyncio
    async def test_wrong_approver_rolls_back(self, db_session, employee, hr_head):
        service = LeaveService(db_session)
        request = await service.submit(
            employee, leave_data(date(2026, 10, 20), date(2026, 10, 20)), today=TODAY
        )
        request_id = request.id

        with pytest.raises(ApproverNotAuthorizedException):
            await service.approve(request_id, hr_head, today=TODAY)

        request = await db_session.get(LeaveRequest, request_id)
        assert request.status == "pending"
        assert request.approvals == []

    @pytest.mark.asyncio
    async def test_insufficient_balance_at_final_approval(self, db_session, employee, hr_staff, hr_head):
        service = LeaveService(db_session)
        request = await service.submit(
            employee, leave_data(date(2026, 10, 20), date(2026, 10, 22)), today=TODAY
        )
        request_id = request.id
        await service.approve(request_id, hr_staff, today=TODAY)

        employee.leave_balance = 1
        await db_session.commit()

        with pytest.raises(InsufficientLeaveBalanceException):
            await service.approve(request_id, hr_head, today=TODAY)

        request = await db_session.get(LeaveRequest, request_id)
        assert request.status == "approved_by_hr_staff"
        assert request.current_approval_level == 1
        await db_session.refresh(employee)
        assert employee.leave_balance == 1

    @pytest.mark.asyncio
    async def test_rejection_leaves_balance_untouched(self, db_session, employee, hr_staff):
        service = LeaveService(db_session)
        request = await service.submit(
            employee, leave_data(date(2026, 10, 20), date(2026, 10, 21)), today=TODAY
        )

        request = await service.reject(request.id, hr_staff, reason="Short staffed")

        assert request.status == "rejected"
        assert request.rejection_reason == "Short staffed"
        await db_session.refresh(employee)
        assert employee.leave_balance == 15

    @pytest.mark.asyncio
    async def test_pending_queue_follows_current_level(self, db_session, employee, hr_staff, hr_head):
        service = LeaveService(db_session)
        request = await service.submit(
            employee, leave_data(date(2026, 10, 20), date(2026, 10, 20)), today=TODAY
        )

        assert [r.id for r in await service.pending_for(hr_staff)] == [request.id]
        assert await service.pending_for(hr_head) == []

        await service.approve(request.id, hr_staff, today=TODAY)

        assert await service.pending_for(hr_staff) == []
        assert [r.id for r in await service.pending_for(hr_head)] == [request.id]
