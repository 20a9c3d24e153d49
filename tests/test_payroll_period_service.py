"""
Payroll Back Office - Payroll Period Tests

Period lifecycle end to end: initialization, bulk computation with
per-employee isolation, record approval, locking and payslips.

The working period is Oct 1-15 2026 (13 working days). EMP-001 has ten
complete days of attendance, EMP-002 has none and is paid on assumed
full attendance.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio

from app.config import settings
from app.models.payroll import (
    PayrollPeriod,
    PayrollPeriodStatus,
    PayrollRecord,
    PayrollRecordStatus,
    PayslipStatus,
)
from app.schemas.payroll import AdjustmentCreate, PayrollPeriodCreate
from app.services.payroll_period_service import PayrollPeriodLifecycle, PayrollPeriodService
from app.services.tax_calculators import TaxTableService
from app.utils.error_handling import (
    ApprovalRouteNotFoundException,
    ApproverNotAuthorizedException,
    AuthorizationException,
    BusinessRuleException,
    InvalidStateTransitionException,
    OverlappingPeriodException,
    PeriodLockedException,
    TaxTableInUseException,
)

from conftest import create_attendance, create_salary_config


S = PayrollPeriodStatus


def period_data(name: str = "October 2026 A", start: date = date(2026, 10, 1), end: date = date(2026, 10, 15)):
    return PayrollPeriodCreate(name=name, start_date=start, end_date=end, pay_date=end + timedelta(days=5))


async def attend_ten_days(db, worker) -> None:
    day = date(2026, 10, 1)
    attended = 0
    while attended < 10:
        if day.weekday() != 6:
            await create_attendance(db, worker, day)
            attended += 1
        day += timedelta(days=1)


@pytest_asyncio.fixture
async def payroll_staff(db_session, employee, second_employee, default_tax_table):
    await create_salary_config(db_session, employee)
    await create_salary_config(db_session, second_employee)
    await attend_ten_days(db_session, employee)
    return employee, second_employee


@pytest_asyncio.fixture
async def period(db_session, payroll_staff, hr_staff):
    result = await PayrollPeriodService(db_session).initialize_period(period_data(), hr_staff)
    return result["period"]


async def record_for(service: PayrollPeriodService, period_id, employee_id) -> PayrollRecord:
    records = await service.list_records(period_id)
    return next(r for r in records if r.employee_id == employee_id)


async def approve_all(service: PayrollPeriodService, period_id, approver) -> None:
    for record in await service.list_records(period_id):
        await service.approve_record(record.id, approver)


class TestPeriodLifecycle:
    """Adjacency table."""

    def test_forward_path(self):
        lifecycle = PayrollPeriodLifecycle()

        assert lifecycle.can_transition(S.DRAFT, S.PENDING_COMPUTATION)
        assert lifecycle.can_transition(S.APPROVED, S.LOCKED)
        assert lifecycle.can_transition(S.LOCKED, S.PAYROLL_RUN)

    def test_backward_moves(self):
        lifecycle = PayrollPeriodLifecycle()

        assert lifecycle.can_transition(S.PENDING_APPROVAL, S.COMPUTATION_COMPLETED)
        assert lifecycle.can_transition(S.APPROVED, S.PENDING_APPROVAL)
        assert not lifecycle.can_transition(S.LOCKED, S.APPROVED)

    def test_terminal_states(self):
        lifecycle = PayrollPeriodLifecycle()

        assert lifecycle.is_final(S.PAYROLL_RUN)
        assert lifecycle.is_final(S.CANCELLED)
        assert not lifecycle.is_final(S.LOCKED)

    def test_skipping_a_state_is_refused(self):
        stub = PayrollPeriod(name="stub", status=S.DRAFT, status_history=[])

        with pytest.raises(InvalidStateTransitionException):
            PayrollPeriodLifecycle().transition(stub, S.APPROVED)

        assert stub.status == S.DRAFT
        assert stub.status_history == []

    def test_transition_is_logged(self):
        stub = PayrollPeriod(name="stub", status=S.DRAFT, status_history=[])

        PayrollPeriodLifecycle().transition(stub, S.CANCELLED, note="duplicate")

        assert stub.status == S.CANCELLED
        assert stub.status_history[0]["from"] == "draft"
        assert stub.status_history[0]["note"] == "duplicate"


class TestInitialization:

    @pytest.mark.asyncio
    async def test_records_created_for_eligible_employees(self, db_session, payroll_staff, hr_staff):
        result = await PayrollPeriodService(db_session).initialize_period(period_data(), hr_staff)

        assert result["records_created"] == 2
        assert result["no_employee_data"] is False
        assert result["attendance_warning"] is None
        assert result["period"].status == S.PENDING_COMPUTATION
        assert result["period"].employee_count == 2
        assert result["period"].status_history[0]["to"] == "pending_computation"

    @pytest.mark.asyncio
    async def test_no_eligible_employees_stays_draft(self, db_session, employee, hr_staff):
        result = await PayrollPeriodService(db_session).initialize_period(period_data(), hr_staff)

        assert result["records_created"] == 0
        assert result["no_employee_data"] is True
        assert result["period"].status == S.DRAFT
        assert "full attendance will be assumed" in result["attendance_warning"]

    @pytest.mark.asyncio
    async def test_overlapping_period_is_rejected(self, db_session, period, hr_staff):
        with pytest.raises(OverlappingPeriodException):
            await PayrollPeriodService(db_session).initialize_period(
                period_data("Overlap", date(2026, 10, 10), date(2026, 10, 20)), hr_staff
            )

    @pytest.mark.asyncio
    async def test_cancelled_period_does_not_block(self, db_session, employee, hr_staff):
        service = PayrollPeriodService(db_session)
        first = await service.initialize_period(period_data(), hr_staff)
        await service.cancel_period(first["period"].id, hr_staff, note="Wrong dates")

        second = await service.initialize_period(period_data("Redo"), hr_staff)

        assert second["period"].name == "Redo"

    @pytest.mark.asyncio
    async def test_sync_adds_late_joiners(self, db_session, employee, second_employee, default_tax_table, hr_staff):
        await create_salary_config(db_session, employee)
        service = PayrollPeriodService(db_session)
        period = (await service.initialize_period(period_data(), hr_staff))["period"]

        await create_salary_config(db_session, second_employee)
        result = await service.sync_records(period.id, hr_staff)

        assert result["records_created"] == 1
        assert result["period"].employee_count == 2
        again = await service.sync_records(period.id, hr_staff)
        assert again["records_created"] == 0


class TestComputation:
    """Bulk and single-record computation."""

    @pytest.mark.asyncio
    async def test_compute_all(self, db_session, period, payroll_staff, hr_staff):
        worker, absentee = payroll_staff
        service = PayrollPeriodService(db_session)

        result = await service.compute_all(period.id, hr_staff)

        assert result["computed"] == 2
        assert result["failed"] == 0
        assert result["status"] == S.COMPUTATION_COMPLETED
        assert result["total_gross_pay"] == Decimal("23000")
        assert result["total_net_pay"] == Decimal("20590")

        record = await record_for(service, period.id, worker.id)
        assert record.status == PayrollRecordStatus.COMPUTED
        assert record.approval_status == "pending"
        assert record.present_days == 10
        assert record.gross_pay == Decimal("10000")
        assert record.sss_contribution == Decimal("630")
        assert record.philhealth_contribution == Decimal("250")
        assert record.pagibig_contribution == Decimal("200")
        assert record.withholding_tax == Decimal("0")
        assert record.net_pay == Decimal("8920")

        assumed = await record_for(service, period.id, absentee.id)
        assert assumed.assumed_full_attendance is True
        assert assumed.present_days == 13
        assert assumed.net_pay == Decimal("11670")

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_batch(self, db_session, period, payroll_staff, hr_staff, monkeypatch):
        worker, absentee = payroll_staff
        monkeypatch.setattr(settings, "attendance_fallback_policy", "require_attendance")
        service = PayrollPeriodService(db_session)

        result = await service.compute_all(period.id, hr_staff)

        assert result["computed"] == 1
        assert result["failed"] == 1
        assert result["failures"][0]["employee_id"] == str(absentee.id)
        assert result["failures"][0]["error_code"] == "ATTENDANCE_DATA_MISSING"
        assert result["status"] == S.COMPUTATION_COMPLETED

        failed = await record_for(service, period.id, absentee.id)
        assert failed.status == PayrollRecordStatus.DRAFT
        assert failed.gross_pay == Decimal("0")

    @pytest.mark.asyncio
    async def test_all_failures_keep_period_pending(self, db_session, employee, default_tax_table, hr_staff, monkeypatch):
        await create_salary_config(db_session, employee)
        monkeypatch.setattr(settings, "attendance_fallback_policy", "require_attendance")
        service = PayrollPeriodService(db_session)
        initialized = await service.initialize_period(period_data(), hr_staff)
        assert "computation will fail" in initialized["attendance_warning"]

        result = await service.compute_all(initialized["period"].id, hr_staff)

        assert result["computed"] == 0
        assert result["failed"] == 1
        assert result["status"] == S.PENDING_COMPUTATION

    @pytest.mark.asyncio
    async def test_actor_without_route_is_refused_up_front(self, db_session, period, employee):
        with pytest.raises(ApprovalRouteNotFoundException):
            await PayrollPeriodService(db_session).compute_all(period.id, employee)

    @pytest.mark.asyncio
    async def test_recompute_is_idempotent(self, db_session, period, payroll_staff, hr_staff):
        worker, _ = payroll_staff
        service = PayrollPeriodService(db_session)
        await service.compute_all(period.id, hr_staff)
        first = await record_for(service, period.id, worker.id)
        net, breakdown = first.net_pay, list(first.deductions_breakdown)

        again = await service.compute_record(first.id, hr_staff)

        assert again.net_pay == net
        assert again.deductions_breakdown == breakdown

    @pytest.mark.asyncio
    async def test_adjustment_triggers_recompute(self, db_session, period, payroll_staff, hr_staff):
        worker, _ = payroll_staff
        service = PayrollPeriodService(db_session)
        await service.compute_all(period.id, hr_staff)
        record = await record_for(service, period.id, worker.id)

        record = await service.add_adjustment(
            record.id,
            AdjustmentCreate(type="bonus", amount=Decimal("500"), description="Attendance bonus"),
            hr_staff,
        )

        assert record.adjustment_earnings == Decimal("500")
        assert record.gross_pay == Decimal("10500")
        # PhilHealth moves up a bracket above 10,000
        assert record.philhealth_contribution == Decimal("500")
        assert record.net_pay == Decimal("9170")
        assert len(record.adjustments) == 1


class TestRecordApproval:

    @pytest.mark.asyncio
    async def test_approval_by_next_role(self, db_session, period, payroll_staff, hr_staff, hr_head):
        worker, _ = payroll_staff
        service = PayrollPeriodService(db_session)
        await service.compute_all(period.id, hr_staff)
        record = await record_for(service, period.id, worker.id)

        record = await service.approve_record(record.id, hr_head, comment="Checked")

        assert record.status == PayrollRecordStatus.APPROVED
        assert record.approval_status == "approved"
        assert record.approved_by_id == hr_head.id

        with pytest.raises(BusinessRuleException):
            await service.compute_record(record.id, hr_staff)

    @pytest.mark.asyncio
    async def test_wrong_role_is_refused(self, db_session, period, payroll_staff, hr_staff, supervisor):
        worker, _ = payroll_staff
        service = PayrollPeriodService(db_session)
        await service.compute_all(period.id, hr_staff)
        record_id = (await record_for(service, period.id, worker.id)).id

        with pytest.raises(ApproverNotAuthorizedException):
            await service.approve_record(record_id, supervisor)

        record = await db_session.get(PayrollRecord, record_id)
        assert record.approval_status == "pending"

    @pytest.mark.asyncio
    async def test_rejected_record_is_recomputed(self, db_session, period, payroll_staff, hr_staff, hr_head):
        worker, _ = payroll_staff
        service = PayrollPeriodService(db_session)
        await service.compute_all(period.id, hr_staff)
        record = await record_for(service, period.id, worker.id)

        record = await service.reject_record(record.id, hr_head, reason="Overtime not encoded")
        assert record.status == PayrollRecordStatus.REJECTED

        with pytest.raises(InvalidStateTransitionException):
            await service.approve_record(record.id, hr_head)

        record = await service.compute_record(record.id, hr_staff)
        assert record.status == PayrollRecordStatus.COMPUTED
        assert record.approval_status == "pending"
        assert record.approvals == []


class TestApprovalLockAndPayslips:
    """From computed to payroll run."""

    @pytest.mark.asyncio
    async def test_full_flow(self, db_session, period, payroll_staff, hr_staff, hr_head, supervisor):
        worker, _ = payroll_staff
        service = PayrollPeriodService(db_session)
        await service.compute_all(period.id, hr_staff)

        submitted = await service.submit_for_approval(period.id, hr_staff)
        assert submitted.status == S.PENDING_APPROVAL

        with pytest.raises(InvalidStateTransitionException):
            await service.approve_period(period.id, supervisor)

        await approve_all(service, period.id, hr_head)
        approved = await service.approve_period(period.id, supervisor)
        assert approved.status == S.APPROVED
        assert approved.approved_by_id == supervisor.id

        locked = await service.lock_period(period.id, supervisor)
        assert locked.status == S.LOCKED
        assert {r.status for r in await service.list_records(period.id)} == {PayrollRecordStatus.LOCKED}

        run = await service.generate_payslips(period.id, hr_staff)
        assert run["generated"] == 2
        assert run["status"] == S.PAYROLL_RUN

        rerun = await service.generate_payslips(period.id, hr_staff)
        assert rerun["generated"] == 0
        assert rerun["skipped_existing"] == 2

        payslips = await service.list_payslips(period_id=period.id, employee_id=worker.id)
        assert len(payslips) == 1
        assert payslips[0].payslip_number == "PS-20261015-EMP-001"
        assert payslips[0].net_pay == Decimal("8920")
        assert payslips[0].deductions["total_deductions"] == "1080.00"

    @pytest.mark.asyncio
    async def test_locked_period_is_read_only(self, db_session, period, payroll_staff, hr_staff, hr_head, supervisor):
        service = PayrollPeriodService(db_session)
        await service.compute_all(period.id, hr_staff)
        await service.submit_for_approval(period.id, hr_staff)
        await approve_all(service, period.id, hr_head)
        await service.approve_period(period.id, supervisor)
        await service.lock_period(period.id, supervisor)
        record = (await service.list_records(period.id))[0]

        with pytest.raises(PeriodLockedException):
            await service.compute_record(record.id, hr_staff)
        with pytest.raises(PeriodLockedException):
            await service.add_adjustment(
                record.id,
                AdjustmentCreate(type="deduction", amount=Decimal("100"), description="Uniform"),
                hr_staff,
            )
        with pytest.raises(PeriodLockedException):
            await service.compute_all(period.id, hr_staff)
        with pytest.raises(InvalidStateTransitionException):
            await service.change_status(period.id, S.APPROVED, supervisor)

    @pytest.mark.asyncio
    async def test_payslips_need_a_locked_period(self, db_session, period, payroll_staff, hr_staff):
        service = PayrollPeriodService(db_session)
        await service.compute_all(period.id, hr_staff)

        with pytest.raises(InvalidStateTransitionException):
            await service.generate_payslips(period.id, hr_staff)

    @pytest.mark.asyncio
    async def test_payslip_access(self, db_session, period, payroll_staff, hr_staff, hr_head, supervisor):
        worker, other = payroll_staff
        service = PayrollPeriodService(db_session)
        await service.compute_all(period.id, hr_staff)
        await service.submit_for_approval(period.id, hr_staff)
        await approve_all(service, period.id, hr_head)
        await service.approve_period(period.id, supervisor)
        await service.lock_period(period.id, supervisor)
        await service.generate_payslips(period.id, hr_staff)
        payslip = (await service.list_payslips(employee_id=worker.id))[0]

        viewed = await service.view_payslip(payslip.id, worker)
        assert viewed.status == PayslipStatus.VIEWED

        with pytest.raises(AuthorizationException):
            await service.view_payslip(payslip.id, other)

        downloaded = await service.download_payslip(payslip.id, hr_staff)
        assert downloaded.status == PayslipStatus.DOWNLOADED
        assert [entry["action"] for entry in downloaded.access_log] == ["viewed", "downloaded"]


class TestManualStatusChanges:

    @pytest.mark.asyncio
    async def test_guarded_moves_are_refused(self, db_session, period, hr_staff):
        service = PayrollPeriodService(db_session)

        with pytest.raises(InvalidStateTransitionException):
            await service.change_status(period.id, S.COMPUTATION_COMPLETED, hr_staff)
        with pytest.raises(InvalidStateTransitionException):
            await service.change_status(period.id, S.PAYROLL_RUN, hr_staff)

    @pytest.mark.asyncio
    async def test_send_back_for_recomputation(self, db_session, period, payroll_staff, hr_staff):
        service = PayrollPeriodService(db_session)
        await service.compute_all(period.id, hr_staff)
        await service.submit_for_approval(period.id, hr_staff)

        back = await service.change_status(period.id, S.COMPUTATION_COMPLETED, hr_staff, note="Fix overtime")
        assert back.status == S.COMPUTATION_COMPLETED
        assert back.status_history[-1]["note"] == "Fix overtime"

    @pytest.mark.asyncio
    async def test_cancelled_period_cannot_be_computed(self, db_session, period, hr_staff):
        service = PayrollPeriodService(db_session)
        await service.change_status(period.id, S.DRAFT, hr_staff)
        await service.change_status(period.id, S.CANCELLED, hr_staff)
        record = (await service.list_records(period.id))[0]

        with pytest.raises(InvalidStateTransitionException):
            await service.compute_all(period.id, hr_staff)
        with pytest.raises(InvalidStateTransitionException):
            await service.compute_record(record.id, hr_staff)


class TestTaxTableProtection:

    @pytest.mark.asyncio
    async def test_table_used_by_records_cannot_be_edited(self, db_session, period, payroll_staff, default_tax_table, hr_staff):
        table_id = default_tax_table.id
        await PayrollPeriodService(db_session).compute_all(period.id, hr_staff)

        with pytest.raises(TaxTableInUseException):
            await TaxTableService(db_session).update_table(table_id, name="Edited")
