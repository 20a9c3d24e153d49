"""
Payroll Back Office - Payroll Period Service

Period lifecycle orchestration:

    draft -> pending_computation -> computation_completed -> pending_approval
          -> approved -> locked -> payroll_run        (+ terminal cancelled)

Every move goes through the PayrollPeriodLifecycle adjacency table. Bulk
computation isolates each employee: one failure is recorded on the period
and counted, never raised out of the batch. Records of a locked or
payroll_run period are read-only.
"""

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, FrozenSet, List, Optional, Sequence

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import commit_or_conflict
from app.models.employee import Employee, EmployeeRole, HR_ROLES
from app.models.payroll import (
    AdjustmentType,
    PayrollPeriod,
    PayrollPeriodStatus,
    PayrollRecord,
    PayrollRecordStatus,
    Payslip,
    PayslipStatus,
)
from app.models.salary import SalaryConfig
from app.schemas.payroll import AdjustmentCreate, PayrollPeriodCreate
from app.services.approval_chain import PAYROLL_RECORD_CHAIN, STATUS_APPROVED, ApprovalChain
from app.services.attendance_aggregator import AttendanceAggregationService
from app.services.payroll_computer import PayrollComputer, SalaryTerms
from app.services.tax_calculators.tax_engine import TaxEngine, TaxTableService
from app.utils.error_handling import (
    AppException,
    AuthorizationException,
    BusinessRuleException,
    InvalidStateTransitionException,
    NoPayrollRecordsException,
    NotFoundException,
    OverlappingPeriodException,
    PeriodLockedException,
    SalaryConfigMissingException,
)

logger = logging.getLogger(__name__)


S = PayrollPeriodStatus

PERIOD_TRANSITIONS: Dict[PayrollPeriodStatus, FrozenSet[PayrollPeriodStatus]] = {
    S.DRAFT: frozenset({S.PENDING_COMPUTATION, S.CANCELLED}),
    S.PENDING_COMPUTATION: frozenset({S.COMPUTATION_COMPLETED, S.DRAFT}),
    S.COMPUTATION_COMPLETED: frozenset({S.PENDING_APPROVAL, S.PENDING_COMPUTATION}),
    S.PENDING_APPROVAL: frozenset({S.APPROVED, S.COMPUTATION_COMPLETED}),
    S.APPROVED: frozenset({S.LOCKED, S.PENDING_APPROVAL}),
    S.LOCKED: frozenset({S.PAYROLL_RUN}),
    S.PAYROLL_RUN: frozenset(),
    S.CANCELLED: frozenset(),
}

COMPUTABLE_STATUSES = (S.PENDING_COMPUTATION, S.COMPUTATION_COMPLETED)
LOCKED_STATUSES = (S.LOCKED, S.PAYROLL_RUN)

FINAL_RECORD_STATUSES = (PayrollRecordStatus.APPROVED, PayrollRecordStatus.LOCKED)
COMPUTED_RECORD_STATUSES = (
    PayrollRecordStatus.COMPUTED,
    PayrollRecordStatus.APPROVED,
    PayrollRecordStatus.LOCKED,
)
PAYSLIP_VIEWER_ROLES = HR_ROLES


class PayrollPeriodLifecycle:
    """Adjacency-table state machine for payroll periods."""

    def __init__(self, transitions: Dict[PayrollPeriodStatus, FrozenSet[PayrollPeriodStatus]] = PERIOD_TRANSITIONS):
        self.transitions = transitions

    def can_transition(self, current: PayrollPeriodStatus, target: PayrollPeriodStatus) -> bool:
        return PayrollPeriodStatus(target) in self.transitions.get(PayrollPeriodStatus(current), frozenset())

    def is_final(self, status: PayrollPeriodStatus) -> bool:
        return not self.transitions.get(PayrollPeriodStatus(status))

    def transition(
        self,
        period: PayrollPeriod,
        target: PayrollPeriodStatus,
        actor_id: Optional[uuid.UUID] = None,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PayrollPeriod:
        current = PayrollPeriodStatus(period.status)
        target = PayrollPeriodStatus(target)
        if not self.can_transition(current, target):
            raise InvalidStateTransitionException("PayrollPeriod", current.value, target.value)

        now = now or datetime.now(timezone.utc)
        period.status_history = [
            *(period.status_history or []),
            {
                "from": current.value,
                "to": target.value,
                "by": str(actor_id) if actor_id else None,
                "at": now.isoformat(),
                "note": note,
            },
        ]
        period.status = target
        logger.info(f"Payroll period {period.id} ({period.name}): {current.value} -> {target.value}")
        return period


def _dec(value: Any) -> str:
    return str(Decimal(str(value)))


class PayrollPeriodService:
    """Service for payroll period, record and payslip operations."""

    def __init__(
        self,
        db: AsyncSession,
        lifecycle: Optional[PayrollPeriodLifecycle] = None,
        chain: ApprovalChain = PAYROLL_RECORD_CHAIN,
    ):
        self.db = db
        self.lifecycle = lifecycle or PayrollPeriodLifecycle()
        self.chain = chain
        self.aggregation = AttendanceAggregationService(db)
        self.tax_tables = TaxTableService(db)

    # ===========================================
    # LOOKUPS
    # ===========================================

    async def get_period(self, period_id: uuid.UUID) -> PayrollPeriod:
        period = await self.db.get(PayrollPeriod, period_id)
        if period is None:
            raise NotFoundException("PayrollPeriod", period_id)
        return period

    async def list_periods(self, status: Optional[PayrollPeriodStatus] = None) -> List[PayrollPeriod]:
        query = select(PayrollPeriod)
        if status:
            query = query.where(PayrollPeriod.status == status)
        result = await self.db.execute(query.order_by(PayrollPeriod.start_date.desc()))
        return list(result.scalars().all())

    async def get_record(self, record_id: uuid.UUID) -> PayrollRecord:
        record = await self.db.get(PayrollRecord, record_id)
        if record is None:
            raise NotFoundException("PayrollRecord", record_id)
        return record

    async def list_records(self, period_id: uuid.UUID) -> List[PayrollRecord]:
        result = await self.db.execute(
            select(PayrollRecord)
            .where(PayrollRecord.period_id == period_id)
            .order_by(PayrollRecord.created_at)
        )
        return list(result.scalars().all())

    async def _salary_config(self, employee_id: uuid.UUID) -> Optional[SalaryConfig]:
        result = await self.db.execute(
            select(SalaryConfig).where(
                and_(SalaryConfig.employee_id == employee_id, SalaryConfig.is_active == True)  # noqa: E712
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _ensure_unlocked(period: PayrollPeriod, operation: str) -> None:
        if period.status in LOCKED_STATUSES:
            raise PeriodLockedException(period.name, operation)

    # ===========================================
    # INITIALIZATION
    # ===========================================

    async def _find_overlap(self, start_date: date, end_date: date) -> Optional[PayrollPeriod]:
        result = await self.db.execute(
            select(PayrollPeriod).where(
                and_(
                    PayrollPeriod.status != S.CANCELLED,
                    PayrollPeriod.start_date <= end_date,
                    PayrollPeriod.end_date >= start_date,
                )
            )
        )
        return result.scalars().first()

    async def initialize_period(
        self,
        data: PayrollPeriodCreate,
        actor: Employee,
    ) -> Dict[str, Any]:
        """
        Create a period and one draft record per eligible employee.

        Eligible means active with an active salary configuration. When
        nobody is eligible the period stays in draft and the result says so.
        """
        overlap = await self._find_overlap(data.start_date, data.end_date)
        if overlap is not None:
            raise OverlappingPeriodException(data.start_date, data.end_date, overlap.name)

        period = PayrollPeriod(
            name=data.name,
            start_date=data.start_date,
            end_date=data.end_date,
            pay_date=data.pay_date,
            cutoff_start=data.cutoff_start or data.start_date,
            cutoff_end=data.cutoff_end or data.end_date,
            special_days=[
                {"date": day.holiday_date.isoformat(), "type": day.type, "name": day.name}
                for day in data.special_days
            ],
            status=S.DRAFT,
            status_history=[],
            computation_failures=[],
            notes=data.notes,
            created_by_id=actor.id,
        )
        self.db.add(period)
        await self.db.flush()

        created = await self._create_missing_records(period)
        if created:
            self.lifecycle.transition(period, S.PENDING_COMPUTATION, actor.id, note="initialized")

        await commit_or_conflict(self.db, "PayrollPeriod")
        await self.db.refresh(period)

        attendance_warning = None
        if not await self.aggregation.has_attendance(period.cutoff_start, period.cutoff_end):
            if settings.attendance_fallback_policy == "require_attendance":
                attendance_warning = "No attendance records in the cutoff window; computation will fail"
            else:
                attendance_warning = "No attendance records in the cutoff window; full attendance will be assumed"
            logger.warning(f"Payroll period {period.id}: {attendance_warning}")

        if not created:
            logger.warning(f"Payroll period {period.id} initialized with no eligible employees")
        else:
            logger.info(f"Payroll period {period.id} initialized with {created} record(s)")

        return {
            "period": period,
            "records_created": created,
            "no_employee_data": created == 0,
            "attendance_warning": attendance_warning,
        }

    async def _create_missing_records(self, period: PayrollPeriod) -> int:
        existing = await self.db.execute(
            select(PayrollRecord.employee_id).where(PayrollRecord.period_id == period.id)
        )
        already = set(existing.scalars().all())

        result = await self.db.execute(
            select(Employee.id)
            .join(SalaryConfig, SalaryConfig.employee_id == Employee.id)
            .where(
                and_(
                    Employee.is_active == True,  # noqa: E712
                    SalaryConfig.is_active == True,  # noqa: E712
                )
            )
            .order_by(Employee.employee_number)
        )
        created = 0
        for employee_id in result.scalars().all():
            if employee_id in already:
                continue
            self.db.add(
                PayrollRecord(
                    period_id=period.id,
                    employee_id=employee_id,
                    status=PayrollRecordStatus.DRAFT,
                    adjustments=[],
                    computation_warnings=[],
                )
            )
            created += 1

        period.employee_count = len(already) + created
        return created

    async def sync_records(self, period_id: uuid.UUID, actor: Employee) -> Dict[str, Any]:
        """Add records for employees who became eligible after initialization."""
        period = await self.get_period(period_id)
        if period.status not in (S.DRAFT, S.PENDING_COMPUTATION, S.COMPUTATION_COMPLETED):
            self._ensure_unlocked(period, "record sync")
            raise InvalidStateTransitionException(
                "PayrollPeriod",
                period.status.value,
                S.PENDING_COMPUTATION.value,
                message="Records can only be added before the period is submitted for approval",
            )

        created = await self._create_missing_records(period)
        if created and period.status == S.DRAFT:
            self.lifecycle.transition(period, S.PENDING_COMPUTATION, actor.id, note="records synced")
        elif created and period.status == S.COMPUTATION_COMPLETED:
            self.lifecycle.transition(period, S.PENDING_COMPUTATION, actor.id, note="records synced")

        await commit_or_conflict(self.db, "PayrollPeriod")
        await self.db.refresh(period)
        return {
            "period": period,
            "records_created": created,
            "no_employee_data": period.employee_count == 0,
            "attendance_warning": None,
        }

    # ===========================================
    # COMPUTATION
    # ===========================================

    async def _compute_into(
        self,
        record: PayrollRecord,
        period: PayrollPeriod,
        engine: TaxEngine,
        actor: Employee,
        now: datetime,
    ) -> None:
        """
        Compute one record. Everything that can fail runs before the first
        write to the record, so a failure leaves the record untouched.
        """
        self.chain.route_for(actor.role)
        config = await self._salary_config(record.employee_id)
        if config is None:
            raise SalaryConfigMissingException(record.employee_id)

        terms = SalaryTerms.from_config(config, period.end_date)
        aggregate = await self.aggregation.aggregate_for_period(record.employee_id, period)
        computer = PayrollComputer(engine)
        computation = computer.compute(terms, aggregate, record.adjustments or [])

        computer.apply(record, terms, aggregate, computation, computed_by_id=actor.id, now=now)
        record.status = PayrollRecordStatus.COMPUTED
        record.approved_by_id = None
        record.approved_at = None
        self.chain.start(record, actor.id, actor.role)

    async def compute_all(self, period_id: uuid.UUID, actor: Employee) -> Dict[str, Any]:
        """Compute every open record of the period, isolating per-employee failures."""
        period = await self.get_period(period_id)
        self._ensure_unlocked(period, "computation")
        if period.status not in COMPUTABLE_STATUSES:
            raise InvalidStateTransitionException(
                "PayrollPeriod",
                period.status.value,
                S.COMPUTATION_COMPLETED.value,
                message=f"Cannot compute a period in '{period.status.value}' status",
            )

        records = await self.list_records(period.id)
        if not records:
            raise NoPayrollRecordsException(period.name)

        # Fail the whole call before touching any record
        engine = await self.tax_tables.get_active_engine()
        self.chain.route_for(actor.role)

        now = datetime.now(timezone.utc)
        computed = 0
        skipped = 0
        failures: List[Dict[str, Any]] = []

        for record in records:
            if record.status in FINAL_RECORD_STATUSES:
                skipped += 1
                continue
            try:
                await self._compute_into(record, period, engine, actor, now)
                computed += 1
            except AppException as e:
                failures.append({
                    "employee_id": str(record.employee_id),
                    "error_code": e.code.value,
                    "error": e.message,
                })
                logger.warning(
                    f"Payroll computation failed for employee {record.employee_id} "
                    f"in period {period.id}: {e.message}"
                )
            except (ArithmeticError, ValueError, KeyError, TypeError) as e:
                failures.append({
                    "employee_id": str(record.employee_id),
                    "error_code": "COMPUTATION_ERROR",
                    "error": str(e),
                })
                logger.error(
                    f"Unexpected computation error for employee {record.employee_id} "
                    f"in period {period.id}: {e}",
                    exc_info=True,
                )

        totals = self._totals(records)
        period.computed_count = totals["count"]
        period.failed_count = len(failures)
        period.total_gross_pay = totals["gross"]
        period.total_deductions = totals["deductions"]
        period.total_net_pay = totals["net"]
        period.computation_failures = failures
        period.computed_at = now

        if period.status == S.PENDING_COMPUTATION and totals["count"] > 0:
            self.lifecycle.transition(period, S.COMPUTATION_COMPLETED, actor.id, note="compute-all")

        await commit_or_conflict(self.db, "PayrollPeriod")
        await self.db.refresh(period)

        logger.info(
            f"Compute-all for period {period.id}: {computed} computed, "
            f"{len(failures)} failed, {skipped} skipped"
        )
        return {
            "period_id": period.id,
            "computed": computed,
            "failed": len(failures),
            "skipped": skipped,
            "failures": failures,
            "total_gross_pay": period.total_gross_pay,
            "total_deductions": period.total_deductions,
            "total_net_pay": period.total_net_pay,
            "status": period.status,
        }

    @staticmethod
    def _totals(records: Sequence[PayrollRecord]) -> Dict[str, Any]:
        gross = Decimal("0")
        deductions = Decimal("0")
        net = Decimal("0")
        count = 0
        for record in records:
            if record.status not in COMPUTED_RECORD_STATUSES:
                continue
            count += 1
            gross += record.gross_pay
            deductions += record.total_deductions
            net += record.net_pay
        return {"count": count, "gross": gross, "deductions": deductions, "net": net}

    async def compute_record(self, record_id: uuid.UUID, actor: Employee) -> PayrollRecord:
        """Recompute a single record; errors propagate to the caller."""
        record = await self.get_record(record_id)
        period = await self.get_period(record.period_id)
        self._ensure_unlocked(period, "computation")
        if period.status == S.CANCELLED:
            raise InvalidStateTransitionException(
                "PayrollPeriod",
                period.status.value,
                S.COMPUTATION_COMPLETED.value,
                message="Cancelled periods cannot be computed",
            )
        if record.status in FINAL_RECORD_STATUSES:
            raise BusinessRuleException(
                "Approved payroll records cannot be recomputed",
                rule="RECORD_FINALIZED",
            )

        engine = await self.tax_tables.get_active_engine()
        try:
            await self._compute_into(record, period, engine, actor, datetime.now(timezone.utc))
        except AppException:
            await self.db.rollback()
            raise

        await self._refresh_period_totals(period)
        await commit_or_conflict(self.db, "PayrollRecord")
        await self.db.refresh(record)
        return record

    async def _refresh_period_totals(self, period: PayrollPeriod) -> None:
        totals = self._totals(await self.list_records(period.id))
        period.computed_count = totals["count"]
        period.total_gross_pay = totals["gross"]
        period.total_deductions = totals["deductions"]
        period.total_net_pay = totals["net"]

    # ===========================================
    # ADJUSTMENTS
    # ===========================================

    async def add_adjustment(
        self,
        record_id: uuid.UUID,
        data: AdjustmentCreate,
        actor: Employee,
    ) -> PayrollRecord:
        """
        Attach a bonus, reimbursement or deduction to a record.

        A record that was already computed is recomputed straight away so
        its totals include the adjustment.
        """
        record = await self.get_record(record_id)
        period = await self.get_period(record.period_id)
        self._ensure_unlocked(period, "adjustment")
        if record.status in FINAL_RECORD_STATUSES or record.approval_status == STATUS_APPROVED:
            raise BusinessRuleException(
                "Approved payroll records cannot be adjusted",
                rule="RECORD_FINALIZED",
            )

        record.adjustments = [
            *(record.adjustments or []),
            {
                "type": AdjustmentType(data.type).value,
                "amount": _dec(data.amount),
                "description": data.description,
                "added_by": str(actor.id),
                "added_at": datetime.now(timezone.utc).isoformat(),
            },
        ]

        if record.status in (PayrollRecordStatus.COMPUTED, PayrollRecordStatus.REJECTED):
            engine = await self.tax_tables.get_active_engine()
            try:
                await self._compute_into(record, period, engine, actor, datetime.now(timezone.utc))
            except AppException:
                await self.db.rollback()
                raise
            await self._refresh_period_totals(period)

        await commit_or_conflict(self.db, "PayrollRecord")
        await self.db.refresh(record)
        logger.info(f"Adjustment {data.type} of {data.amount} added to payroll record {record.id}")
        return record

    # ===========================================
    # RECORD APPROVAL
    # ===========================================

    async def approve_record(
        self,
        record_id: uuid.UUID,
        approver: Employee,
        comment: Optional[str] = None,
    ) -> PayrollRecord:
        record = await self.get_record(record_id)
        period = await self.get_period(record.period_id)
        self._ensure_unlocked(period, "record approval")
        if record.status != PayrollRecordStatus.COMPUTED:
            raise InvalidStateTransitionException(
                "PayrollRecord",
                record.status.value,
                PayrollRecordStatus.APPROVED.value,
                message="Only computed payroll records can be approved",
            )

        try:
            outcome = self.chain.approve(
                record,
                actor_id=approver.id,
                actor_role=approver.role,
                comment=comment,
                actor_name=approver.full_name,
            )
        except AppException:
            await self.db.rollback()
            raise

        if outcome.approved:
            record.status = PayrollRecordStatus.APPROVED
            record.approved_by_id = approver.id
            record.approved_at = record.finalized_at

        await commit_or_conflict(self.db, "PayrollRecord")
        await self.db.refresh(record)
        return record

    async def reject_record(self, record_id: uuid.UUID, approver: Employee, reason: str) -> PayrollRecord:
        record = await self.get_record(record_id)
        period = await self.get_period(record.period_id)
        self._ensure_unlocked(period, "record rejection")

        try:
            self.chain.reject(
                record,
                actor_id=approver.id,
                actor_role=approver.role,
                reason=reason,
                actor_name=approver.full_name,
            )
        except AppException:
            await self.db.rollback()
            raise

        record.status = PayrollRecordStatus.REJECTED
        await self._refresh_period_totals(period)
        await commit_or_conflict(self.db, "PayrollRecord")
        await self.db.refresh(record)
        return record

    # ===========================================
    # PERIOD TRANSITIONS
    # ===========================================

    async def _record_status_counts(self, period_id: uuid.UUID) -> Dict[PayrollRecordStatus, int]:
        result = await self.db.execute(
            select(PayrollRecord.status, func.count())
            .where(PayrollRecord.period_id == period_id)
            .group_by(PayrollRecord.status)
        )
        return {status: count for status, count in result.all()}

    async def _ensure_all_approved(self, period: PayrollPeriod, target: PayrollPeriodStatus) -> List[PayrollRecord]:
        records = await self.list_records(period.id)
        if not records:
            raise NoPayrollRecordsException(period.name)
        pending = [r for r in records if r.approval_status != STATUS_APPROVED]
        if pending:
            raise InvalidStateTransitionException(
                "PayrollPeriod",
                period.status.value,
                target.value,
                message=f"{len(pending)} payroll record(s) are not approved",
            )
        return records

    async def submit_for_approval(
        self,
        period_id: uuid.UUID,
        actor: Employee,
        note: Optional[str] = None,
    ) -> PayrollPeriod:
        period = await self.get_period(period_id)
        counts = await self._record_status_counts(period.id)
        computed = sum(counts.get(s, 0) for s in COMPUTED_RECORD_STATUSES)
        if period.status == S.COMPUTATION_COMPLETED and computed == 0:
            raise InvalidStateTransitionException(
                "PayrollPeriod",
                period.status.value,
                S.PENDING_APPROVAL.value,
                message="No computed payroll records to submit",
            )
        self.lifecycle.transition(period, S.PENDING_APPROVAL, actor.id, note)
        await commit_or_conflict(self.db, "PayrollPeriod")
        await self.db.refresh(period)
        return period

    async def approve_period(
        self,
        period_id: uuid.UUID,
        actor: Employee,
        note: Optional[str] = None,
    ) -> PayrollPeriod:
        period = await self.get_period(period_id)
        if not self.lifecycle.can_transition(period.status, S.APPROVED):
            raise InvalidStateTransitionException("PayrollPeriod", period.status.value, S.APPROVED.value)
        await self._ensure_all_approved(period, S.APPROVED)

        now = datetime.now(timezone.utc)
        self.lifecycle.transition(period, S.APPROVED, actor.id, note, now=now)
        period.approved_by_id = actor.id
        period.approved_at = now
        await commit_or_conflict(self.db, "PayrollPeriod")
        await self.db.refresh(period)
        return period

    async def lock_period(
        self,
        period_id: uuid.UUID,
        actor: Employee,
        note: Optional[str] = None,
    ) -> PayrollPeriod:
        """Lock the period; every record must be approved. Irreversible."""
        period = await self.get_period(period_id)
        if not self.lifecycle.can_transition(period.status, S.LOCKED):
            raise InvalidStateTransitionException("PayrollPeriod", period.status.value, S.LOCKED.value)
        records = await self._ensure_all_approved(period, S.LOCKED)

        now = datetime.now(timezone.utc)
        for record in records:
            record.status = PayrollRecordStatus.LOCKED
        self.lifecycle.transition(period, S.LOCKED, actor.id, note, now=now)
        period.locked_by_id = actor.id
        period.locked_at = now

        await commit_or_conflict(self.db, "PayrollPeriod")
        await self.db.refresh(period)
        logger.info(f"Payroll period {period.id} locked with {len(records)} record(s)")
        return period

    async def cancel_period(self, period_id: uuid.UUID, actor: Employee, note: Optional[str] = None) -> PayrollPeriod:
        period = await self.get_period(period_id)
        self.lifecycle.transition(period, S.CANCELLED, actor.id, note)
        await commit_or_conflict(self.db, "PayrollPeriod")
        await self.db.refresh(period)
        return period

    async def change_status(
        self,
        period_id: uuid.UUID,
        target: PayrollPeriodStatus,
        actor: Employee,
        note: Optional[str] = None,
    ) -> PayrollPeriod:
        """
        Manual move along the lifecycle (reopen, send back, cancel).

        Guarded forward moves are delegated to their own operations so
        their preconditions always apply.
        """
        target = PayrollPeriodStatus(target)
        period = await self.get_period(period_id)

        if target == S.PENDING_APPROVAL and period.status == S.COMPUTATION_COMPLETED:
            return await self.submit_for_approval(period_id, actor, note)
        if target == S.APPROVED:
            return await self.approve_period(period_id, actor, note)
        if target == S.LOCKED:
            return await self.lock_period(period_id, actor, note)
        if target == S.COMPUTATION_COMPLETED and period.status == S.PENDING_COMPUTATION:
            raise InvalidStateTransitionException(
                "PayrollPeriod",
                period.status.value,
                target.value,
                message="Run compute-all to complete computation",
            )
        if target == S.PAYROLL_RUN:
            raise InvalidStateTransitionException(
                "PayrollPeriod",
                period.status.value,
                target.value,
                message="Generate payslips to run payroll",
            )

        self.lifecycle.transition(period, target, actor.id, note)
        await commit_or_conflict(self.db, "PayrollPeriod")
        await self.db.refresh(period)
        return period

    # ===========================================
    # PAYSLIPS
    # ===========================================

    async def generate_payslips(self, period_id: uuid.UUID, actor: Employee) -> Dict[str, Any]:
        """
        Snapshot every approved record of a locked period into a payslip.

        Idempotent: records that already have a payslip are skipped. The
        first run moves the period from locked to payroll_run.
        """
        period = await self.get_period(period_id)
        if period.status not in LOCKED_STATUSES:
            raise InvalidStateTransitionException(
                "PayrollPeriod",
                period.status.value,
                S.PAYROLL_RUN.value,
                message="Payslips can only be generated for a locked period",
            )

        records = [r for r in await self.list_records(period.id) if r.approval_status == STATUS_APPROVED]
        existing_result = await self.db.execute(
            select(Payslip.payroll_record_id).where(Payslip.period_id == period.id)
        )
        existing = set(existing_result.scalars().all())

        employee_ids = [r.employee_id for r in records]
        employees_result = await self.db.execute(select(Employee).where(Employee.id.in_(employee_ids)))
        employees = {e.id: e for e in employees_result.scalars().all()}

        now = datetime.now(timezone.utc)
        generated = 0
        skipped = 0
        for record in records:
            if record.id in existing:
                skipped += 1
                continue
            self.db.add(self._build_payslip(period, record, employees[record.employee_id], actor, now))
            generated += 1

        if period.status == S.LOCKED:
            self.lifecycle.transition(period, S.PAYROLL_RUN, actor.id, note=f"{generated} payslip(s) generated")

        await commit_or_conflict(self.db, "PayrollPeriod")
        await self.db.refresh(period)

        logger.info(f"Generated {generated} payslip(s) for period {period.id} ({skipped} already existed)")
        return {
            "period_id": period.id,
            "generated": generated,
            "skipped_existing": skipped,
            "status": period.status,
        }

    @staticmethod
    def _build_payslip(
        period: PayrollPeriod,
        record: PayrollRecord,
        employee: Employee,
        actor: Employee,
        now: datetime,
    ) -> Payslip:
        return Payslip(
            payroll_record_id=record.id,
            period_id=period.id,
            employee_id=employee.id,
            payslip_number=f"PS-{period.end_date:%Y%m%d}-{employee.employee_number}",
            status=PayslipStatus.GENERATED,
            employee_details={
                "employee_number": employee.employee_number,
                "name": employee.full_name,
                "email": employee.email,
                "department": employee.department,
                "position": employee.position,
            },
            period_info={
                "name": period.name,
                "start_date": period.start_date.isoformat(),
                "end_date": period.end_date.isoformat(),
                "pay_date": period.pay_date.isoformat() if period.pay_date else None,
                "cutoff_start": period.cutoff_start.isoformat(),
                "cutoff_end": period.cutoff_end.isoformat(),
            },
            summary={
                "daily_rate": _dec(record.daily_rate),
                "hourly_rate": _dec(record.hourly_rate),
                "work_days": record.work_days,
                "present_days": record.present_days,
                "absence_days": record.absence_days,
                "late_minutes": record.late_minutes,
                "undertime_minutes": record.undertime_minutes,
                "overtime_hours": _dec(record.overtime_hours),
                "night_differential_hours": _dec(record.night_differential_hours),
                "special_holiday_hours": _dec(record.special_holiday_hours),
                "regular_holiday_hours": _dec(record.regular_holiday_hours),
                "paid_leave_days": record.paid_leave_days,
                "unpaid_leave_days": record.unpaid_leave_days,
                "assumed_full_attendance": record.assumed_full_attendance,
                "tax_table_version": record.tax_table_version,
            },
            earnings={
                "basic_salary": _dec(record.basic_salary),
                "overtime_pay": _dec(record.overtime_pay),
                "night_differential_pay": _dec(record.night_differential_pay),
                "holiday_pay": _dec(record.holiday_pay),
                "paid_leave_pay": _dec(record.paid_leave_pay),
                "allowances": _dec(record.allowances_total),
                "adjustments": _dec(record.adjustment_earnings),
                "items": list(record.earnings_breakdown or []),
                "gross_pay": _dec(record.gross_pay),
            },
            deductions={
                "late": _dec(record.late_deduction),
                "undertime": _dec(record.undertime_deduction),
                "absence": _dec(record.absence_deduction),
                "sss": _dec(record.sss_contribution),
                "philhealth": _dec(record.philhealth_contribution),
                "pagibig": _dec(record.pagibig_contribution),
                "withholding_tax": _dec(record.withholding_tax),
                "loans": _dec(record.loan_deductions),
                "other": _dec(record.other_deductions),
                "items": list(record.deductions_breakdown or []),
                "total_deductions": _dec(record.total_deductions),
            },
            net_pay=record.net_pay,
            generated_at=now,
            generated_by_id=actor.id,
            access_log=[],
        )

    async def get_payslip(self, payslip_id: uuid.UUID) -> Payslip:
        payslip = await self.db.get(Payslip, payslip_id)
        if payslip is None:
            raise NotFoundException("Payslip", payslip_id)
        return payslip

    async def list_payslips(
        self,
        period_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> List[Payslip]:
        query = select(Payslip)
        if period_id:
            query = query.where(Payslip.period_id == period_id)
        if employee_id:
            query = query.where(Payslip.employee_id == employee_id)
        result = await self.db.execute(query.order_by(Payslip.generated_at.desc()))
        return list(result.scalars().all())

    async def _access_payslip(self, payslip_id: uuid.UUID, viewer: Employee, action: PayslipStatus) -> Payslip:
        payslip = await self.get_payslip(payslip_id)
        if payslip.employee_id != viewer.id and EmployeeRole(viewer.role) not in PAYSLIP_VIEWER_ROLES:
            raise AuthorizationException("You may only access your own payslips")

        now = datetime.now(timezone.utc)
        payslip.access_log = [
            *(payslip.access_log or []),
            {"action": action.value, "user_id": str(viewer.id), "at": now.isoformat()},
        ]
        if action == PayslipStatus.VIEWED:
            payslip.viewed_at = now
            payslip.viewed_by_id = viewer.id
            if payslip.status == PayslipStatus.GENERATED:
                payslip.status = PayslipStatus.VIEWED
        else:
            payslip.downloaded_at = now
            payslip.downloaded_by_id = viewer.id
            payslip.status = PayslipStatus.DOWNLOADED

        await self.db.commit()
        await self.db.refresh(payslip)
        return payslip

    async def view_payslip(self, payslip_id: uuid.UUID, viewer: Employee) -> Payslip:
        return await self._access_payslip(payslip_id, viewer, PayslipStatus.VIEWED)

    async def download_payslip(self, payslip_id: uuid.UUID, viewer: Employee) -> Payslip:
        return await self._access_payslip(payslip_id, viewer, PayslipStatus.DOWNLOADED)

    # ===========================================
    # SUMMARY
    # ===========================================

    async def get_period_summary(self, period_id: uuid.UUID) -> Dict[str, Any]:
        period = await self.get_period(period_id)
        records = await self.list_records(period.id)

        by_status: Dict[str, int] = {}
        for record in records:
            by_status[record.status.value] = by_status.get(record.status.value, 0) + 1

        computed = [r for r in records if r.status in COMPUTED_RECORD_STATUSES]
        zero = Decimal("0")
        return {
            "period_id": period.id,
            "status": period.status,
            "record_count": len(records),
            "records_by_status": by_status,
            "total_gross_pay": sum((r.gross_pay for r in computed), zero),
            "total_deductions": sum((r.total_deductions for r in computed), zero),
            "total_net_pay": sum((r.net_pay for r in computed), zero),
            "total_sss": sum((r.sss_contribution for r in computed), zero),
            "total_philhealth": sum((r.philhealth_contribution for r in computed), zero),
            "total_pagibig": sum((r.pagibig_contribution for r in computed), zero),
            "total_withholding_tax": sum((r.withholding_tax for r in computed), zero),
            "assumed_attendance_count": sum(1 for r in computed if r.assumed_full_attendance),
        }
