"""
Payroll Back Office - Payroll Models

Payroll periods, per-employee payroll records and payslip snapshots.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import (
    Boolean, Date, DateTime, Enum as SQLEnum, ForeignKey, Integer, JSON,
    Numeric, String, Text, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.approval import ApprovalChainMixin
from app.models.base import AuditMixin, BaseModel

if TYPE_CHECKING:
    from app.models.employee import Employee


# ===========================================
# ENUMS
# ===========================================

class PayrollPeriodStatus(str, Enum):
    """Payroll period lifecycle."""
    DRAFT = "draft"
    PENDING_COMPUTATION = "pending_computation"
    COMPUTATION_COMPLETED = "computation_completed"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    LOCKED = "locked"
    PAYROLL_RUN = "payroll_run"
    CANCELLED = "cancelled"


class PayrollRecordStatus(str, Enum):
    """Payroll record status. REJECTED records go back for recomputation."""
    DRAFT = "draft"
    COMPUTED = "computed"
    APPROVED = "approved"
    LOCKED = "locked"
    REJECTED = "rejected"


class PayslipStatus(str, Enum):
    GENERATED = "generated"
    VIEWED = "viewed"
    DOWNLOADED = "downloaded"


class SpecialDayType(str, Enum):
    SPECIAL_HOLIDAY = "special_holiday"
    REGULAR_HOLIDAY = "regular_holiday"


class AdjustmentType(str, Enum):
    """Ad-hoc record adjustments."""
    BONUS = "bonus"
    REIMBURSEMENT = "reimbursement"
    DEDUCTION = "deduction"
    CASH_ADVANCE = "cash_advance"
    OTHER = "other"


EARNING_ADJUSTMENTS = (AdjustmentType.BONUS, AdjustmentType.REIMBURSEMENT)


# ===========================================
# PAYROLL PERIOD
# ===========================================

class PayrollPeriod(BaseModel, AuditMixin):
    """
    Payroll period.

    ``start_date``/``end_date`` is the pay window; ``cutoff_start``/
    ``cutoff_end`` is the attendance window, which may differ.
    """

    __tablename__ = "payroll_periods"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    pay_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    cutoff_start: Mapped[date] = mapped_column(Date, nullable=False)
    cutoff_end: Mapped[date] = mapped_column(Date, nullable=False)

    # [{date, type, name}]
    special_days: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    status: Mapped[PayrollPeriodStatus] = mapped_column(
        SQLEnum(PayrollPeriodStatus),
        default=PayrollPeriodStatus.DRAFT,
        nullable=False,
        index=True,
    )

    # Summary (aggregated by compute-all)
    employee_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    computed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_gross_pay: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    total_net_pay: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    computation_failures: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    # [{from, to, by, at}]
    status_history: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    computed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    locked_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    locked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    records: Mapped[List["PayrollRecord"]] = relationship(
        "PayrollRecord",
        back_populates="period",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_locked(self) -> bool:
        return self.status in (PayrollPeriodStatus.LOCKED, PayrollPeriodStatus.PAYROLL_RUN)


# ===========================================
# PAYROLL RECORD
# ===========================================

class PayrollRecord(BaseModel, ApprovalChainMixin):
    """One employee's computation within one payroll period."""

    __tablename__ = "payroll_records"

    period_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_periods.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status: Mapped[PayrollRecordStatus] = mapped_column(
        SQLEnum(PayrollRecordStatus),
        default=PayrollRecordStatus.DRAFT,
        nullable=False,
    )
    # Chain vocabulary: pending | approved_by_<role> | approved | rejected
    approval_status: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    # Rate snapshot
    daily_rate: Mapped[Decimal] = mapped_column(Numeric(15, 4), default=Decimal("0"), nullable=False)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(15, 4), default=Decimal("0"), nullable=False)

    # Attendance / leave / holiday summary snapshot
    work_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    present_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    absence_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    late_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    undertime_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), default=Decimal("0"), nullable=False)
    night_differential_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), default=Decimal("0"), nullable=False)
    special_holiday_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), default=Decimal("0"), nullable=False)
    regular_holiday_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), default=Decimal("0"), nullable=False)
    paid_leave_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unpaid_leave_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sick_leave_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    vacation_leave_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    assumed_full_attendance: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Earnings
    basic_salary: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    overtime_pay: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    night_differential_pay: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    holiday_pay: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    paid_leave_pay: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    allowances_total: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    adjustment_earnings: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), default=Decimal("0"), nullable=False,
        comment="Bonuses and reimbursements",
    )
    gross_pay: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)

    # Deductions
    late_deduction: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    undertime_deduction: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    absence_deduction: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    sss_contribution: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    philhealth_contribution: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    pagibig_contribution: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    taxable_income: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    withholding_tax: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    loan_deductions: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    other_deductions: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)

    net_pay: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"), nullable=False)

    # [{type, amount, description, added_by, added_at}]
    adjustments: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    # Itemised allowance/deduction lines used by the last computation
    earnings_breakdown: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    deductions_breakdown: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    computation_warnings: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)

    is_tax_exempt: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    tax_table_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tax_tables.id"),
        nullable=True,
    )
    tax_table_version: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    computed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    computed_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    approved_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    period: Mapped["PayrollPeriod"] = relationship("PayrollPeriod", back_populates="records")
    employee: Mapped["Employee"] = relationship("Employee")
    payslip: Mapped[Optional["Payslip"]] = relationship(
        "Payslip",
        back_populates="payroll_record",
        uselist=False,
    )

    __table_args__ = (
        UniqueConstraint("period_id", "employee_id", name="uq_payroll_record_period_employee"),
    )
    __mapper_args__ = {"version_id_col": version}


# ===========================================
# PAYSLIP
# ===========================================

class Payslip(BaseModel):
    """Immutable snapshot of an approved payroll record."""

    __tablename__ = "payslips"

    payroll_record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_records.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    period_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_periods.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payslip_number: Mapped[str] = mapped_column(String(60), unique=True, nullable=False)

    status: Mapped[PayslipStatus] = mapped_column(
        SQLEnum(PayslipStatus),
        default=PayslipStatus.GENERATED,
        nullable=False,
    )

    # Snapshots
    employee_details: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    period_info: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    summary: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    earnings: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    deductions: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    generated_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    viewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    viewed_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    downloaded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    downloaded_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    # [{action, user_id, at}]
    access_log: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    payroll_record: Mapped["PayrollRecord"] = relationship("PayrollRecord", back_populates="payslip")
