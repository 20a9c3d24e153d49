"""
Payroll Back Office - Salary Configuration Model

One salary configuration per employee: base rates, premium multipliers,
recurring allowances/deductions and the tax-exemption flag.
"""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import Boolean, Enum as SQLEnum, ForeignKey, JSON, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import AuditMixin, BaseModel

if TYPE_CHECKING:
    from app.models.employee import Employee


class WorkSchedule(str, Enum):
    """Working week."""
    MONDAY_SATURDAY = "monday_saturday"
    MONDAY_FRIDAY = "monday_friday"


class SalaryConfig(BaseModel, AuditMixin):
    """Per-employee salary configuration, edited by HR only."""

    __tablename__ = "salary_configs"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    # Rates (mutually derivable: daily = monthly / 26, hourly = daily / 8)
    daily_rate: Mapped[Decimal] = mapped_column(
        Numeric(15, 4),
        nullable=False,
        comment="Daily rate",
    )
    monthly_rate: Mapped[Decimal] = mapped_column(
        Numeric(15, 4),
        nullable=False,
        comment="Monthly rate",
    )
    hourly_rate: Mapped[Decimal] = mapped_column(
        Numeric(15, 4),
        nullable=False,
        comment="Hourly rate",
    )

    # Premium multipliers
    overtime_multiplier: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("1.25"), nullable=False,
    )
    night_differential_multiplier: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("1.10"), nullable=False,
    )
    special_holiday_multiplier: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("1.30"), nullable=False,
    )
    regular_holiday_multiplier: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("2.00"), nullable=False,
    )
    rest_day_multiplier: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("1.30"), nullable=False,
    )

    # [{name, amount, is_recurring, is_monthly}]
    allowances: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    # [{name, amount, is_recurring, start_date, end_date}]
    deductions: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    is_tax_exempt: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    tax_exemption_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    work_schedule: Mapped[WorkSchedule] = mapped_column(
        SQLEnum(WorkSchedule),
        default=WorkSchedule.MONDAY_SATURDAY,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    employee: Mapped["Employee"] = relationship("Employee", back_populates="salary_config")

    @property
    def monthly_allowance_total(self) -> Decimal:
        """Sum of recurring monthly allowances."""
        total = Decimal("0")
        for allowance in self.allowances or []:
            if allowance.get("is_recurring", True) and allowance.get("is_monthly", True):
                total += Decimal(str(allowance.get("amount", 0)))
        return total

    def active_deductions(self, on_date: date) -> List[Dict[str, Any]]:
        """Recurring deductions whose window contains ``on_date``."""
        active = []
        for deduction in self.deductions or []:
            if not deduction.get("is_recurring", True):
                continue
            start = deduction.get("start_date")
            end = deduction.get("end_date")
            if start and date.fromisoformat(str(start)) > on_date:
                continue
            if end and date.fromisoformat(str(end)) < on_date:
                continue
            active.append(deduction)
        return active
