"""
Payroll Back Office - Payroll Computer

Combines salary configuration, aggregated attendance and the tax engine
into one employee's earnings, deductions and net pay for a period.

Order of computation:
1. Earnings -> gross pay
2. Deductions: attendance penalties, government contributions on gross,
   withholding tax on (gross - contributions), recurring and ad-hoc deductions
3. Net pay = gross - deductions

Intermediate values are kept at full precision; rounding to 2 decimal
places happens once, when values are assigned to the record.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from app.config import settings
from app.models.payroll import AdjustmentType, EARNING_ADJUSTMENTS, PayrollRecord
from app.models.salary import SalaryConfig
from app.services.attendance_aggregator import PeriodAggregate
from app.services.tax_calculators.tax_engine import TaxEngine

logger = logging.getLogger(__name__)


TWO_PLACES = Decimal("0.01")
MINUTES_PER_HOUR = Decimal("60")


def round_money(amount: Decimal) -> Decimal:
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def derive_rates(
    daily_rate: Optional[Decimal] = None,
    monthly_rate: Optional[Decimal] = None,
    hourly_rate: Optional[Decimal] = None,
) -> Dict[str, Decimal]:
    """
    Fill in the missing rates from whichever one is given.

    daily = monthly / 26, hourly = daily / 8. Precedence when several are
    supplied: daily, then monthly, then hourly.
    """
    days = Decimal(settings.working_days_per_month)
    hours = Decimal(settings.hours_per_day)

    if daily_rate is not None:
        daily = Decimal(daily_rate)
    elif monthly_rate is not None:
        daily = Decimal(monthly_rate) / days
    elif hourly_rate is not None:
        daily = Decimal(hourly_rate) * hours
    else:
        raise ValueError("One of daily_rate, monthly_rate or hourly_rate is required")

    quantum = Decimal("0.0001")
    return {
        "daily_rate": daily.quantize(quantum, rounding=ROUND_HALF_UP),
        "monthly_rate": (daily * days).quantize(quantum, rounding=ROUND_HALF_UP),
        "hourly_rate": (daily / hours).quantize(quantum, rounding=ROUND_HALF_UP),
    }


@dataclass
class SalaryTerms:
    """Salary inputs the computer needs, detached from the ORM row."""
    daily_rate: Decimal
    hourly_rate: Decimal
    overtime_multiplier: Decimal = Decimal("1.25")
    night_differential_multiplier: Decimal = Decimal("1.10")
    special_holiday_multiplier: Decimal = Decimal("1.30")
    regular_holiday_multiplier: Decimal = Decimal("2.00")
    allowances: List[Dict[str, Any]] = field(default_factory=list)
    recurring_deductions: List[Dict[str, Any]] = field(default_factory=list)
    is_tax_exempt: bool = False

    @classmethod
    def from_config(cls, config: SalaryConfig, period_end: date) -> "SalaryTerms":
        allowances = [
            a for a in (config.allowances or [])
            if a.get("is_recurring", True) and a.get("is_monthly", True)
        ]
        return cls(
            daily_rate=Decimal(str(config.daily_rate)),
            hourly_rate=Decimal(str(config.hourly_rate)),
            overtime_multiplier=Decimal(str(config.overtime_multiplier)),
            night_differential_multiplier=Decimal(str(config.night_differential_multiplier)),
            special_holiday_multiplier=Decimal(str(config.special_holiday_multiplier)),
            regular_holiday_multiplier=Decimal(str(config.regular_holiday_multiplier)),
            allowances=allowances,
            recurring_deductions=config.active_deductions(period_end),
            is_tax_exempt=config.is_tax_exempt,
        )


@dataclass
class PayrollComputation:
    """Full-precision computation result."""
    # Earnings
    basic_salary: Decimal
    overtime_pay: Decimal
    night_differential_pay: Decimal
    holiday_pay: Decimal
    paid_leave_pay: Decimal
    allowances_total: Decimal
    adjustment_earnings: Decimal
    gross_pay: Decimal
    # Deductions
    late_deduction: Decimal
    undertime_deduction: Decimal
    absence_deduction: Decimal
    sss_contribution: Decimal
    philhealth_contribution: Decimal
    pagibig_contribution: Decimal
    taxable_income: Decimal
    withholding_tax: Decimal
    loan_deductions: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    # Detail
    earnings_breakdown: List[Dict[str, Any]] = field(default_factory=list)
    deductions_breakdown: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def net_pay(self) -> Decimal:
        return self.gross_pay - self.total_deductions


class PayrollComputer:
    """Deterministic payroll computation for one employee and period."""

    def __init__(self, tax_engine: TaxEngine):
        self.tax_engine = tax_engine

    def compute(
        self,
        terms: SalaryTerms,
        aggregate: PeriodAggregate,
        adjustments: Sequence[Dict[str, Any]] = (),
    ) -> PayrollComputation:
        attendance = aggregate.attendance
        leave = aggregate.leave
        holidays = aggregate.holidays
        daily = terms.daily_rate
        hourly = terms.hourly_rate
        warnings: List[str] = []

        # 1. Earnings
        basic_salary = daily * attendance.present_days
        overtime_pay = attendance.overtime_hours * hourly * terms.overtime_multiplier
        night_differential_pay = attendance.night_differential_hours * hourly * terms.night_differential_multiplier
        holiday_pay = (
            holidays.special_holiday_hours * hourly * terms.special_holiday_multiplier
            + holidays.regular_holiday_hours * hourly * terms.regular_holiday_multiplier
        )
        paid_leave_pay = daily * leave.paid_leave_days

        earnings_breakdown: List[Dict[str, Any]] = []
        allowances_total = Decimal("0")
        for allowance in terms.allowances:
            amount = Decimal(str(allowance.get("amount", 0)))
            allowances_total += amount
            earnings_breakdown.append({"type": "allowance", "name": allowance.get("name"), "amount": str(amount)})

        adjustment_earnings = Decimal("0")
        other_deductions = Decimal("0")
        deductions_breakdown: List[Dict[str, Any]] = []
        for adjustment in adjustments:
            kind = AdjustmentType(adjustment["type"])
            amount = Decimal(str(adjustment["amount"]))
            line = {"type": kind.value, "name": adjustment.get("description"), "amount": str(amount)}
            if kind in EARNING_ADJUSTMENTS:
                adjustment_earnings += amount
                earnings_breakdown.append(line)
            else:
                other_deductions += amount
                deductions_breakdown.append(line)

        gross_pay = (
            basic_salary
            + overtime_pay
            + night_differential_pay
            + holiday_pay
            + paid_leave_pay
            + allowances_total
            + adjustment_earnings
        )

        # 2. Deductions
        late_deduction = Decimal(attendance.late_minutes) / MINUTES_PER_HOUR * hourly
        undertime_deduction = Decimal(attendance.undertime_minutes) / MINUTES_PER_HOUR * hourly
        absence_deduction = daily * attendance.absence_days

        contributions = self.tax_engine.government_contributions(gross_pay)
        warnings.extend(contributions.warnings)
        taxable_income = gross_pay - contributions.total
        withholding_tax = self.tax_engine.withholding_tax(taxable_income, is_tax_exempt=terms.is_tax_exempt)

        loan_deductions = Decimal("0")
        for deduction in terms.recurring_deductions:
            amount = Decimal(str(deduction.get("amount", 0)))
            loan_deductions += amount
            deductions_breakdown.append({"type": "recurring", "name": deduction.get("name"), "amount": str(amount)})

        total_deductions = (
            late_deduction
            + undertime_deduction
            + absence_deduction
            + contributions.total
            + withholding_tax
            + loan_deductions
            + other_deductions
        )

        if attendance.assumed_full_attendance:
            warnings.append("No attendance records found; full attendance was assumed")

        return PayrollComputation(
            basic_salary=basic_salary,
            overtime_pay=overtime_pay,
            night_differential_pay=night_differential_pay,
            holiday_pay=holiday_pay,
            paid_leave_pay=paid_leave_pay,
            allowances_total=allowances_total,
            adjustment_earnings=adjustment_earnings,
            gross_pay=gross_pay,
            late_deduction=late_deduction,
            undertime_deduction=undertime_deduction,
            absence_deduction=absence_deduction,
            sss_contribution=contributions.sss.amount,
            philhealth_contribution=contributions.philhealth.amount,
            pagibig_contribution=contributions.pagibig.amount,
            taxable_income=taxable_income,
            withholding_tax=withholding_tax,
            loan_deductions=loan_deductions,
            other_deductions=other_deductions,
            total_deductions=total_deductions,
            earnings_breakdown=earnings_breakdown,
            deductions_breakdown=deductions_breakdown,
            warnings=warnings,
        )

    def apply(
        self,
        record: PayrollRecord,
        terms: SalaryTerms,
        aggregate: PeriodAggregate,
        computation: PayrollComputation,
        computed_by_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> PayrollRecord:
        """Write a computation onto a record, rounding each money field once."""
        attendance = aggregate.attendance
        leave = aggregate.leave
        holidays = aggregate.holidays

        record.daily_rate = terms.daily_rate
        record.hourly_rate = terms.hourly_rate
        record.is_tax_exempt = terms.is_tax_exempt

        record.work_days = attendance.work_days
        record.present_days = attendance.present_days
        record.absence_days = attendance.absence_days
        record.late_minutes = attendance.late_minutes
        record.undertime_minutes = attendance.undertime_minutes
        record.overtime_hours = round_money(attendance.overtime_hours)
        record.night_differential_hours = round_money(attendance.night_differential_hours)
        record.assumed_full_attendance = attendance.assumed_full_attendance
        record.special_holiday_hours = round_money(holidays.special_holiday_hours)
        record.regular_holiday_hours = round_money(holidays.regular_holiday_hours)
        record.paid_leave_days = leave.paid_leave_days
        record.unpaid_leave_days = leave.unpaid_leave_days
        record.sick_leave_days = leave.sick_leave_days
        record.vacation_leave_days = leave.vacation_leave_days

        record.basic_salary = round_money(computation.basic_salary)
        record.overtime_pay = round_money(computation.overtime_pay)
        record.night_differential_pay = round_money(computation.night_differential_pay)
        record.holiday_pay = round_money(computation.holiday_pay)
        record.paid_leave_pay = round_money(computation.paid_leave_pay)
        record.allowances_total = round_money(computation.allowances_total)
        record.adjustment_earnings = round_money(computation.adjustment_earnings)
        record.gross_pay = round_money(computation.gross_pay)

        record.late_deduction = round_money(computation.late_deduction)
        record.undertime_deduction = round_money(computation.undertime_deduction)
        record.absence_deduction = round_money(computation.absence_deduction)
        record.sss_contribution = round_money(computation.sss_contribution)
        record.philhealth_contribution = round_money(computation.philhealth_contribution)
        record.pagibig_contribution = round_money(computation.pagibig_contribution)
        record.taxable_income = round_money(computation.taxable_income)
        record.withholding_tax = round_money(computation.withholding_tax)
        record.loan_deductions = round_money(computation.loan_deductions)
        record.other_deductions = round_money(computation.other_deductions)
        record.total_deductions = round_money(computation.total_deductions)

        # Net from the stored totals so net == gross - deductions holds exactly
        record.net_pay = record.gross_pay - record.total_deductions

        record.earnings_breakdown = list(computation.earnings_breakdown)
        record.deductions_breakdown = list(computation.deductions_breakdown)
        record.computation_warnings = list(computation.warnings)
        record.tax_table_id = self.tax_engine.table.table_id
        record.tax_table_version = self.tax_engine.table.version
        record.computed_by_id = computed_by_id
        record.computed_at = now or datetime.now(timezone.utc)
        return record
