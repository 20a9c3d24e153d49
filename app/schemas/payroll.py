"""
Payroll Back Office - Payroll Schemas

Pydantic schemas for salary configuration, tax tables, payroll periods,
payroll records and payslips.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.payroll import PayrollPeriodStatus, PayrollRecordStatus, PayslipStatus
from app.services.tax_calculators.contributions import ContributionBracket
from app.services.tax_calculators.withholding import WithholdingTaxBracket


# ===========================================
# ENUMS AS LITERALS
# ===========================================

SpecialDayTypeEnum = Literal["special_holiday", "regular_holiday"]
AdjustmentTypeEnum = Literal["bonus", "reimbursement", "deduction", "cash_advance", "other"]
WorkScheduleEnum = Literal["monday_saturday", "monday_friday"]


# ===========================================
# SALARY CONFIG SCHEMAS
# ===========================================

class AllowanceItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0)
    is_recurring: bool = True
    is_monthly: bool = True


class DeductionItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0)
    is_recurring: bool = True
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode='after')
    def check_window(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self


class SalaryConfigCreate(BaseModel):
    """
    Create or replace an employee's salary configuration.

    Exactly one base rate is needed; the others are derived
    (daily = monthly / 26, hourly = daily / 8).
    """
    daily_rate: Optional[Decimal] = Field(None, gt=0)
    monthly_rate: Optional[Decimal] = Field(None, gt=0)
    hourly_rate: Optional[Decimal] = Field(None, gt=0)

    overtime_multiplier: Decimal = Field(Decimal("1.25"), ge=1)
    night_differential_multiplier: Decimal = Field(Decimal("1.10"), ge=1)
    special_holiday_multiplier: Decimal = Field(Decimal("1.30"), ge=1)
    regular_holiday_multiplier: Decimal = Field(Decimal("2.00"), ge=1)
    rest_day_multiplier: Decimal = Field(Decimal("1.30"), ge=1)

    allowances: List[AllowanceItem] = []
    deductions: List[DeductionItem] = []

    is_tax_exempt: bool = False
    tax_exemption_reason: Optional[str] = None
    work_schedule: WorkScheduleEnum = "monday_saturday"
    notes: Optional[str] = Field(None, max_length=500)

    @model_validator(mode='after')
    def check_rates(self):
        if self.daily_rate is None and self.monthly_rate is None and self.hourly_rate is None:
            raise ValueError("One of daily_rate, monthly_rate or hourly_rate is required")
        if self.is_tax_exempt and not (self.tax_exemption_reason or "").strip():
            raise ValueError("tax_exemption_reason is required when is_tax_exempt is set")
        return self


class SalaryConfigResponse(BaseModel):
    id: UUID
    employee_id: UUID
    daily_rate: Decimal
    monthly_rate: Decimal
    hourly_rate: Decimal
    overtime_multiplier: Decimal
    night_differential_multiplier: Decimal
    special_holiday_multiplier: Decimal
    regular_holiday_multiplier: Decimal
    rest_day_multiplier: Decimal
    allowances: List[Dict[str, Any]]
    deductions: List[Dict[str, Any]]
    is_tax_exempt: bool
    tax_exemption_reason: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True


# ===========================================
# TAX TABLE SCHEMAS
# ===========================================

class BracketRange(BaseModel):
    min: Decimal = Field(..., ge=0)
    max: Optional[Decimal] = None


class ContributionBracketIn(BaseModel):
    salary_range: BracketRange
    monthly_contribution: Decimal = Field(..., ge=0)
    employer_share: Decimal = Field(Decimal("0"), ge=0)

    def to_bracket(self) -> ContributionBracket:
        return ContributionBracket(
            min_salary=self.salary_range.min,
            max_salary=self.salary_range.max,
            monthly_contribution=self.monthly_contribution,
            employer_share=self.employer_share,
        )


class WithholdingBracketIn(BaseModel):
    income_range: BracketRange
    tax_rate: Decimal = Field(..., ge=0, le=100)
    fixed_tax_amount: Decimal = Decimal("0")
    description: str = ""

    def to_bracket(self) -> WithholdingTaxBracket:
        return WithholdingTaxBracket(
            min_income=self.income_range.min,
            max_income=self.income_range.max,
            tax_rate=self.tax_rate,
            fixed_tax_amount=self.fixed_tax_amount,
            description=self.description,
        )


class TaxTableCreate(BaseModel):
    """Publish a new tax table version."""
    name: str = Field(..., min_length=1, max_length=100)
    effective_date: Optional[date] = None
    sss_brackets: List[ContributionBracketIn] = Field(..., min_length=1)
    philhealth_brackets: List[ContributionBracketIn] = Field(..., min_length=1)
    pagibig_brackets: List[ContributionBracketIn] = Field(..., min_length=1)
    withholding_brackets: List[WithholdingBracketIn] = Field(..., min_length=1)


class TaxTableResponse(BaseModel):
    id: UUID
    version: int
    name: str
    is_active: bool
    effective_date: Optional[date] = None
    sss_brackets: List[Dict[str, Any]]
    philhealth_brackets: List[Dict[str, Any]]
    pagibig_brackets: List[Dict[str, Any]]
    withholding_brackets: List[Dict[str, Any]]
    created_at: datetime

    class Config:
        from_attributes = True


# ===========================================
# PAYROLL PERIOD SCHEMAS
# ===========================================

class SpecialDayInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    holiday_date: date = Field(..., alias="date")
    type: SpecialDayTypeEnum
    name: Optional[str] = Field(None, max_length=100)


class PayrollPeriodCreate(BaseModel):
    """Initialize a payroll period."""
    name: str = Field(..., min_length=1, max_length=100)
    start_date: date
    end_date: date
    pay_date: Optional[date] = None
    cutoff_start: Optional[date] = None
    cutoff_end: Optional[date] = None
    special_days: List[SpecialDayInput] = []
    notes: Optional[str] = None

    @model_validator(mode='after')
    def check_dates(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        cutoff_start = self.cutoff_start or self.start_date
        cutoff_end = self.cutoff_end or self.end_date
        if cutoff_start > cutoff_end:
            raise ValueError("cutoff_start must be on or before cutoff_end")
        return self


class PayrollPeriodResponse(BaseModel):
    id: UUID
    name: str
    start_date: date
    end_date: date
    pay_date: Optional[date] = None
    cutoff_start: date
    cutoff_end: date
    special_days: List[Dict[str, Any]]
    status: PayrollPeriodStatus
    employee_count: int
    computed_count: int
    failed_count: int
    total_gross_pay: Decimal
    total_deductions: Decimal
    total_net_pay: Decimal
    computation_failures: List[Dict[str, Any]]
    created_at: datetime

    class Config:
        from_attributes = True


class PeriodTransitionRequest(BaseModel):
    """Manual lifecycle move (e.g. back to draft, cancel)."""
    target_status: PayrollPeriodStatus
    note: Optional[str] = Field(None, max_length=500)


class InitializationResult(BaseModel):
    period: PayrollPeriodResponse
    records_created: int
    no_employee_data: bool
    attendance_warning: Optional[str] = None


class ComputationFailure(BaseModel):
    employee_id: UUID
    error_code: str
    error: str


class ComputeAllResult(BaseModel):
    period_id: UUID
    computed: int
    failed: int
    skipped: int
    failures: List[ComputationFailure] = []
    total_gross_pay: Decimal
    total_deductions: Decimal
    total_net_pay: Decimal
    status: PayrollPeriodStatus


class PeriodSummary(BaseModel):
    period_id: UUID
    status: PayrollPeriodStatus
    record_count: int
    records_by_status: Dict[str, int]
    total_gross_pay: Decimal
    total_deductions: Decimal
    total_net_pay: Decimal
    total_sss: Decimal
    total_philhealth: Decimal
    total_pagibig: Decimal
    total_withholding_tax: Decimal
    assumed_attendance_count: int


# ===========================================
# PAYROLL RECORD SCHEMAS
# ===========================================

class AdjustmentCreate(BaseModel):
    type: AdjustmentTypeEnum
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=255)


class PayrollRecordResponse(BaseModel):
    id: UUID
    period_id: UUID
    employee_id: UUID
    status: PayrollRecordStatus
    approval_status: Optional[str] = None

    work_days: int
    present_days: int
    absence_days: int
    late_minutes: int
    undertime_minutes: int
    overtime_hours: Decimal
    night_differential_hours: Decimal
    special_holiday_hours: Decimal
    regular_holiday_hours: Decimal
    paid_leave_days: int
    unpaid_leave_days: int
    assumed_full_attendance: bool

    basic_salary: Decimal
    overtime_pay: Decimal
    night_differential_pay: Decimal
    holiday_pay: Decimal
    paid_leave_pay: Decimal
    allowances_total: Decimal
    adjustment_earnings: Decimal
    gross_pay: Decimal

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
    net_pay: Decimal

    adjustments: List[Dict[str, Any]]
    computation_warnings: List[str]
    tax_table_version: Optional[int] = None
    rejection_reason: Optional[str] = None
    computed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ===========================================
# PAYSLIP SCHEMAS
# ===========================================

class PayslipGenerationResult(BaseModel):
    period_id: UUID
    generated: int
    skipped_existing: int
    status: PayrollPeriodStatus


class PayslipResponse(BaseModel):
    id: UUID
    payslip_number: str
    payroll_record_id: UUID
    period_id: UUID
    employee_id: UUID
    status: PayslipStatus
    employee_details: Dict[str, Any]
    period_info: Dict[str, Any]
    summary: Dict[str, Any]
    earnings: Dict[str, Any]
    deductions: Dict[str, Any]
    net_pay: Decimal
    generated_at: datetime
    viewed_at: Optional[datetime] = None
    downloaded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    message: str
    success: bool = True
