"""
Payroll Back Office - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from app.models.base import BaseModel, TimestampMixin, AuditMixin
from app.models.employee import Employee, EmployeeRole, ROLE_HIERARCHY, HR_ROLES
from app.models.salary import SalaryConfig, WorkSchedule
from app.models.tax_table import TaxTable
from app.models.attendance import AttendanceRecord, AttendanceStatus
from app.models.approval import ApprovalChainMixin
from app.models.leave import LeaveRequest, LeaveType
from app.models.time_correction import TimeCorrectionRequest
from app.models.payroll import (
    PayrollPeriod,
    PayrollPeriodStatus,
    PayrollRecord,
    PayrollRecordStatus,
    Payslip,
    PayslipStatus,
    SpecialDayType,
    AdjustmentType,
    EARNING_ADJUSTMENTS,
)

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "AuditMixin",
    "Employee",
    "EmployeeRole",
    "ROLE_HIERARCHY",
    "HR_ROLES",
    "SalaryConfig",
    "WorkSchedule",
    "TaxTable",
    "AttendanceRecord",
    "AttendanceStatus",
    "ApprovalChainMixin",
    "LeaveRequest",
    "LeaveType",
    "TimeCorrectionRequest",
    "PayrollPeriod",
    "PayrollPeriodStatus",
    "PayrollRecord",
    "PayrollRecordStatus",
    "Payslip",
    "PayslipStatus",
    "SpecialDayType",
    "AdjustmentType",
    "EARNING_ADJUSTMENTS",
]
