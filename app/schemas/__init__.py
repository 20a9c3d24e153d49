"""
Payroll Back Office - Schemas Package

Pydantic schemas for request/response validation.
"""

from app.schemas.approval import ApprovalChainView, ApprovalEntry, ApproveAction, RejectAction
from app.schemas.attendance import (
    AttendanceResponse,
    CheckInRequest,
    TimeCorrectionCreate,
    TimeCorrectionResponse,
)
from app.schemas.employee import (
    EmployeeCreate,
    EmployeeResponse,
    LeaveBalanceResponse,
    LoginRequest,
    TokenResponse,
)
from app.schemas.leave import LeaveRequestCreate, LeaveRequestResponse
from app.schemas.payroll import (
    AdjustmentCreate,
    ComputeAllResult,
    InitializationResult,
    MessageResponse,
    PayrollPeriodCreate,
    PayrollPeriodResponse,
    PayrollRecordResponse,
    PayslipGenerationResult,
    PayslipResponse,
    PeriodSummary,
    PeriodTransitionRequest,
    SalaryConfigCreate,
    SalaryConfigResponse,
    TaxTableCreate,
    TaxTableResponse,
)
