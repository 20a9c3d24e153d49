"""
Payroll Back Office - Payroll Router

API endpoints for salary configuration, tax tables, payroll periods,
payroll records and payslips.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_employee, require_admin, require_hr, require_payroll_manager
from app.models.employee import Employee
from app.models.payroll import PayrollPeriodStatus
from app.schemas.approval import ApproveAction, RejectAction
from app.schemas.payroll import (
    AdjustmentCreate,
    ComputeAllResult,
    InitializationResult,
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
from app.services.employee_service import EmployeeService
from app.services.payroll_period_service import PayrollPeriodService
from app.services.tax_calculators.tax_engine import TaxTableService


router = APIRouter()


def _initialization_response(result: dict) -> InitializationResult:
    return InitializationResult(
        period=PayrollPeriodResponse.model_validate(result["period"]),
        records_created=result["records_created"],
        no_employee_data=result["no_employee_data"],
        attendance_warning=result["attendance_warning"],
    )


# ===========================================
# SALARY CONFIGURATION ENDPOINTS
# ===========================================

@router.put(
    "/salary-configs/{employee_id}",
    response_model=SalaryConfigResponse,
    summary="Create or replace an employee's salary configuration",
    description="Supply one of daily, monthly or hourly rate; the others are derived.",
)
async def upsert_salary_config(
    employee_id: uuid.UUID,
    data: SalaryConfigCreate,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_hr),
):
    return await EmployeeService(db).upsert_salary_config(employee_id, data, updated_by_id=current_employee.id)


@router.get(
    "/salary-configs/{employee_id}",
    response_model=SalaryConfigResponse,
    summary="Get an employee's salary configuration",
)
async def get_salary_config(
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_hr),
):
    return await EmployeeService(db).require_salary_config(employee_id)


# ===========================================
# TAX TABLE ENDPOINTS
# ===========================================

@router.get(
    "/tax-tables",
    response_model=List[TaxTableResponse],
    summary="List tax table versions",
)
async def list_tax_tables(
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_payroll_manager),
):
    return await TaxTableService(db).list_tables()


@router.post(
    "/tax-tables",
    response_model=TaxTableResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Publish a new tax table version",
    description="The new version becomes the only active table; older versions are kept for records computed against them.",
)
async def publish_tax_table(
    data: TaxTableCreate,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_admin),
):
    return await TaxTableService(db).publish_table(
        name=data.name,
        sss_brackets=[b.to_bracket() for b in data.sss_brackets],
        philhealth_brackets=[b.to_bracket() for b in data.philhealth_brackets],
        pagibig_brackets=[b.to_bracket() for b in data.pagibig_brackets],
        withholding_brackets=[b.to_bracket() for b in data.withholding_brackets],
        effective_date=data.effective_date,
        created_by_id=current_employee.id,
    )


@router.put(
    "/tax-tables/{table_id}",
    response_model=TaxTableResponse,
    summary="Edit an unreferenced tax table",
    description="Refused once any payroll record was computed against the table; publish a new version instead.",
)
async def update_tax_table(
    table_id: uuid.UUID,
    data: TaxTableCreate,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_admin),
):
    return await TaxTableService(db).update_table(
        table_id,
        name=data.name,
        effective_date=data.effective_date,
        sss_brackets=[b.to_bracket() for b in data.sss_brackets],
        philhealth_brackets=[b.to_bracket() for b in data.philhealth_brackets],
        pagibig_brackets=[b.to_bracket() for b in data.pagibig_brackets],
        withholding_brackets=[b.to_bracket() for b in data.withholding_brackets],
        updated_by_id=current_employee.id,
    )


@router.post(
    "/tax-tables/default",
    response_model=TaxTableResponse,
    summary="Activate the built-in statutory schedule",
    description="No-op when a table is already active.",
)
async def ensure_default_tax_table(
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_admin),
):
    return await TaxTableService(db).ensure_default_table(created_by_id=current_employee.id)


# ===========================================
# PAYROLL PERIOD ENDPOINTS
# ===========================================

@router.post(
    "/periods",
    response_model=InitializationResult,
    status_code=status.HTTP_201_CREATED,
    summary="Initialize a payroll period",
    description="Creates the period and one draft record per active employee with a salary configuration.",
)
async def initialize_period(
    data: PayrollPeriodCreate,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_hr),
):
    result = await PayrollPeriodService(db).initialize_period(data, current_employee)
    return _initialization_response(result)


@router.get(
    "/periods",
    response_model=List[PayrollPeriodResponse],
    summary="List payroll periods",
)
async def list_periods(
    period_status: Optional[PayrollPeriodStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_payroll_manager),
):
    return await PayrollPeriodService(db).list_periods(period_status)


@router.get(
    "/periods/{period_id}",
    response_model=PayrollPeriodResponse,
    summary="Get a payroll period",
)
async def get_period(
    period_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_payroll_manager),
):
    return await PayrollPeriodService(db).get_period(period_id)


@router.post(
    "/periods/{period_id}/sync-records",
    response_model=InitializationResult,
    summary="Add records for newly eligible employees",
)
async def sync_period_records(
    period_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_hr),
):
    result = await PayrollPeriodService(db).sync_records(period_id, current_employee)
    return _initialization_response(result)


@router.post(
    "/periods/{period_id}/compute",
    response_model=ComputeAllResult,
    summary="Compute all records",
    description="Per-employee failures are reported in the result and never abort the batch.",
)
async def compute_period(
    period_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_hr),
):
    return await PayrollPeriodService(db).compute_all(period_id, current_employee)


@router.get(
    "/periods/{period_id}/summary",
    response_model=PeriodSummary,
    summary="Period totals and record counts",
)
async def get_period_summary(
    period_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_payroll_manager),
):
    return await PayrollPeriodService(db).get_period_summary(period_id)


@router.post(
    "/periods/{period_id}/submit",
    response_model=PayrollPeriodResponse,
    summary="Submit a computed period for approval",
)
async def submit_period(
    period_id: uuid.UUID,
    data: Optional[PeriodTransitionRequest] = None,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_hr),
):
    return await PayrollPeriodService(db).submit_for_approval(
        period_id, current_employee, note=data.note if data else None,
    )


@router.post(
    "/periods/{period_id}/approve",
    response_model=PayrollPeriodResponse,
    summary="Approve a period",
    description="Requires every payroll record in the period to be approved.",
)
async def approve_period(
    period_id: uuid.UUID,
    data: Optional[PeriodTransitionRequest] = None,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_payroll_manager),
):
    return await PayrollPeriodService(db).approve_period(
        period_id, current_employee, note=data.note if data else None,
    )


@router.post(
    "/periods/{period_id}/lock",
    response_model=PayrollPeriodResponse,
    summary="Lock a period",
    description="Irreversible; every record must be approved.",
)
async def lock_period(
    period_id: uuid.UUID,
    data: Optional[PeriodTransitionRequest] = None,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_payroll_manager),
):
    return await PayrollPeriodService(db).lock_period(
        period_id, current_employee, note=data.note if data else None,
    )


@router.post(
    "/periods/{period_id}/status",
    response_model=PayrollPeriodResponse,
    summary="Move a period along its lifecycle",
    description="Reopen, send back or cancel. Guarded forward moves run their own checks.",
)
async def change_period_status(
    period_id: uuid.UUID,
    data: PeriodTransitionRequest,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_hr),
):
    return await PayrollPeriodService(db).change_status(
        period_id, data.target_status, current_employee, note=data.note,
    )


@router.post(
    "/periods/{period_id}/payslips",
    response_model=PayslipGenerationResult,
    summary="Generate payslips",
    description="Idempotent; only approved records of a locked period get payslips.",
)
async def generate_payslips(
    period_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_hr),
):
    return await PayrollPeriodService(db).generate_payslips(period_id, current_employee)


@router.get(
    "/periods/{period_id}/payslips",
    response_model=List[PayslipResponse],
    summary="List a period's payslips",
)
async def list_period_payslips(
    period_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_hr),
):
    return await PayrollPeriodService(db).list_payslips(period_id=period_id)


# ===========================================
# PAYROLL RECORD ENDPOINTS
# ===========================================

@router.get(
    "/periods/{period_id}/records",
    response_model=List[PayrollRecordResponse],
    summary="List a period's payroll records",
)
async def list_records(
    period_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_payroll_manager),
):
    return await PayrollPeriodService(db).list_records(period_id)


@router.get(
    "/records/{record_id}",
    response_model=PayrollRecordResponse,
    summary="Get a payroll record",
)
async def get_record(
    record_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_payroll_manager),
):
    return await PayrollPeriodService(db).get_record(record_id)


@router.post(
    "/records/{record_id}/compute",
    response_model=PayrollRecordResponse,
    summary="Recompute one payroll record",
)
async def compute_record(
    record_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_hr),
):
    return await PayrollPeriodService(db).compute_record(record_id, current_employee)


@router.post(
    "/records/{record_id}/adjustments",
    response_model=PayrollRecordResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a bonus, reimbursement or deduction",
)
async def add_adjustment(
    record_id: uuid.UUID,
    data: AdjustmentCreate,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_hr),
):
    return await PayrollPeriodService(db).add_adjustment(record_id, data, current_employee)


@router.post(
    "/records/{record_id}/approve",
    response_model=PayrollRecordResponse,
    summary="Approve a payroll record",
)
async def approve_record(
    record_id: uuid.UUID,
    data: ApproveAction,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_payroll_manager),
):
    return await PayrollPeriodService(db).approve_record(record_id, current_employee, data.comment)


@router.post(
    "/records/{record_id}/reject",
    response_model=PayrollRecordResponse,
    summary="Reject a payroll record",
)
async def reject_record(
    record_id: uuid.UUID,
    data: RejectAction,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_payroll_manager),
):
    return await PayrollPeriodService(db).reject_record(record_id, current_employee, data.reason)


# ===========================================
# PAYSLIP ENDPOINTS
# ===========================================

@router.get(
    "/payslips/me",
    response_model=List[PayslipResponse],
    summary="My payslips",
)
async def my_payslips(
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    return await PayrollPeriodService(db).list_payslips(employee_id=current_employee.id)


@router.get(
    "/payslips/{payslip_id}",
    response_model=PayslipResponse,
    summary="View a payslip",
    description="Allowed for the owner and HR; every view is recorded.",
)
async def view_payslip(
    payslip_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    return await PayrollPeriodService(db).view_payslip(payslip_id, current_employee)


@router.post(
    "/payslips/{payslip_id}/download",
    response_model=PayslipResponse,
    summary="Download a payslip",
    description="Allowed for the owner and HR; every download is recorded.",
)
async def download_payslip(
    payslip_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    return await PayrollPeriodService(db).download_payslip(payslip_id, current_employee)
