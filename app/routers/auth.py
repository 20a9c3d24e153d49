"""
Payroll Back Office - Authentication and Employee Router

Login, current-employee lookup and employee administration.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_async_session
from app.dependencies import get_current_employee, require_admin, require_hr
from app.models.employee import Employee
from app.schemas.employee import (
    EmployeeCreate,
    EmployeeResponse,
    LeaveBalanceResponse,
    LoginRequest,
    TokenResponse,
)
from app.services.employee_service import EmployeeService
from app.services.leave_service import LeaveService
from app.utils.security import create_access_token


router = APIRouter()


# ===========================================
# AUTHENTICATION
# ===========================================

@router.post(
    "/auth/login",
    response_model=TokenResponse,
    summary="Log in",
    description="Exchange email and password for a bearer access token.",
)
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_async_session),
):
    employee = await EmployeeService(db).authenticate(data.email, data.password)
    token = create_access_token({"sub": str(employee.id), "role": employee.role.value})
    return TokenResponse(
        access_token=token,
        expires_in=settings.access_token_expire_minutes * 60,
    )


@router.get(
    "/auth/me",
    response_model=EmployeeResponse,
    summary="Current employee",
)
async def get_me(current_employee: Employee = Depends(get_current_employee)):
    return current_employee


@router.get(
    "/auth/me/leave-balance",
    response_model=LeaveBalanceResponse,
    summary="Current leave balance",
    description="Applies any pending annual reset before reporting the balance.",
)
async def get_my_leave_balance(
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    balance, reset_date, was_reset = await LeaveService(db).get_balance(current_employee)
    return LeaveBalanceResponse(
        employee_id=current_employee.id,
        leave_balance=balance,
        leave_reset_date=reset_date,
        was_reset=was_reset,
    )


# ===========================================
# EMPLOYEE ADMINISTRATION
# ===========================================

@router.post(
    "/employees",
    response_model=EmployeeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an employee",
)
async def create_employee(
    data: EmployeeCreate,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_admin),
):
    return await EmployeeService(db).create_employee(data)


@router.get(
    "/employees",
    response_model=List[EmployeeResponse],
    summary="List employees",
)
async def list_employees(
    active_only: bool = True,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_hr),
):
    return await EmployeeService(db).list_employees(active_only=active_only)


@router.get(
    "/employees/{employee_id}",
    response_model=EmployeeResponse,
    summary="Get an employee",
)
async def get_employee(
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_hr),
):
    return await EmployeeService(db).get_employee(employee_id)
