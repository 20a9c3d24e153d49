"""
Payroll Back Office - Attendance and Time Correction Router
"""

import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_employee, require_hr
from app.models.employee import Employee
from app.schemas.approval import ApproveAction, RejectAction
from app.schemas.attendance import (
    AttendanceResponse,
    CheckInRequest,
    TimeCorrectionCreate,
    TimeCorrectionResponse,
)
from app.services.attendance_service import AttendanceService
from app.services.time_correction_service import TimeCorrectionService


router = APIRouter()


# ===========================================
# ATTENDANCE
# ===========================================

@router.post(
    "/attendance/check-in",
    response_model=AttendanceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Check in for today",
)
async def check_in(
    data: Optional[CheckInRequest] = None,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    data = data or CheckInRequest()
    return await AttendanceService(db).check_in(current_employee, at=data.at, notes=data.notes)


@router.post(
    "/attendance/check-out",
    response_model=AttendanceResponse,
    summary="Check out for today",
)
async def check_out(
    data: Optional[CheckInRequest] = None,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    data = data or CheckInRequest()
    return await AttendanceService(db).check_out(current_employee, at=data.at)


@router.get(
    "/attendance/me",
    response_model=List[AttendanceResponse],
    summary="My attendance records",
)
async def my_attendance(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    return await AttendanceService(db).list_records(current_employee.id, start_date, end_date)


@router.get(
    "/attendance/employees/{employee_id}",
    response_model=List[AttendanceResponse],
    summary="An employee's attendance records",
)
async def employee_attendance(
    employee_id: uuid.UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(require_hr),
):
    return await AttendanceService(db).list_records(employee_id, start_date, end_date)


# ===========================================
# TIME CORRECTIONS
# ===========================================

@router.post(
    "/time-corrections",
    response_model=TimeCorrectionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a time correction",
)
async def submit_time_correction(
    data: TimeCorrectionCreate,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    return await TimeCorrectionService(db).submit(current_employee, data)


@router.get(
    "/time-corrections/me",
    response_model=List[TimeCorrectionResponse],
    summary="My time correction requests",
)
async def my_time_corrections(
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    return await TimeCorrectionService(db).list_for_employee(current_employee.id)


@router.get(
    "/time-corrections/pending",
    response_model=List[TimeCorrectionResponse],
    summary="Time corrections awaiting my approval",
)
async def pending_time_corrections(
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    return await TimeCorrectionService(db).pending_for(current_employee)


@router.post(
    "/time-corrections/{request_id}/approve",
    response_model=TimeCorrectionResponse,
    summary="Approve a time correction",
)
async def approve_time_correction(
    request_id: uuid.UUID,
    data: ApproveAction,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    return await TimeCorrectionService(db).approve(request_id, current_employee, data.comment)


@router.post(
    "/time-corrections/{request_id}/reject",
    response_model=TimeCorrectionResponse,
    summary="Reject a time correction",
)
async def reject_time_correction(
    request_id: uuid.UUID,
    data: RejectAction,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    return await TimeCorrectionService(db).reject(request_id, current_employee, data.reason)
