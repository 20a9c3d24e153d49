"""
Payroll Back Office - Leave Router
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_employee
from app.models.employee import Employee, EmployeeRole
from app.schemas.approval import ApproveAction, RejectAction
from app.schemas.leave import LeaveRequestCreate, LeaveRequestResponse
from app.services.leave_service import LeaveService
from app.utils.error_handling import AuthorizationException


router = APIRouter()


@router.post(
    "",
    response_model=LeaveRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request leave",
    description="Checks the balance (after any annual reset) and routes the request by the submitter's role.",
)
async def submit_leave(
    data: LeaveRequestCreate,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    return await LeaveService(db).submit(current_employee, data)


@router.get(
    "/me",
    response_model=List[LeaveRequestResponse],
    summary="My leave requests",
)
async def my_leave_requests(
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    return await LeaveService(db).list_for_employee(current_employee.id)


@router.get(
    "/pending",
    response_model=List[LeaveRequestResponse],
    summary="Leave requests awaiting my approval",
)
async def pending_leave_requests(
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    return await LeaveService(db).pending_for(current_employee)


@router.get(
    "/{request_id}",
    response_model=LeaveRequestResponse,
    summary="Get a leave request",
)
async def get_leave_request(
    request_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    request = await LeaveService(db).get_request(request_id)
    if request.employee_id != current_employee.id and current_employee.role == EmployeeRole.EMPLOYEE:
        raise AuthorizationException("You may only view your own leave requests")
    return request


@router.post(
    "/{request_id}/approve",
    response_model=LeaveRequestResponse,
    summary="Approve a leave request",
    description="The final approval debits the requester's leave balance.",
)
async def approve_leave(
    request_id: uuid.UUID,
    data: ApproveAction,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    return await LeaveService(db).approve(request_id, current_employee, data.comment)


@router.post(
    "/{request_id}/reject",
    response_model=LeaveRequestResponse,
    summary="Reject a leave request",
)
async def reject_leave(
    request_id: uuid.UUID,
    data: RejectAction,
    db: AsyncSession = Depends(get_async_session),
    current_employee: Employee = Depends(get_current_employee),
):
    return await LeaveService(db).reject(request_id, current_employee, data.reason)
