"""
Payroll Back Office - Employee Schemas
"""

from datetime import date, datetime
from typing import Optional, Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.models.employee import EmployeeRole


RoleEnum = Literal["seeder_admin", "supervisor", "hr_head", "hr_staff", "employee"]


class EmployeeCreate(BaseModel):
    """Create employee request."""
    employee_number: str = Field(..., min_length=1, max_length=30)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: Optional[str] = Field(None, min_length=8)
    role: RoleEnum = "employee"
    department: Optional[str] = Field(None, max_length=100)
    position: Optional[str] = Field(None, max_length=100)


class EmployeeResponse(BaseModel):
    """Employee response."""
    id: UUID
    employee_number: str
    first_name: str
    last_name: str
    email: str
    role: EmployeeRole
    department: Optional[str] = None
    position: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class LeaveBalanceResponse(BaseModel):
    """Current leave balance after any pending reset."""
    employee_id: UUID
    leave_balance: int
    leave_reset_date: date
    was_reset: bool = False


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
