"""
Payroll Back Office - Attendance and Time Correction Schemas
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.models.attendance import AttendanceStatus
from app.schemas.approval import ApprovalEntry


# ===========================================
# ATTENDANCE SCHEMAS
# ===========================================

class CheckInRequest(BaseModel):
    """Check-in/out body. ``at`` defaults to the server clock."""
    at: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)


class AttendanceResponse(BaseModel):
    """Attendance record response."""
    id: UUID
    employee_id: UUID
    work_date: date
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    status: AttendanceStatus
    total_hours: Decimal
    late_minutes: int
    undertime_minutes: int
    overtime_hours: Decimal
    night_differential_hours: Decimal
    is_corrected: bool

    class Config:
        from_attributes = True


# ===========================================
# TIME CORRECTION SCHEMAS
# ===========================================

class TimeCorrectionCreate(BaseModel):
    """Time correction request."""
    attendance_id: UUID
    corrected_check_in: datetime
    corrected_check_out: datetime
    reason: str = Field(..., min_length=1, max_length=1000)

    @model_validator(mode='after')
    def check_order(self):
        if (self.corrected_check_in.tzinfo is None) != (self.corrected_check_out.tzinfo is None):
            raise ValueError("corrected times must both carry a UTC offset or both omit it")
        if self.corrected_check_out <= self.corrected_check_in:
            raise ValueError("corrected_check_out must be after corrected_check_in")
        return self


class TimeCorrectionResponse(BaseModel):
    """Time correction response."""
    id: UUID
    employee_id: UUID
    attendance_id: UUID
    work_date: date
    original_check_in: Optional[datetime] = None
    original_check_out: Optional[datetime] = None
    corrected_check_in: datetime
    corrected_check_out: datetime
    reason: str
    status: str
    current_approval_level: int
    total_approvals_required: int
    approvals: List[ApprovalEntry] = []
    rejection_reason: Optional[str] = None

    class Config:
        from_attributes = True
