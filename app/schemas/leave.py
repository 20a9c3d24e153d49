"""
Payroll Back Office - Leave Schemas
"""

from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.employee import EmployeeRole
from app.models.leave import LeaveType
from app.schemas.approval import ApprovalEntry


LeaveTypeEnum = Literal["sick", "vacation", "personal", "bereavement", "emergency", "unpaid"]


class LeaveRequestCreate(BaseModel):
    """Leave request body."""
    leave_type: LeaveTypeEnum
    start_date: date
    end_date: date
    reason: str = Field(..., min_length=1, max_length=1000)

    @field_validator('reason')
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Reason cannot be blank")
        return v.strip()

    @model_validator(mode='after')
    def check_dates(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self


class LeaveRequestResponse(BaseModel):
    """Leave request response."""
    id: UUID
    employee_id: UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    number_of_days: int
    reason: str
    status: str
    submitter_role: Optional[EmployeeRole] = None
    current_approval_level: int
    total_approvals_required: int
    approvals: List[ApprovalEntry] = []
    rejection_reason: Optional[str] = None
    finalized_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
