"""
Payroll Back Office - Approval Schemas

Shared request/response shapes for anything carrying an approval chain.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class ApproveAction(BaseModel):
    """Approve request body."""
    comment: Optional[str] = Field(None, max_length=1000)


class RejectAction(BaseModel):
    """Reject request body. A reason is mandatory."""
    reason: str = Field(..., min_length=1, max_length=1000)

    @field_validator('reason')
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Rejection reason cannot be blank")
        return v.strip()


class ApprovalEntry(BaseModel):
    """One entry in an approval log."""
    approver_id: str
    approver_name: Optional[str] = None
    role: str
    action: str
    comment: Optional[str] = None
    timestamp: str


class ApprovalChainView(BaseModel):
    """Chain state embedded in request responses."""
    status: str
    submitter_id: Optional[UUID] = None
    submitter_role: Optional[str] = None
    current_approval_level: int
    total_approvals_required: int
    next_approver_role: Optional[str] = None
    approvals: List[ApprovalEntry] = []
    rejection_reason: Optional[str] = None
    finalized_at: Optional[datetime] = None
