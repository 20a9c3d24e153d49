"""
Payroll Back Office - Leave Request Model
"""

import uuid
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Date, Enum as SQLEnum, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.approval import ApprovalChainMixin
from app.models.base import BaseModel

if TYPE_CHECKING:
    from app.models.employee import Employee


class LeaveType(str, Enum):
    """Leave types. Everything except UNPAID is paid leave."""
    SICK = "sick"
    VACATION = "vacation"
    PERSONAL = "personal"
    BEREAVEMENT = "bereavement"
    EMERGENCY = "emergency"
    UNPAID = "unpaid"


class LeaveRequest(BaseModel, ApprovalChainMixin):
    """Leave request with an embedded approval chain."""

    __tablename__ = "leave_requests"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    leave_type: Mapped[LeaveType] = mapped_column(SQLEnum(LeaveType), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    number_of_days: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)

    # pending | approved_by_<role> | approved | rejected
    status: Mapped[str] = mapped_column(String(40), default="pending", nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    employee: Mapped["Employee"] = relationship("Employee", back_populates="leave_requests")

    __mapper_args__ = {"version_id_col": version}
