"""
Payroll Back Office - Time Correction Request Model
"""

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.approval import ApprovalChainMixin
from app.models.base import BaseModel

if TYPE_CHECKING:
    from app.models.attendance import AttendanceRecord


class TimeCorrectionRequest(BaseModel, ApprovalChainMixin):
    """Request to overwrite one attendance record's check-in/out."""

    __tablename__ = "time_correction_requests"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    attendance_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("attendance_records.id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)

    original_check_in: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    original_check_out: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    corrected_check_in: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    corrected_check_out: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)

    # pending | approved_by_<role> | approved | rejected
    status: Mapped[str] = mapped_column(String(40), default="pending", nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    attendance: Mapped["AttendanceRecord"] = relationship("AttendanceRecord")

    __mapper_args__ = {"version_id_col": version}
