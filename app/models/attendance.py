"""
Payroll Back Office - Attendance Model
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, Date, DateTime, Enum as SQLEnum, ForeignKey, Integer, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel

if TYPE_CHECKING:
    from app.models.employee import Employee


class AttendanceStatus(str, Enum):
    """Derived attendance status."""
    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"
    CHECKED_OUT = "checked-out"


class AttendanceRecord(BaseModel):
    """
    One attendance row per employee per calendar day.

    Check-in and check-out are naive local timestamps; the shift thresholds
    in settings are expressed in the same local time.
    """

    __tablename__ = "attendance_records"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    check_in: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    check_out: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    status: Mapped[AttendanceStatus] = mapped_column(
        SQLEnum(AttendanceStatus),
        default=AttendanceStatus.PRESENT,
        nullable=False,
    )
    total_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("0"), nullable=False)

    # Derived at check-out
    late_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    undertime_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("0"), nullable=False)
    night_differential_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("0"), nullable=False)

    is_corrected: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    employee: Mapped["Employee"] = relationship("Employee", back_populates="attendance_records")

    __table_args__ = (
        UniqueConstraint("employee_id", "work_date", name="uq_attendance_employee_date"),
    )

    @property
    def is_complete(self) -> bool:
        """Both check-in and check-out recorded."""
        return self.check_in is not None and self.check_out is not None
