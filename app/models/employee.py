"""
Payroll Back Office - Employee Model

Employees, their position in the role hierarchy, and the annual leave ledger
fields carried on the employee row.
"""

from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, Date, Enum as SQLEnum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel

if TYPE_CHECKING:
    from app.models.salary import SalaryConfig
    from app.models.attendance import AttendanceRecord
    from app.models.leave import LeaveRequest


class EmployeeRole(str, Enum):
    """Role hierarchy, highest authority first."""
    SEEDER_ADMIN = "seeder_admin"
    SUPERVISOR = "supervisor"
    HR_HEAD = "hr_head"
    HR_STAFF = "hr_staff"
    EMPLOYEE = "employee"

    @property
    def rank(self) -> int:
        """0 for the top of the hierarchy, increasing downwards."""
        return ROLE_HIERARCHY.index(self)

    def outranks(self, other: "EmployeeRole") -> bool:
        return self.rank < other.rank


ROLE_HIERARCHY = [
    EmployeeRole.SEEDER_ADMIN,
    EmployeeRole.SUPERVISOR,
    EmployeeRole.HR_HEAD,
    EmployeeRole.HR_STAFF,
    EmployeeRole.EMPLOYEE,
]

HR_ROLES = (EmployeeRole.HR_STAFF, EmployeeRole.HR_HEAD)


class Employee(BaseModel):
    """
    Employee record.

    The leave ledger lives on the employee row: ``leave_balance`` is the
    remaining annual entitlement and ``leave_reset_date`` the anniversary on
    which it is restored to the default.
    """

    __tablename__ = "employees"

    employee_number: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True,
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    hashed_password: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    role: Mapped[EmployeeRole] = mapped_column(
        SQLEnum(EmployeeRole),
        default=EmployeeRole.EMPLOYEE,
        nullable=False,
    )
    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    position: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Leave ledger
    leave_balance: Mapped[int] = mapped_column(
        Integer,
        default=15,
        nullable=False,
        comment="Remaining annual leave days",
    )
    leave_reset_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        comment="Anniversary on which the balance is restored",
    )
    # Bumped on every write; concurrent leave debits against one balance conflict
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    salary_config: Mapped[Optional["SalaryConfig"]] = relationship(
        "SalaryConfig",
        back_populates="employee",
        uselist=False,
        cascade="all, delete-orphan",
    )
    attendance_records: Mapped[List["AttendanceRecord"]] = relationship(
        "AttendanceRecord",
        back_populates="employee",
        cascade="all, delete-orphan",
    )
    leave_requests: Mapped[List["LeaveRequest"]] = relationship(
        "LeaveRequest",
        back_populates="employee",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_hr(self) -> bool:
        return self.role in HR_ROLES
