"""
Payroll Back Office - Employee Service

Employee records, authentication and per-employee salary configuration.
"""

import logging
import uuid
from datetime import date
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.employee import Employee, EmployeeRole
from app.models.salary import SalaryConfig, WorkSchedule
from app.schemas.employee import EmployeeCreate
from app.schemas.payroll import SalaryConfigCreate
from app.services.leave_balance import year_end
from app.services.payroll_computer import derive_rates
from app.utils.error_handling import (
    AuthenticationException,
    ConflictException,
    EmployeeNotFoundException,
    NotFoundException,
)
from app.utils.security import get_password_hash, verify_password

logger = logging.getLogger(__name__)


class EmployeeService:
    """Service for employee and salary configuration operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_employee(self, employee_id: uuid.UUID) -> Employee:
        employee = await self.db.get(Employee, employee_id)
        if employee is None:
            raise EmployeeNotFoundException(employee_id)
        return employee

    async def get_by_email(self, email: str) -> Optional[Employee]:
        result = await self.db.execute(select(Employee).where(Employee.email == email.lower()))
        return result.scalar_one_or_none()

    async def list_employees(self, active_only: bool = True) -> List[Employee]:
        query = select(Employee)
        if active_only:
            query = query.where(Employee.is_active == True)  # noqa: E712
        result = await self.db.execute(query.order_by(Employee.employee_number))
        return list(result.scalars().all())

    async def create_employee(self, data: EmployeeCreate, today: Optional[date] = None) -> Employee:
        existing = await self.db.execute(
            select(Employee.id).where(
                or_(
                    Employee.email == data.email.lower(),
                    Employee.employee_number == data.employee_number,
                )
            )
        )
        if existing.first() is not None:
            raise ConflictException(
                "An employee with this email or employee number already exists",
                resource_type="Employee",
            )

        employee = Employee(
            employee_number=data.employee_number,
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email.lower(),
            hashed_password=get_password_hash(data.password) if data.password else None,
            role=EmployeeRole(data.role),
            department=data.department,
            position=data.position,
            leave_balance=settings.default_leave_entitlement,
            leave_reset_date=year_end(today or date.today()),
        )
        self.db.add(employee)
        await self.db.commit()
        await self.db.refresh(employee)

        logger.info(f"Employee {employee.employee_number} created with role {employee.role.value}")
        return employee

    async def authenticate(self, email: str, password: str) -> Employee:
        employee = await self.get_by_email(email)
        if (
            employee is None
            or not employee.hashed_password
            or not verify_password(password, employee.hashed_password)
        ):
            raise AuthenticationException("Invalid email or password")
        if not employee.is_active:
            raise AuthenticationException("Employee account is deactivated")
        return employee

    # ===========================================
    # SALARY CONFIGURATION
    # ===========================================

    async def get_salary_config(self, employee_id: uuid.UUID) -> Optional[SalaryConfig]:
        result = await self.db.execute(
            select(SalaryConfig).where(SalaryConfig.employee_id == employee_id)
        )
        return result.scalar_one_or_none()

    async def require_salary_config(self, employee_id: uuid.UUID) -> SalaryConfig:
        config = await self.get_salary_config(employee_id)
        if config is None:
            raise NotFoundException("SalaryConfig", employee_id)
        return config

    async def upsert_salary_config(
        self,
        employee_id: uuid.UUID,
        data: SalaryConfigCreate,
        updated_by_id: Optional[uuid.UUID] = None,
    ) -> SalaryConfig:
        """Create or replace the employee's salary configuration."""
        await self.get_employee(employee_id)
        rates = derive_rates(data.daily_rate, data.monthly_rate, data.hourly_rate)

        values = {
            **rates,
            "overtime_multiplier": data.overtime_multiplier,
            "night_differential_multiplier": data.night_differential_multiplier,
            "special_holiday_multiplier": data.special_holiday_multiplier,
            "regular_holiday_multiplier": data.regular_holiday_multiplier,
            "rest_day_multiplier": data.rest_day_multiplier,
            "allowances": [a.model_dump(mode="json") for a in data.allowances],
            "deductions": [d.model_dump(mode="json") for d in data.deductions],
            "is_tax_exempt": data.is_tax_exempt,
            "tax_exemption_reason": data.tax_exemption_reason if data.is_tax_exempt else None,
            "work_schedule": WorkSchedule(data.work_schedule),
            "notes": data.notes,
            "is_active": True,
        }

        config = await self.get_salary_config(employee_id)
        if config is None:
            config = SalaryConfig(employee_id=employee_id, created_by_id=updated_by_id, **values)
            self.db.add(config)
        else:
            for key, value in values.items():
                setattr(config, key, value)
            config.updated_by_id = updated_by_id

        await self.db.commit()
        await self.db.refresh(config)

        logger.info(
            f"Salary config saved for employee {employee_id}: daily {config.daily_rate}, "
            f"tax exempt={config.is_tax_exempt}"
        )
        return config
