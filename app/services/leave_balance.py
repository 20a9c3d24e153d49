"""
Payroll Back Office - Leave Balance Ledger

Annual leave entitlement kept on the employee row. The balance is reset
lazily: every balance-affecting read first checks whether the reset
anniversary has passed.
"""

import logging
from datetime import date
from typing import Optional

from app.config import settings
from app.models.employee import Employee
from app.utils.error_handling import InsufficientLeaveBalanceException

logger = logging.getLogger(__name__)


def year_end(day: date) -> date:
    return date(day.year, 12, 31)


def add_one_year(day: date) -> date:
    try:
        return day.replace(year=day.year + 1)
    except ValueError:
        # Feb 29 -> Feb 28
        return day.replace(year=day.year + 1, day=28)


class LeaveBalanceLedger:
    """Lazy reset, balance check and single debit for annual leave."""

    def __init__(self, default_entitlement: Optional[int] = None):
        self.default_entitlement = (
            settings.default_leave_entitlement if default_entitlement is None else default_entitlement
        )

    def refresh(self, employee: Employee, today: Optional[date] = None) -> bool:
        """
        Apply the reset if the anniversary has passed.

        Returns True when the balance was reset.
        """
        today = today or date.today()
        if employee.leave_reset_date is None:
            employee.leave_reset_date = year_end(today)
            if employee.leave_balance is None:
                employee.leave_balance = self.default_entitlement
            return False

        if today <= employee.leave_reset_date:
            return False

        reset_date = employee.leave_reset_date
        while reset_date < today:
            reset_date = add_one_year(reset_date)

        logger.info(
            f"Leave balance reset for employee {employee.id}: "
            f"{employee.leave_balance} -> {self.default_entitlement}, next reset {reset_date}"
        )
        employee.leave_balance = self.default_entitlement
        employee.leave_reset_date = reset_date
        return True

    def available(self, employee: Employee, today: Optional[date] = None) -> int:
        self.refresh(employee, today)
        return employee.leave_balance

    def ensure_sufficient(self, employee: Employee, days: int, today: Optional[date] = None) -> None:
        available = self.available(employee, today)
        if days > available:
            raise InsufficientLeaveBalanceException(requested=days, available=available)

    def debit(self, employee: Employee, days: int, today: Optional[date] = None) -> int:
        """Deduct approved days; returns the new balance."""
        self.ensure_sufficient(employee, days, today)
        employee.leave_balance -= days
        logger.info(f"Debited {days} leave day(s) from employee {employee.id}; balance {employee.leave_balance}")
        return employee.leave_balance
