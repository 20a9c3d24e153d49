"""
Payroll Back Office - Routers Package

FastAPI route handlers.

Routers:
- auth: Login, current employee, employee administration
- attendance: Check-in/out and time corrections
- leave: Leave requests and approvals
- payroll: Salary configs, tax tables, periods, records and payslips
"""

from app.routers import attendance, auth, leave, payroll

__all__ = ["attendance", "auth", "leave", "payroll"]
