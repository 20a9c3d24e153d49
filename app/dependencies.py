"""
Payroll Back Office - FastAPI Dependencies

Shared dependencies for authentication and role checks.
"""

import uuid
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.models.employee import Employee, EmployeeRole
from app.utils.security import verify_access_token


# HTTP Bearer token security
security = HTTPBearer(auto_error=False)


async def get_current_employee(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_async_session),
) -> Employee:
    """
    Resolve the authenticated employee from the bearer token.

    Raises:
        HTTPException: If the token is missing or invalid, or the employee
            is unknown or deactivated
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        employee_id = uuid.UUID(payload["sub"])
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid employee ID in token",
        )

    employee = await db.get(Employee, employee_id)
    if employee is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Employee not found",
        )
    if not employee.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Employee account is deactivated",
        )
    return employee


def require_roles(*roles: EmployeeRole):
    """
    Dependency factory allowing only the given roles.

    Usage:
        @router.post("/periods", dependencies=[Depends(require_roles(EmployeeRole.HR_HEAD))])
    """
    allowed = {EmployeeRole(role) for role in roles}

    async def check_role(
        current_employee: Employee = Depends(get_current_employee),
    ) -> Employee:
        if current_employee.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires one of roles: {', '.join(sorted(r.value for r in allowed))}",
            )
        return current_employee

    return check_role


# Common role groups
require_hr = require_roles(EmployeeRole.HR_STAFF, EmployeeRole.HR_HEAD)
require_payroll_manager = require_roles(
    EmployeeRole.HR_STAFF,
    EmployeeRole.HR_HEAD,
    EmployeeRole.SUPERVISOR,
    EmployeeRole.SEEDER_ADMIN,
)
require_admin = require_roles(EmployeeRole.SEEDER_ADMIN, EmployeeRole.HR_HEAD)
