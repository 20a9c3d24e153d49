"""
Error Handling Module for the Payroll Back Office

This module provides centralized error handling with:
- Custom exception hierarchy
- Standardized error responses
- Error logging
- Payroll, leave and approval business-rule errors
- Database error translation
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union
from uuid import UUID
import logging

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DataError,
)
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("payroll.errors")


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""

    # Validation Errors (422)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_BRACKETS = "INVALID_BRACKETS"

    # Authentication/Authorization Errors (401/403)
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    TOKEN_INVALID = "TOKEN_INVALID"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"

    # Resource Errors (404/409)
    NOT_FOUND = "NOT_FOUND"
    EMPLOYEE_NOT_FOUND = "EMPLOYEE_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    DUPLICATE_ATTENDANCE = "DUPLICATE_ATTENDANCE"
    VERSION_CONFLICT = "VERSION_CONFLICT"

    # Business Logic Errors (422)
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    INSUFFICIENT_LEAVE_BALANCE = "INSUFFICIENT_LEAVE_BALANCE"
    OVERLAPPING_PERIOD = "OVERLAPPING_PERIOD"
    ALREADY_FINALIZED = "ALREADY_FINALIZED"
    PERIOD_LOCKED = "PERIOD_LOCKED"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    APPROVER_NOT_AUTHORIZED = "APPROVER_NOT_AUTHORIZED"
    APPROVAL_ROUTE_NOT_FOUND = "APPROVAL_ROUTE_NOT_FOUND"
    NO_PAYROLL_RECORDS = "NO_PAYROLL_RECORDS"
    TABLE_IN_USE = "TABLE_IN_USE"

    # Configuration Missing (422)
    TAX_CONFIGURATION_MISSING = "TAX_CONFIGURATION_MISSING"
    SALARY_CONFIG_MISSING = "SALARY_CONFIG_MISSING"
    ATTENDANCE_DATA_MISSING = "ATTENDANCE_DATA_MISSING"

    # Database Errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"

    # Internal Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppException(Exception):
    """Base exception for all application exceptions"""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response"""
        result = {
            "code": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.field:
            result["field"] = self.field
        if self.details:
            result["details"] = self.details
        return result


# ============================================================================
# Validation Exceptions
# ============================================================================

class ValidationException(AppException):
    """Base validation exception"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            field=field,
        )


class InvalidDateRangeException(ValidationException):
    """Invalid date range"""

    def __init__(self, start_date: Union[str, date], end_date: Union[str, date], message: Optional[str] = None):
        super().__init__(
            message=message or f"Invalid date range: {start_date} to {end_date}. Start date must not be after end date.",
            code=ErrorCode.INVALID_DATE_RANGE,
            details={"start_date": str(start_date), "end_date": str(end_date)},
        )


class InvalidAmountException(ValidationException):
    """Invalid monetary amount"""

    def __init__(self, amount: Any, field: str = "amount", message: Optional[str] = None):
        super().__init__(
            message=message or f"Invalid amount: {amount}. Amount must be a positive number.",
            field=field,
            code=ErrorCode.INVALID_AMOUNT,
            details={"provided_amount": str(amount)},
        )


class InvalidBracketsException(ValidationException):
    """Bracket list is malformed or overlapping"""

    def __init__(self, table: str, problem: str):
        super().__init__(
            message=f"Invalid {table} brackets: {problem}",
            field=table,
            code=ErrorCode.INVALID_BRACKETS,
            details={"table": table, "problem": problem},
        )


# ============================================================================
# Authentication/Authorization Exceptions
# ============================================================================

class AuthenticationException(AppException):
    """Base authentication exception"""

    def __init__(
        self,
        message: str = "Authentication required",
        code: ErrorCode = ErrorCode.UNAUTHORIZED,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details,
        )


class AuthorizationException(AppException):
    """Authorization denied exception"""

    def __init__(
        self,
        message: str = "Permission denied",
        required_permission: Optional[str] = None,
        code: ErrorCode = ErrorCode.FORBIDDEN,
    ):
        details = {}
        if required_permission:
            details["required_permission"] = required_permission
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details,
        )


class InsufficientPermissionsException(AuthorizationException):
    """Insufficient permissions"""

    def __init__(self, required_permission: str, user_role: Optional[str] = None):
        super().__init__(
            message=f"Insufficient permissions. Required: {required_permission}",
            required_permission=required_permission,
            code=ErrorCode.INSUFFICIENT_PERMISSIONS,
        )
        if user_role:
            self.details["current_role"] = user_role


class ApproverNotAuthorizedException(AuthorizationException):
    """Actor may not act on the chain at its current level"""

    def __init__(self, actor_role: str, required_role: Optional[str], reason: Optional[str] = None):
        message = reason or f"Role '{actor_role}' cannot act on this request; waiting on '{required_role}'"
        super().__init__(
            message=message,
            required_permission=required_role,
            code=ErrorCode.APPROVER_NOT_AUTHORIZED,
        )
        self.details["actor_role"] = actor_role


# ============================================================================
# Resource Exceptions
# ============================================================================

class NotFoundException(AppException):
    """Resource not found exception"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Union[str, UUID]] = None,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_FOUND,
    ):
        if message is None:
            if resource_id:
                message = f"{resource_type} with ID '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id else None},
        )


class EmployeeNotFoundException(NotFoundException):
    """Employee not found"""

    def __init__(self, employee_id: Optional[Union[str, UUID]] = None, email: Optional[str] = None):
        if email:
            super().__init__(
                resource_type="Employee",
                message=f"Employee with email '{email}' not found",
                code=ErrorCode.EMPLOYEE_NOT_FOUND,
            )
        else:
            super().__init__(
                resource_type="Employee",
                resource_id=employee_id,
                code=ErrorCode.EMPLOYEE_NOT_FOUND,
            )


class ConflictException(AppException):
    """Resource conflict exception"""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        code: ErrorCode = ErrorCode.RESOURCE_CONFLICT,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if resource_type:
            _details["resource_type"] = resource_type
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=_details,
        )


class DuplicateAttendanceException(ConflictException):
    """Second check-in for the same employee and day"""

    def __init__(self, employee_id: Union[str, UUID], work_date: date):
        super().__init__(
            message=f"Attendance for {work_date.isoformat()} already recorded",
            resource_type="AttendanceRecord",
            code=ErrorCode.DUPLICATE_ATTENDANCE,
            details={"employee_id": str(employee_id), "work_date": work_date.isoformat()},
        )


class ConcurrentModificationException(ConflictException):
    """Row changed underneath the caller (optimistic version check failed)"""

    def __init__(self, resource_type: str, original_error: Optional[Exception] = None):
        super().__init__(
            message=f"{resource_type} was modified by another request. Reload and try again.",
            resource_type=resource_type,
            code=ErrorCode.VERSION_CONFLICT,
        )
        self.original_error = original_error


# ============================================================================
# Business Logic Exceptions
# ============================================================================

class BusinessRuleException(AppException):
    """Business rule violation exception"""

    def __init__(
        self,
        message: str,
        rule: Optional[str] = None,
        code: ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if rule:
            _details["violated_rule"] = rule
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=_details,
        )


class InsufficientLeaveBalanceException(BusinessRuleException):
    """Requested leave exceeds the remaining balance"""

    def __init__(self, requested: int, available: int):
        super().__init__(
            message=f"Insufficient leave balance. Requested: {requested} day(s), Available: {available} day(s)",
            rule="SUFFICIENT_LEAVE_BALANCE",
            code=ErrorCode.INSUFFICIENT_LEAVE_BALANCE,
            details={
                "requested_days": requested,
                "available_days": available,
                "shortfall": requested - available,
            },
        )


class OverlappingPeriodException(BusinessRuleException):
    """Payroll period overlaps an existing non-cancelled period"""

    def __init__(self, start_date: date, end_date: date, existing_name: str):
        super().__init__(
            message=f"Payroll period {start_date} to {end_date} overlaps existing period '{existing_name}'",
            rule="NO_OVERLAPPING_PERIODS",
            code=ErrorCode.OVERLAPPING_PERIOD,
            details={
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "existing_period": existing_name,
            },
        )


class AlreadyFinalizedException(BusinessRuleException):
    """Approval chain is already in a terminal state"""

    def __init__(self, resource_type: str, current_status: str):
        super().__init__(
            message=f"{resource_type} is already {current_status} and cannot be changed",
            rule="TERMINAL_CHAIN_IMMUTABLE",
            code=ErrorCode.ALREADY_FINALIZED,
            details={"resource_type": resource_type, "status": current_status},
        )


class PeriodLockedException(BusinessRuleException):
    """Write attempted on a locked payroll period"""

    def __init__(self, period_name: str, operation: str = "modification"):
        super().__init__(
            message=f"Cannot perform {operation} on locked payroll period: {period_name}",
            rule="PERIOD_OPEN",
            code=ErrorCode.PERIOD_LOCKED,
            details={"period": period_name, "operation": operation},
        )


class InvalidStateTransitionException(BusinessRuleException):
    """Transition not allowed from the current state"""

    def __init__(self, resource_type: str, current: str, target: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Cannot move {resource_type} from '{current}' to '{target}'",
            rule="STATE_TRANSITION",
            code=ErrorCode.INVALID_STATE_TRANSITION,
            details={"resource_type": resource_type, "from": current, "to": target},
        )


class ApprovalRouteNotFoundException(BusinessRuleException):
    """No approval route configured for the submitter's role"""

    def __init__(self, workflow: str, submitter_role: str):
        super().__init__(
            message=f"No {workflow} approval route for role '{submitter_role}'",
            rule="APPROVAL_ROUTE",
            code=ErrorCode.APPROVAL_ROUTE_NOT_FOUND,
            details={"workflow": workflow, "submitter_role": submitter_role},
        )


class NoPayrollRecordsException(BusinessRuleException):
    """Period has nothing to compute"""

    def __init__(self, period_name: str):
        super().__init__(
            message=f"Payroll period '{period_name}' has no payroll records. Initialize it first.",
            rule="RECORDS_REQUIRED",
            code=ErrorCode.NO_PAYROLL_RECORDS,
            details={"period": period_name},
        )


class TaxTableInUseException(BusinessRuleException):
    """Tax table referenced by computed records"""

    def __init__(self, version: int, record_count: int):
        super().__init__(
            message=f"Tax table version {version} is referenced by {record_count} payroll record(s); publish a new version instead",
            rule="TAX_TABLE_IMMUTABLE",
            code=ErrorCode.TABLE_IN_USE,
            details={"version": version, "record_count": record_count},
        )


# ============================================================================
# Configuration Missing Exceptions
# ============================================================================

class ConfigurationMissingException(BusinessRuleException):
    """Required configuration absent (distinct from a legitimate zero)"""


class TaxConfigurationMissingException(ConfigurationMissingException):
    """No tax table, or no bracket matched a positive amount"""

    def __init__(self, message: str, amount: Optional[Any] = None, table: Optional[str] = None):
        details: Dict[str, Any] = {}
        if amount is not None:
            details["amount"] = str(amount)
        if table:
            details["table"] = table
        super().__init__(
            message=message,
            rule="TAX_CONFIGURATION_REQUIRED",
            code=ErrorCode.TAX_CONFIGURATION_MISSING,
            details=details,
        )


class SalaryConfigMissingException(ConfigurationMissingException):
    """Employee has no active salary configuration"""

    def __init__(self, employee_id: Union[str, UUID]):
        super().__init__(
            message=f"No active salary configuration for employee {employee_id}",
            rule="SALARY_CONFIG_REQUIRED",
            code=ErrorCode.SALARY_CONFIG_MISSING,
            details={"employee_id": str(employee_id)},
        )


class AttendanceDataMissingException(ConfigurationMissingException):
    """No attendance rows and the fallback policy forbids assuming them"""

    def __init__(self, employee_id: Union[str, UUID], start_date: date, end_date: date):
        super().__init__(
            message=f"No attendance records for employee {employee_id} between {start_date} and {end_date}",
            rule="ATTENDANCE_REQUIRED",
            code=ErrorCode.ATTENDANCE_DATA_MISSING,
            details={
                "employee_id": str(employee_id),
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
            },
        )


# ============================================================================
# Database Exceptions
# ============================================================================

class DatabaseException(AppException):
    """Database error exception"""

    def __init__(
        self,
        message: str = "A database error occurred",
        code: ErrorCode = ErrorCode.DATABASE_ERROR,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            original_error=original_error,
        )


# ============================================================================
# Exception Handlers
# ============================================================================

def create_error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
    field: Optional[str] = None,
) -> JSONResponse:
    """Create a standardized error response"""
    content = {
        "detail": {
            "code": code.value,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    }
    if field:
        content["detail"]["field"] = field
    if details:
        content["detail"]["details"] = details

    return JSONResponse(status_code=status_code, content=content)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle AppException"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"AppException: {exc.code.value} - {exc.message}",
        extra={
            "code": exc.code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
        exc_info=exc.original_error,
    )

    return create_error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        field=exc.field,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException"""
    code_map = {
        400: ErrorCode.INVALID_INPUT,
        401: ErrorCode.UNAUTHORIZED,
        403: ErrorCode.FORBIDDEN,
        404: ErrorCode.NOT_FOUND,
        409: ErrorCode.RESOURCE_CONFLICT,
        422: ErrorCode.VALIDATION_ERROR,
        500: ErrorCode.INTERNAL_ERROR,
    }

    error_code = code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    logger.warning(
        f"HTTPException: {exc.status_code} - {message}",
        extra={"path": request.url.path, "method": request.method},
    )

    return create_error_response(
        code=error_code,
        message=message,
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors"""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning(
        f"ValidationError: {len(errors)} validation errors",
        extra={"path": request.url.path, "method": request.method, "errors": errors},
    )

    return create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        details={"errors": errors},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy errors"""
    error_message = "A database error occurred"
    error_code = ErrorCode.DATABASE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if isinstance(exc, IntegrityError):
        error_message = "Data integrity constraint violated"
        error_code = ErrorCode.DATA_INTEGRITY_ERROR
        error_str = str(exc.orig).lower() if exc.orig else ""
        if "unique" in error_str or "duplicate" in error_str:
            error_message = "A record with this value already exists"
            error_code = ErrorCode.DUPLICATE_ENTRY
            status_code = status.HTTP_409_CONFLICT
        elif "foreign key" in error_str:
            error_message = "Referenced record does not exist"
            status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, StaleDataError):
        error_message = "Record was modified by another request"
        error_code = ErrorCode.VERSION_CONFLICT
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, OperationalError):
        error_message = "Database operation failed"
        error_code = ErrorCode.CONNECTION_ERROR
    elif isinstance(exc, DataError):
        error_message = "Invalid data format for database"
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    logger.error(
        f"SQLAlchemyError: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        code=error_code,
        message=error_message,
        status_code=status_code,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions"""
    logger.critical(
        f"UnhandledException: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        code=ErrorCode.INTERNAL_ERROR,
        message="An unexpected error occurred. Please try again later.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
