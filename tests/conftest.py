"""
Payroll Back Office - Test Configuration

Pytest fixtures and configuration.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import AsyncGenerator, Optional
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.database import Base, get_async_session
from app.models.attendance import AttendanceRecord
from app.models.employee import Employee, EmployeeRole
from app.models.salary import SalaryConfig
from app.models.tax_table import TaxTable
from app.schemas.payroll import SalaryConfigCreate
from app.services.attendance_service import apply_times
from app.services.employee_service import EmployeeService
from app.services.tax_calculators.tax_engine import TaxTableService
from app.utils.security import create_access_token, get_password_hash
from main import app


# In-memory SQLite; StaticPool keeps the single connection alive per engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Monday; every date-sensitive test passes this explicitly
TODAY = date(2026, 10, 19)
TEST_PASSWORD = "TestPassword123!"


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh in-memory database for each test."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    TestSessionLocal = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATA HELPERS
# ===========================================

async def create_employee(
    db: AsyncSession,
    number: str,
    role: EmployeeRole = EmployeeRole.EMPLOYEE,
    password: Optional[str] = None,
    leave_balance: int = 15,
    leave_reset_date: Optional[date] = date(2026, 12, 31),
) -> Employee:
    employee = Employee(
        id=uuid4(),
        employee_number=number,
        first_name=role.value.replace("_", " ").title(),
        last_name=number,
        email=f"{number.lower()}@example.com",
        hashed_password=get_password_hash(password) if password else None,
        role=role,
        department="Operations",
        position=role.value,
        is_active=True,
        leave_balance=leave_balance,
        leave_reset_date=leave_reset_date,
    )
    db.add(employee)
    await db.commit()
    await db.refresh(employee)
    return employee


async def create_salary_config(
    db: AsyncSession,
    employee: Employee,
    daily_rate: str = "1000",
    **overrides,
) -> SalaryConfig:
    data = SalaryConfigCreate(daily_rate=Decimal(daily_rate), **overrides)
    return await EmployeeService(db).upsert_salary_config(employee.id, data)


async def create_attendance(
    db: AsyncSession,
    employee: Employee,
    work_date: date,
    check_in: str = "08:00",
    check_out: Optional[str] = "17:00",
) -> AttendanceRecord:
    """Attendance row with metrics derived the same way check-out does."""
    start = datetime.combine(work_date, datetime.strptime(check_in, "%H:%M").time())
    record = AttendanceRecord(employee_id=employee.id, work_date=work_date, check_in=start)
    if check_out:
        end = datetime.combine(work_date, datetime.strptime(check_out, "%H:%M").time())
        apply_times(record, start, end)
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return record


def auth_headers(employee: Employee) -> dict:
    token = create_access_token({"sub": str(employee.id), "role": employee.role.value})
    return {"Authorization": f"Bearer {token}"}


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest_asyncio.fixture
async def seeder_admin(db_session: AsyncSession) -> Employee:
    return await create_employee(db_session, "ADM-001", EmployeeRole.SEEDER_ADMIN)


@pytest_asyncio.fixture
async def supervisor(db_session: AsyncSession) -> Employee:
    return await create_employee(db_session, "SUP-001", EmployeeRole.SUPERVISOR)


@pytest_asyncio.fixture
async def hr_head(db_session: AsyncSession) -> Employee:
    return await create_employee(db_session, "HRH-001", EmployeeRole.HR_HEAD)


@pytest_asyncio.fixture
async def hr_staff(db_session: AsyncSession) -> Employee:
    return await create_employee(db_session, "HRS-001", EmployeeRole.HR_STAFF)


@pytest_asyncio.fixture
async def employee(db_session: AsyncSession) -> Employee:
    """Regular employee who can log in."""
    return await create_employee(db_session, "EMP-001", password=TEST_PASSWORD)


@pytest_asyncio.fixture
async def second_employee(db_session: AsyncSession) -> Employee:
    return await create_employee(db_session, "EMP-002")


@pytest_asyncio.fixture
async def default_tax_table(db_session: AsyncSession) -> TaxTable:
    """The built-in statutory schedule as the active table."""
    return await TaxTableService(db_session).ensure_default_table()


@pytest.fixture
def today() -> date:
    return TODAY
