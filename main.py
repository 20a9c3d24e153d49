"""
Payroll Back Office - FastAPI Application Entry Point

This is the main entry point for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import init_db, close_db, async_session_maker
from app.routers import attendance, auth, leave, payroll
from app.utils.error_handling import AppException, setup_exception_handlers

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def seed_admin():
    """
    Seed the bootstrap seeder_admin account on startup.
    Only runs when SEED_ADMIN_EMAIL and SEED_ADMIN_PASSWORD are configured.
    """
    from app.models.employee import EmployeeRole
    from app.schemas.employee import EmployeeCreate
    from app.services.employee_service import EmployeeService

    if not (settings.seed_admin_email and settings.seed_admin_password):
        return

    async with async_session_maker() as session:
        service = EmployeeService(session)
        if await service.get_by_email(settings.seed_admin_email):
            return
        admin = await service.create_employee(
            EmployeeCreate(
                employee_number="ADMIN-0001",
                first_name="System",
                last_name="Administrator",
                email=settings.seed_admin_email,
                password=settings.seed_admin_password,
                role=EmployeeRole.SEEDER_ADMIN.value,
            )
        )
        logger.info(f"Seeder admin ready: {admin.email}")


async def seed_tax_table():
    """Activate the built-in statutory tax table when none is active."""
    from app.services.tax_calculators.tax_engine import TaxTableService

    async with async_session_maker() as session:
        table = await TaxTableService(session).ensure_default_table()
        logger.info(f"Active tax table: version {table.version} ({table.name})")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.app_env}")

    # Initialize database (dev only - use migrations in production)
    if settings.is_development:
        await init_db()
        logger.info("Database tables initialized")

    try:
        await seed_admin()
    except AppException as e:
        logger.warning(f"Seeder admin skipped: {e.message}")

    try:
        await seed_tax_table()
    except AppException as e:
        logger.warning(f"Tax table seeding skipped: {e.message}")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Attendance, leave, approvals and payroll computation for a role-hierarchical organization",
    version="0.1.0",
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url="/api/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)


# ===========================================
# API ROUTES
# ===========================================

@app.get("/api")
async def api_info():
    """API information endpoint."""
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "status": "running",
        "environment": settings.app_env,
        "api_docs": "/api/docs" if settings.is_development else "disabled",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# ===========================================
# INCLUDE ROUTERS
# ===========================================

app.include_router(auth.router, prefix="/api/v1", tags=["Auth & Employees"])
app.include_router(attendance.router, prefix="/api/v1", tags=["Attendance"])
app.include_router(leave.router, prefix="/api/v1/leave-requests", tags=["Leave"])
app.include_router(payroll.router, prefix="/api/v1/payroll", tags=["Payroll"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
    )
