"""
Payroll Back Office - Import Order Tests

Each package must load cleanly no matter which module a process touches first.
"""

import subprocess
import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parent.parent


def import_in_fresh_interpreter(*modules: str) -> subprocess.CompletedProcess:
    script = "; ".join(f"import {name}" for name in modules)
    return subprocess.run(
        [sys.executable, "-c", script],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=60,
    )


@pytest.mark.parametrize(
    "modules",
    [
        ("main",),
        ("app.schemas",),
        ("app.schemas.payroll", "main"),
        ("app.services.tax_calculators.contributions", "app.schemas.payroll"),
        ("app.services.employee_service", "main"),
        ("app.routers",),
    ],
)
def test_modules_import_in_any_order(modules):
    result = import_in_fresh_interpreter(*modules)

    assert result.returncode == 0, result.stderr


def test_application_registers_routes():
    from main import app

    paths = {route.path for route in app.routes if hasattr(route, "path")}

    assert "/api/v1/auth/login" in paths
    assert "/api/v1/attendance/check-in" in paths
    assert any(path.startswith("/api/v1/payroll") for path in paths)
    assert any(path.startswith("/api/v1/leave-requests") for path in paths)
