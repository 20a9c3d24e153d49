"""
Payroll Back Office - API Tests

HTTP surface: authentication, role checks and the error envelope.
"""

from decimal import Decimal

import pytest

from conftest import TEST_PASSWORD, auth_headers, create_salary_config


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_login_returns_token(self, client, employee):
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "emp-001@example.com", "password": TEST_PASSWORD},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]

    @pytest.mark.asyncio
    async def test_login_with_wrong_password(self, client, employee):
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "emp-001@example.com", "password": "not-the-password"},
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me(self, client, employee):
        response = await client.get("/api/v1/auth/me", headers=auth_headers(employee))

        assert response.status_code == 200
        assert response.json()["employee_number"] == "EMP-001"
        assert response.json()["role"] == "employee"

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_garbage_token(self, client):
        response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401


class TestRoleChecks:

    @pytest.mark.asyncio
    async def test_employee_cannot_list_employees(self, client, employee):
        response = await client.get("/api/v1/employees", headers=auth_headers(employee))

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_hr_can_list_employees(self, client, hr_staff, employee):
        response = await client.get("/api/v1/employees", headers=auth_headers(hr_staff))

        assert response.status_code == 200
        numbers = {e["employee_number"] for e in response.json()}
        assert {"HRS-001", "EMP-001"} <= numbers


class TestAttendanceEndpoints:

    @pytest.mark.asyncio
    async def test_duplicate_check_in_is_a_conflict(self, client, employee):
        body = {"at": "2026-10-20T08:05:00"}

        first = await client.post("/api/v1/attendance/check-in", json=body, headers=auth_headers(employee))
        assert first.status_code == 201
        assert first.json()["status"] == "present"

        second = await client.post("/api/v1/attendance/check-in", json=body, headers=auth_headers(employee))
        assert second.status_code == 409
        assert second.json()["detail"]["code"] == "DUPLICATE_ATTENDANCE"

    @pytest.mark.asyncio
    async def test_utc_timestamps_are_recorded_in_local_time(self, client, employee):
        headers = auth_headers(employee)

        checked_in = await client.post(
            "/api/v1/attendance/check-in", json={"at": "2026-10-20T00:00:00Z"}, headers=headers
        )
        assert checked_in.status_code == 201
        assert checked_in.json()["check_in"] == "2026-10-20T08:00:00"

        checked_out = await client.post(
            "/api/v1/attendance/check-out", json={"at": "2026-10-20T09:00:00+00:00"}, headers=headers
        )
        assert checked_out.status_code == 200
        data = checked_out.json()
        assert data["work_date"] == "2026-10-20"
        assert data["late_minutes"] == 0
        assert Decimal(data["total_hours"]) == Decimal("9")


class TestPayrollEndpoints:

    @pytest.mark.asyncio
    async def test_hr_initializes_period(self, client, db_session, hr_staff, employee, default_tax_table):
        await create_salary_config(db_session, employee)

        response = await client.post(
            "/api/v1/payroll/periods",
            json={"name": "October 2026 A", "start_date": "2026-10-01", "end_date": "2026-10-15"},
            headers=auth_headers(hr_staff),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["records_created"] == 1
        assert data["period"]["status"] == "pending_computation"

    @pytest.mark.asyncio
    async def test_employee_cannot_initialize_period(self, client, employee):
        response = await client.post(
            "/api/v1/payroll/periods",
            json={"name": "October 2026 A", "start_date": "2026-10-01", "end_date": "2026-10-15"},
            headers=auth_headers(employee),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_inverted_dates_are_rejected(self, client, hr_staff):
        response = await client.post(
            "/api/v1/payroll/periods",
            json={"name": "Backwards", "start_date": "2026-10-15", "end_date": "2026-10-01"},
            headers=auth_headers(hr_staff),
        )

        assert response.status_code == 422
