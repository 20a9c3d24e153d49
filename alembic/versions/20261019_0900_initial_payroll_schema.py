"""Initial payroll back office schema

Revision ID: 20261019_0900_initial_payroll_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

Tables:
- employees: role hierarchy and the annual leave ledger
- salary_configs: per-employee rates, multipliers, allowances, deductions
- tax_tables: versioned contribution and withholding brackets
- attendance_records: one row per employee per day
- leave_requests / time_correction_requests: approval-chain rows
- payroll_periods / payroll_records / payslips: the payroll cycle
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '20261019_0900_initial_payroll_schema'
down_revision = None
branch_labels = None
depends_on = None


ROLES = ('SEEDER_ADMIN', 'SUPERVISOR', 'HR_HEAD', 'HR_STAFF', 'EMPLOYEE')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _audit():
    return [
        sa.Column('created_by_id', sa.Uuid(), nullable=True),
        sa.Column('updated_by_id', sa.Uuid(), nullable=True),
    ]


def _approval_chain():
    return [
        sa.Column('submitter_id', sa.Uuid(), nullable=True),
        sa.Column('submitter_role', sa.Enum(*ROLES, name='employeerole', native_enum=False, length=20), nullable=True),
        sa.Column('approvals', sa.JSON(), nullable=False),
        sa.Column('current_approval_level', sa.Integer(), nullable=False),
        sa.Column('total_approvals_required', sa.Integer(), nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('finalized_at', sa.DateTime(timezone=True), nullable=True),
    ]


def _money(name: str, **kwargs):
    return sa.Column(name, sa.Numeric(15, 2), nullable=False, **kwargs)


def upgrade() -> None:
    """Create the payroll schema."""

    op.create_table(
        'employees',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('employee_number', sa.String(30), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=True),
        sa.Column('role', sa.Enum(*ROLES, name='employeerole'), nullable=False),
        sa.Column('department', sa.String(100), nullable=True),
        sa.Column('position', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('leave_balance', sa.Integer(), nullable=False),
        sa.Column('leave_reset_date', sa.Date(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_employees_employee_number', 'employees', ['employee_number'], unique=True)
    op.create_index('ix_employees_email', 'employees', ['email'], unique=True)

    op.create_table(
        'salary_configs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('employee_id', sa.Uuid(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('daily_rate', sa.Numeric(15, 4), nullable=False),
        sa.Column('monthly_rate', sa.Numeric(15, 4), nullable=False),
        sa.Column('hourly_rate', sa.Numeric(15, 4), nullable=False),
        sa.Column('overtime_multiplier', sa.Numeric(5, 2), nullable=False),
        sa.Column('night_differential_multiplier', sa.Numeric(5, 2), nullable=False),
        sa.Column('special_holiday_multiplier', sa.Numeric(5, 2), nullable=False),
        sa.Column('regular_holiday_multiplier', sa.Numeric(5, 2), nullable=False),
        sa.Column('rest_day_multiplier', sa.Numeric(5, 2), nullable=False),
        sa.Column('allowances', sa.JSON(), nullable=False),
        sa.Column('deductions', sa.JSON(), nullable=False),
        sa.Column('is_tax_exempt', sa.Boolean(), nullable=False),
        sa.Column('tax_exemption_reason', sa.Text(), nullable=True),
        sa.Column('work_schedule', sa.Enum('MONDAY_SATURDAY', 'MONDAY_FRIDAY', name='workschedule'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('notes', sa.String(500), nullable=True),
        *_timestamps(),
        *_audit(),
    )

    op.create_table(
        'tax_tables',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('version', sa.Integer(), nullable=False, unique=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('effective_date', sa.Date(), nullable=True),
        sa.Column('sss_brackets', sa.JSON(), nullable=False),
        sa.Column('philhealth_brackets', sa.JSON(), nullable=False),
        sa.Column('pagibig_brackets', sa.JSON(), nullable=False),
        sa.Column('withholding_brackets', sa.JSON(), nullable=False),
        *_timestamps(),
        *_audit(),
    )
    op.create_index('ix_tax_tables_is_active', 'tax_tables', ['is_active'])

    op.create_table(
        'attendance_records',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('employee_id', sa.Uuid(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('work_date', sa.Date(), nullable=False),
        sa.Column('check_in', sa.DateTime(), nullable=True),
        sa.Column('check_out', sa.DateTime(), nullable=True),
        sa.Column('status', sa.Enum('PRESENT', 'LATE', 'ABSENT', 'CHECKED_OUT', name='attendancestatus'), nullable=False),
        sa.Column('total_hours', sa.Numeric(6, 2), nullable=False),
        sa.Column('late_minutes', sa.Integer(), nullable=False),
        sa.Column('undertime_minutes', sa.Integer(), nullable=False),
        sa.Column('overtime_hours', sa.Numeric(6, 2), nullable=False),
        sa.Column('night_differential_hours', sa.Numeric(6, 2), nullable=False),
        sa.Column('is_corrected', sa.Boolean(), nullable=False),
        sa.Column('notes', sa.String(500), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('employee_id', 'work_date', name='uq_attendance_employee_date'),
    )
    op.create_index('ix_attendance_records_employee_id', 'attendance_records', ['employee_id'])
    op.create_index('ix_attendance_records_work_date', 'attendance_records', ['work_date'])

    op.create_table(
        'leave_requests',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('employee_id', sa.Uuid(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'leave_type',
            sa.Enum('SICK', 'VACATION', 'PERSONAL', 'BEREAVEMENT', 'EMERGENCY', 'UNPAID', name='leavetype'),
            nullable=False,
        ),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('number_of_days', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('status', sa.String(40), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        *_approval_chain(),
        *_timestamps(),
    )
    op.create_index('ix_leave_requests_employee_id', 'leave_requests', ['employee_id'])
    op.create_index('ix_leave_requests_status', 'leave_requests', ['status'])

    op.create_table(
        'time_correction_requests',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('employee_id', sa.Uuid(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('attendance_id', sa.Uuid(), sa.ForeignKey('attendance_records.id', ondelete='CASCADE'), nullable=False),
        sa.Column('work_date', sa.Date(), nullable=False),
        sa.Column('original_check_in', sa.DateTime(), nullable=True),
        sa.Column('original_check_out', sa.DateTime(), nullable=True),
        sa.Column('corrected_check_in', sa.DateTime(), nullable=False),
        sa.Column('corrected_check_out', sa.DateTime(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('status', sa.String(40), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        *_approval_chain(),
        *_timestamps(),
    )
    op.create_index('ix_time_correction_requests_employee_id', 'time_correction_requests', ['employee_id'])
    op.create_index('ix_time_correction_requests_status', 'time_correction_requests', ['status'])

    op.create_table(
        'payroll_periods',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('pay_date', sa.Date(), nullable=True),
        sa.Column('cutoff_start', sa.Date(), nullable=False),
        sa.Column('cutoff_end', sa.Date(), nullable=False),
        sa.Column('special_days', sa.JSON(), nullable=False),
        sa.Column(
            'status',
            sa.Enum(
                'DRAFT', 'PENDING_COMPUTATION', 'COMPUTATION_COMPLETED', 'PENDING_APPROVAL',
                'APPROVED', 'LOCKED', 'PAYROLL_RUN', 'CANCELLED',
                name='payrollperiodstatus',
            ),
            nullable=False,
        ),
        sa.Column('employee_count', sa.Integer(), nullable=False),
        sa.Column('computed_count', sa.Integer(), nullable=False),
        sa.Column('failed_count', sa.Integer(), nullable=False),
        _money('total_gross_pay'),
        _money('total_deductions'),
        _money('total_net_pay'),
        sa.Column('computation_failures', sa.JSON(), nullable=False),
        sa.Column('status_history', sa.JSON(), nullable=False),
        sa.Column('computed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_by_id', sa.Uuid(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('locked_by_id', sa.Uuid(), nullable=True),
        sa.Column('locked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        *_audit(),
    )
    op.create_index('ix_payroll_periods_status', 'payroll_periods', ['status'])

    op.create_table(
        'payroll_records',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('period_id', sa.Uuid(), sa.ForeignKey('payroll_periods.id', ondelete='CASCADE'), nullable=False),
        sa.Column('employee_id', sa.Uuid(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'status',
            sa.Enum('DRAFT', 'COMPUTED', 'APPROVED', 'LOCKED', 'REJECTED', name='payrollrecordstatus'),
            nullable=False,
        ),
        sa.Column('approval_status', sa.String(40), nullable=True),
        sa.Column('daily_rate', sa.Numeric(15, 4), nullable=False),
        sa.Column('hourly_rate', sa.Numeric(15, 4), nullable=False),
        sa.Column('work_days', sa.Integer(), nullable=False),
        sa.Column('present_days', sa.Integer(), nullable=False),
        sa.Column('absence_days', sa.Integer(), nullable=False),
        sa.Column('late_minutes', sa.Integer(), nullable=False),
        sa.Column('undertime_minutes', sa.Integer(), nullable=False),
        sa.Column('overtime_hours', sa.Numeric(8, 2), nullable=False),
        sa.Column('night_differential_hours', sa.Numeric(8, 2), nullable=False),
        sa.Column('special_holiday_hours', sa.Numeric(8, 2), nullable=False),
        sa.Column('regular_holiday_hours', sa.Numeric(8, 2), nullable=False),
        sa.Column('paid_leave_days', sa.Integer(), nullable=False),
        sa.Column('unpaid_leave_days', sa.Integer(), nullable=False),
        sa.Column('sick_leave_days', sa.Integer(), nullable=False),
        sa.Column('vacation_leave_days', sa.Integer(), nullable=False),
        sa.Column('assumed_full_attendance', sa.Boolean(), nullable=False),
        _money('basic_salary'),
        _money('overtime_pay'),
        _money('night_differential_pay'),
        _money('holiday_pay'),
        _money('paid_leave_pay'),
        _money('allowances_total'),
        _money('adjustment_earnings', comment='Bonuses and reimbursements'),
        _money('gross_pay'),
        _money('late_deduction'),
        _money('undertime_deduction'),
        _money('absence_deduction'),
        _money('sss_contribution'),
        _money('philhealth_contribution'),
        _money('pagibig_contribution'),
        _money('taxable_income'),
        _money('withholding_tax'),
        _money('loan_deductions'),
        _money('other_deductions'),
        _money('total_deductions'),
        _money('net_pay'),
        sa.Column('adjustments', sa.JSON(), nullable=False),
        sa.Column('earnings_breakdown', sa.JSON(), nullable=False),
        sa.Column('deductions_breakdown', sa.JSON(), nullable=False),
        sa.Column('computation_warnings', sa.JSON(), nullable=False),
        sa.Column('is_tax_exempt', sa.Boolean(), nullable=False),
        sa.Column('tax_table_id', sa.Uuid(), sa.ForeignKey('tax_tables.id'), nullable=True),
        sa.Column('tax_table_version', sa.Integer(), nullable=True),
        sa.Column('computed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('computed_by_id', sa.Uuid(), nullable=True),
        sa.Column('approved_by_id', sa.Uuid(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_approval_chain(),
        *_timestamps(),
        sa.UniqueConstraint('period_id', 'employee_id', name='uq_payroll_record_period_employee'),
    )
    op.create_index('ix_payroll_records_period_id', 'payroll_records', ['period_id'])
    op.create_index('ix_payroll_records_employee_id', 'payroll_records', ['employee_id'])

    op.create_table(
        'payslips',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('payroll_record_id', sa.Uuid(), sa.ForeignKey('payroll_records.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('period_id', sa.Uuid(), sa.ForeignKey('payroll_periods.id', ondelete='CASCADE'), nullable=False),
        sa.Column('employee_id', sa.Uuid(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('payslip_number', sa.String(60), nullable=False, unique=True),
        sa.Column('status', sa.Enum('GENERATED', 'VIEWED', 'DOWNLOADED', name='payslipstatus'), nullable=False),
        sa.Column('employee_details', sa.JSON(), nullable=False),
        sa.Column('period_info', sa.JSON(), nullable=False),
        sa.Column('summary', sa.JSON(), nullable=False),
        sa.Column('earnings', sa.JSON(), nullable=False),
        sa.Column('deductions', sa.JSON(), nullable=False),
        _money('net_pay'),
        sa.Column('generated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('generated_by_id', sa.Uuid(), nullable=True),
        sa.Column('viewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('viewed_by_id', sa.Uuid(), nullable=True),
        sa.Column('downloaded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('downloaded_by_id', sa.Uuid(), nullable=True),
        sa.Column('access_log', sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_payslips_period_id', 'payslips', ['period_id'])
    op.create_index('ix_payslips_employee_id', 'payslips', ['employee_id'])


def downgrade() -> None:
    """Drop the payroll schema."""
    for table in (
        'payslips',
        'payroll_records',
        'payroll_periods',
        'time_correction_requests',
        'leave_requests',
        'attendance_records',
        'tax_tables',
        'salary_configs',
        'employees',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_name in (
        'payslipstatus', 'payrollrecordstatus', 'payrollperiodstatus', 'leavetype',
        'attendancestatus', 'workschedule', 'employeerole',
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
