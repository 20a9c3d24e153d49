"""
Payroll Back Office - Payroll Computer Tests

Earnings, deductions and net pay for one employee and period.
"""

from decimal import Decimal

import pytest

from app.models.payroll import PayrollRecord
from app.services.attendance_aggregator import (
    AttendanceSummary,
    HolidaySummary,
    LeaveSummary,
    PeriodAggregate,
)
from app.services.payroll_computer import PayrollComputer, SalaryTerms, derive_rates, round_money
from app.services.tax_calculators import (
    ContributionBracket,
    TaxEngine,
    TaxTableSnapshot,
    WithholdingTaxBracket,
)
from app.utils.error_handling import TaxConfigurationMissingException


def contribution(lower: str, upper: str, amount: str) -> ContributionBracket:
    return ContributionBracket(Decimal(lower), Decimal(upper), Decimal(amount))


@pytest.fixture
def flat_engine() -> TaxEngine:
    """Every scheme charges 500 between 15,000 and 25,000; withholding is 0%."""
    return TaxEngine(TaxTableSnapshot(
        sss=[contribution("15000", "25000", "500")],
        philhealth=[contribution("15000", "25000", "500")],
        pagibig=[contribution("15000", "25000", "500")],
        withholding=[WithholdingTaxBracket(Decimal("0"), Decimal("250000"), Decimal("0"))],
        version=7,
    ))


@pytest.fixture
def terms() -> SalaryTerms:
    return SalaryTerms(daily_rate=Decimal("1000"), hourly_rate=Decimal("125"))


def aggregate(present: int = 20, absent: int = 0, **attendance) -> PeriodAggregate:
    return PeriodAggregate(
        attendance=AttendanceSummary(
            work_days=present + absent,
            present_days=present,
            absence_days=absent,
            **attendance,
        ),
        leave=LeaveSummary(),
        holidays=HolidaySummary(),
    )


class TestPayrollComputation:
    """Gross, deductions and net."""

    def test_basic_twenty_days(self, flat_engine, terms):
        result = PayrollComputer(flat_engine).compute(terms, aggregate())

        assert result.gross_pay == Decimal("20000")
        assert result.total_deductions == Decimal("1500")
        assert result.net_pay == Decimal("18500")
        assert result.withholding_tax == Decimal("0")

    def test_premiums_use_hourly_rate_and_multipliers(self, flat_engine, terms):
        agg = aggregate(overtime_hours=Decimal("2"), night_differential_hours=Decimal("4"))
        agg.holidays = HolidaySummary(
            special_holiday_hours=Decimal("8"),
            regular_holiday_hours=Decimal("8"),
        )

        result = PayrollComputer(flat_engine).compute(terms, agg)

        assert result.overtime_pay == Decimal("312.50")
        assert result.night_differential_pay == Decimal("550.00")
        # 8 * 125 * 1.30 + 8 * 125 * 2.00
        assert result.holiday_pay == Decimal("3300.00")

    def test_attendance_penalties(self, flat_engine, terms):
        result = PayrollComputer(flat_engine).compute(
            terms,
            aggregate(present=18, absent=2, late_minutes=30, undertime_minutes=90),
        )

        assert result.basic_salary == Decimal("18000")
        assert result.absence_deduction == Decimal("2000")
        assert result.late_deduction == Decimal("62.5")
        assert result.undertime_deduction == Decimal("187.5")

    def test_paid_leave_and_allowances(self, flat_engine):
        terms = SalaryTerms(
            daily_rate=Decimal("1000"),
            hourly_rate=Decimal("125"),
            allowances=[{"name": "Rice", "amount": "1500"}],
        )
        agg = aggregate(present=17)
        agg.leave = LeaveSummary(paid_leave_days=3, sick_leave_days=3)

        result = PayrollComputer(flat_engine).compute(terms, agg)

        assert result.paid_leave_pay == Decimal("3000")
        assert result.allowances_total == Decimal("1500")
        assert result.gross_pay == Decimal("21500")
        assert result.earnings_breakdown == [{"type": "allowance", "name": "Rice", "amount": "1500"}]

    def test_adjustments_split_into_earnings_and_deductions(self, flat_engine, terms):
        adjustments = [
            {"type": "bonus", "amount": "2000", "description": "Q3 bonus"},
            {"type": "cash_advance", "amount": "750", "description": "Advance"},
        ]

        result = PayrollComputer(flat_engine).compute(terms, aggregate(), adjustments)

        assert result.adjustment_earnings == Decimal("2000")
        assert result.other_deductions == Decimal("750")
        assert result.gross_pay == Decimal("22000")

    def test_recurring_deductions_become_loans(self, flat_engine):
        terms = SalaryTerms(
            daily_rate=Decimal("1000"),
            hourly_rate=Decimal("125"),
            recurring_deductions=[{"name": "Salary loan", "amount": "1200"}],
        )

        result = PayrollComputer(flat_engine).compute(terms, aggregate())

        assert result.loan_deductions == Decimal("1200")
        assert result.net_pay == Decimal("17300")

    def test_tax_exempt_skips_withholding(self):
        engine = TaxEngine(TaxTableSnapshot(
            sss=[], philhealth=[], pagibig=[],
            withholding=[WithholdingTaxBracket(Decimal("0"), None, Decimal("10"))],
        ))
        exempt = SalaryTerms(daily_rate=Decimal("1000"), hourly_rate=Decimal("125"), is_tax_exempt=True)

        result = PayrollComputer(engine).compute(exempt, aggregate())

        assert result.withholding_tax == Decimal("0")
        assert len(result.warnings) == 3

    def test_withholding_gap_propagates(self, terms):
        engine = TaxEngine(TaxTableSnapshot(
            sss=[], philhealth=[], pagibig=[],
            withholding=[WithholdingTaxBracket(Decimal("0"), Decimal("10000"), Decimal("0"))],
        ))

        with pytest.raises(TaxConfigurationMissingException):
            PayrollComputer(engine).compute(terms, aggregate())

    def test_assumed_attendance_is_flagged(self, flat_engine, terms):
        result = PayrollComputer(flat_engine).compute(terms, aggregate(assumed_full_attendance=True))

        assert any("full attendance was assumed" in w for w in result.warnings)


class TestApplyToRecord:
    """Rounding happens once and the stored net always balances."""

    def test_net_equals_gross_minus_deductions(self, flat_engine):
        terms = SalaryTerms(daily_rate=Decimal("987.6543"), hourly_rate=Decimal("123.4568"))
        agg = aggregate(present=19, absent=1, late_minutes=7, overtime_hours=Decimal("1.33"))
        computer = PayrollComputer(flat_engine)
        record = PayrollRecord()

        computer.apply(record, terms, agg, computer.compute(terms, agg))

        assert record.net_pay == record.gross_pay - record.total_deductions
        assert record.gross_pay == round_money(record.gross_pay)
        assert record.tax_table_version == 7

    def test_recomputation_is_idempotent(self, flat_engine, terms):
        agg = aggregate(present=19, absent=1, late_minutes=7)
        computer = PayrollComputer(flat_engine)
        first = PayrollRecord()
        second = PayrollRecord()

        computer.apply(first, terms, agg, computer.compute(terms, agg))
        computer.apply(second, terms, agg, computer.compute(terms, agg))

        assert first.net_pay == second.net_pay
        assert first.total_deductions == second.total_deductions
        assert first.deductions_breakdown == second.deductions_breakdown


class TestRateDerivation:

    def test_monthly_rate_derives_daily_and_hourly(self):
        rates = derive_rates(monthly_rate=Decimal("26000"))

        assert rates["daily_rate"] == Decimal("1000")
        assert rates["hourly_rate"] == Decimal("125")

    def test_daily_rate_takes_precedence(self):
        rates = derive_rates(daily_rate=Decimal("800"), monthly_rate=Decimal("26000"))

        assert rates["daily_rate"] == Decimal("800")
        assert rates["monthly_rate"] == Decimal("20800")

    def test_no_rate_is_an_error(self):
        with pytest.raises(ValueError):
            derive_rates()
