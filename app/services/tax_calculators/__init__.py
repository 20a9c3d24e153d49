"""
Payroll Back Office - Tax Calculators Package

Modules:
- contributions: SSS / PhilHealth / Pag-IBIG bracket lookup (inclusive ranges)
- withholding: progressive withholding tax (lower-exclusive ranges)
- tax_engine: TaxEngine over one table version, TaxTableService for the active table
"""

from decimal import Decimal
from typing import Optional, Sequence

from app.services.tax_calculators.contributions import (
    ContributionBracket,
    ContributionCalculator,
    ContributionResult,
    ContributionScheme,
)
from app.services.tax_calculators.withholding import (
    WithholdingTaxBracket,
    WithholdingTaxCalculator,
)
from app.services.tax_calculators.tax_engine import (
    ContributionSet,
    TaxEngine,
    TaxTableService,
    TaxTableSnapshot,
)


# ===========================================
# CONVENIENCE FUNCTIONS
# ===========================================

def calculate_contribution(
    amount: Decimal,
    brackets: Sequence[ContributionBracket],
    scheme: ContributionScheme = ContributionScheme.SSS,
) -> Decimal:
    """
    Flat contribution for the bracket containing ``amount``.

    Returns 0 when no bracket matches.
    """
    return ContributionCalculator(scheme, brackets).calculate(amount).amount


def calculate_withholding_tax(
    taxable_income: Decimal,
    brackets: Optional[Sequence[WithholdingTaxBracket]] = None,
    is_tax_exempt: bool = False,
) -> Decimal:
    """
    Withholding tax on monthly taxable income.

    Uses the default monthly schedule when no brackets are given.
    """
    if brackets is None:
        brackets = TaxTableSnapshot.default().withholding
    return WithholdingTaxCalculator(brackets).calculate(taxable_income, is_tax_exempt=is_tax_exempt)


__all__ = [
    "ContributionBracket",
    "ContributionCalculator",
    "ContributionResult",
    "ContributionScheme",
    "ContributionSet",
    "WithholdingTaxBracket",
    "WithholdingTaxCalculator",
    "TaxEngine",
    "TaxTableService",
    "TaxTableSnapshot",
    "calculate_contribution",
    "calculate_withholding_tax",
]
