"""
Payroll Back Office - Withholding Tax Calculator

Progressive withholding tax over a bracket list.

Bracket match is lower-exclusive, upper-inclusive: ``min < income <= max``,
so income exactly on an edge belongs to the lower bracket only. Tax within
a bracket is ``max(0, (income - min) * rate / 100 + fixed_tax_amount)``.

Default monthly schedule:
- 0 - 20,833: 0%
- 20,833 - 33,333: 15% of excess over 20,833
- 33,333 - 66,667: 1,875 + 20% of excess over 33,333
- 66,667 - 166,667: 8,541.80 + 25% of excess over 66,667
- 166,667 - 666,667: 33,541.80 + 30% of excess over 166,667
- Above 666,667: 183,541.80 + 35% of excess over 666,667
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from app.utils.error_handling import InvalidBracketsException, TaxConfigurationMissingException


@dataclass
class WithholdingTaxBracket:
    """Income range with a rate (percent) and fixed offset."""
    min_income: Decimal
    max_income: Optional[Decimal]
    tax_rate: Decimal
    fixed_tax_amount: Decimal = Decimal("0")
    description: str = ""

    def contains(self, income: Decimal) -> bool:
        if income <= self.min_income:
            return False
        return self.max_income is None or income <= self.max_income

    def calculate_tax(self, income: Decimal) -> Decimal:
        """Tax owed for income falling in this bracket."""
        tax = (income - self.min_income) * self.tax_rate / 100 + self.fixed_tax_amount
        return max(Decimal("0"), tax)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WithholdingTaxBracket":
        income_range = data.get("income_range") or {}
        upper = income_range.get("max")
        return cls(
            min_income=Decimal(str(income_range.get("min", 0))),
            max_income=Decimal(str(upper)) if upper is not None else None,
            tax_rate=Decimal(str(data.get("tax_rate", 0))),
            fixed_tax_amount=Decimal(str(data.get("fixed_tax_amount", 0))),
            description=data.get("description") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "income_range": {
                "min": str(self.min_income),
                "max": str(self.max_income) if self.max_income is not None else None,
            },
            "tax_rate": str(self.tax_rate),
            "fixed_tax_amount": str(self.fixed_tax_amount),
            "description": self.description,
        }


class WithholdingTaxCalculator:
    """
    Withholding tax calculator.

    An exempt employee pays zero without any lookup. Non-positive taxable
    income is a legitimate zero. Positive income outside every bracket is a
    configuration gap and raises TaxConfigurationMissingException instead of
    quietly returning zero.
    """

    def __init__(self, brackets: Sequence[WithholdingTaxBracket]):
        self.brackets = sorted(brackets, key=lambda b: b.min_income)

    def find_bracket(self, income: Decimal) -> Optional[WithholdingTaxBracket]:
        for bracket in self.brackets:
            if bracket.contains(income):
                return bracket
        return None

    def calculate(self, taxable_income: Decimal, is_tax_exempt: bool = False) -> Decimal:
        if is_tax_exempt:
            return Decimal("0")
        if taxable_income <= 0:
            return Decimal("0")

        bracket = self.find_bracket(taxable_income)
        if bracket is None:
            raise TaxConfigurationMissingException(
                f"No withholding tax bracket covers taxable income {taxable_income}",
                amount=taxable_income,
                table="withholding",
            )
        return bracket.calculate_tax(taxable_income)


def parse_withholding_brackets(raw: Optional[List[Dict[str, Any]]]) -> List[WithholdingTaxBracket]:
    return [WithholdingTaxBracket.from_dict(item) for item in raw or []]


def validate_withholding_brackets(brackets: Sequence[WithholdingTaxBracket]) -> List[str]:
    """Raise on inverted/overlapping ranges; return gap descriptions."""
    gaps: List[str] = []
    ordered = sorted(brackets, key=lambda b: b.min_income)
    for bracket in ordered:
        if bracket.max_income is not None and bracket.max_income <= bracket.min_income:
            raise InvalidBracketsException("withholding", f"min {bracket.min_income} must be below max {bracket.max_income}")
        if bracket.tax_rate < 0 or bracket.tax_rate > 100:
            raise InvalidBracketsException("withholding", f"rate {bracket.tax_rate} outside 0-100")

    for previous, current in zip(ordered, ordered[1:]):
        if previous.max_income is None:
            raise InvalidBracketsException("withholding", "unbounded bracket must be the last one")
        # (min, max] ranges: adjacent brackets share an edge
        if current.min_income < previous.max_income:
            raise InvalidBracketsException(
                "withholding",
                f"range starting at {current.min_income} overlaps range ending at {previous.max_income}",
            )
        if current.min_income > previous.max_income:
            gaps.append(f"{previous.max_income} to {current.min_income}")
    return gaps


DEFAULT_WITHHOLDING_BRACKETS = [
    WithholdingTaxBracket(Decimal("0"), Decimal("20833"), Decimal("0"), Decimal("0"), "Exempt"),
    WithholdingTaxBracket(Decimal("20833"), Decimal("33333"), Decimal("15"), Decimal("0"), "15% over 20,833"),
    WithholdingTaxBracket(Decimal("33333"), Decimal("66667"), Decimal("20"), Decimal("1875"), "1,875 + 20% over 33,333"),
    WithholdingTaxBracket(Decimal("66667"), Decimal("166667"), Decimal("25"), Decimal("8541.80"), "8,541.80 + 25% over 66,667"),
    WithholdingTaxBracket(Decimal("166667"), Decimal("666667"), Decimal("30"), Decimal("33541.80"), "33,541.80 + 30% over 166,667"),
    WithholdingTaxBracket(Decimal("666667"), None, Decimal("35"), Decimal("183541.80"), "183,541.80 + 35% over 666,667"),
]
