"""
Payroll Back Office - Government Contribution Calculator

Flat monthly contributions looked up by salary bracket for the three
statutory schemes (SSS, PhilHealth, Pag-IBIG).

Lookup rule: the bracket whose ``[min, max]`` salary range contains the
amount, inclusive on both ends. No match yields zero with ``matched=False``
so payroll is never blocked by a gap, but the gap stays visible.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from app.utils.error_handling import InvalidBracketsException


class ContributionScheme(str, Enum):
    SSS = "sss"
    PHILHEALTH = "philhealth"
    PAGIBIG = "pagibig"


@dataclass
class ContributionBracket:
    """Salary range mapped to a flat monthly contribution."""
    min_salary: Decimal
    max_salary: Optional[Decimal]
    monthly_contribution: Decimal
    employer_share: Decimal = Decimal("0")

    def contains(self, amount: Decimal) -> bool:
        if amount < self.min_salary:
            return False
        return self.max_salary is None or amount <= self.max_salary

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContributionBracket":
        salary_range = data.get("salary_range") or {}
        upper = salary_range.get("max")
        return cls(
            min_salary=Decimal(str(salary_range.get("min", 0))),
            max_salary=Decimal(str(upper)) if upper is not None else None,
            monthly_contribution=Decimal(str(data.get("monthly_contribution", 0))),
            employer_share=Decimal(str(data.get("employer_share", 0))),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "salary_range": {
                "min": str(self.min_salary),
                "max": str(self.max_salary) if self.max_salary is not None else None,
            },
            "monthly_contribution": str(self.monthly_contribution),
            "employer_share": str(self.employer_share),
        }


@dataclass
class ContributionResult:
    """Outcome of one scheme lookup."""
    scheme: ContributionScheme
    amount: Decimal
    employer_share: Decimal
    matched: bool
    bracket: Optional[ContributionBracket] = None


class ContributionCalculator:
    """Bracket lookup for one contribution scheme."""

    def __init__(self, scheme: ContributionScheme, brackets: Sequence[ContributionBracket]):
        self.scheme = scheme
        self.brackets = sorted(brackets, key=lambda b: b.min_salary)

    def find_bracket(self, amount: Decimal) -> Optional[ContributionBracket]:
        for bracket in self.brackets:
            if bracket.contains(amount):
                return bracket
        return None

    def calculate(self, gross_pay: Decimal) -> ContributionResult:
        bracket = self.find_bracket(gross_pay)
        if bracket is None:
            return ContributionResult(
                scheme=self.scheme,
                amount=Decimal("0"),
                employer_share=Decimal("0"),
                matched=False,
            )
        return ContributionResult(
            scheme=self.scheme,
            amount=bracket.monthly_contribution,
            employer_share=bracket.employer_share,
            matched=True,
            bracket=bracket,
        )


def parse_contribution_brackets(raw: Optional[List[Dict[str, Any]]]) -> List[ContributionBracket]:
    return [ContributionBracket.from_dict(item) for item in raw or []]


def validate_contribution_brackets(
    name: str,
    brackets: Sequence[ContributionBracket],
) -> List[str]:
    """
    Check a contribution bracket list.

    Raises InvalidBracketsException on inverted or overlapping ranges.
    Returns a list of gap descriptions (a gap is allowed but worth logging).
    """
    gaps: List[str] = []
    ordered = sorted(brackets, key=lambda b: b.min_salary)
    for bracket in ordered:
        if bracket.max_salary is not None and bracket.max_salary < bracket.min_salary:
            raise InvalidBracketsException(name, f"min {bracket.min_salary} exceeds max {bracket.max_salary}")
        if bracket.monthly_contribution < 0:
            raise InvalidBracketsException(name, "contribution cannot be negative")

    for previous, current in zip(ordered, ordered[1:]):
        if previous.max_salary is None:
            raise InvalidBracketsException(name, "unbounded bracket must be the last one")
        # Inclusive ranges: sharing an edge is an overlap
        if current.min_salary <= previous.max_salary:
            raise InvalidBracketsException(
                name, f"range starting at {current.min_salary} overlaps range ending at {previous.max_salary}"
            )
        if current.min_salary - previous.max_salary > Decimal("0.01"):
            gaps.append(f"{previous.max_salary} to {current.min_salary}")
    return gaps


def _bracket(lower: str, upper: Optional[str], employee: str, employer: str) -> ContributionBracket:
    return ContributionBracket(
        Decimal(lower),
        Decimal(upper) if upper is not None else None,
        Decimal(employee),
        Decimal(employer),
    )


# Default monthly schedules, employee share / employer share
DEFAULT_SSS_BRACKETS = [
    _bracket("0", "4249.99", "180.00", "390.00"),
    _bracket("4250", "9749.99", "405.00", "877.50"),
    _bracket("9750", "14749.99", "630.00", "1365.00"),
    _bracket("14750", "19749.99", "855.00", "1852.50"),
    _bracket("19750", "24749.99", "1080.00", "2340.00"),
    _bracket("24750", None, "1350.00", "2925.00"),
]

DEFAULT_PHILHEALTH_BRACKETS = [
    _bracket("0", "10000.00", "250.00", "250.00"),
    _bracket("10000.01", "99999.99", "500.00", "500.00"),
    _bracket("100000", None, "2500.00", "2500.00"),
]

DEFAULT_PAGIBIG_BRACKETS = [
    _bracket("0", "1500.00", "15.00", "30.00"),
    _bracket("1500.01", "4999.99", "50.00", "100.00"),
    _bracket("5000", None, "200.00", "200.00"),
]
