"""
Payroll Back Office - Tax Engine

Binds the contribution and withholding calculators to one tax table version,
and manages the single active table in the database.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.payroll import PayrollRecord
from app.models.tax_table import TaxTable
from app.services.tax_calculators.contributions import (
    ContributionBracket,
    ContributionCalculator,
    ContributionResult,
    ContributionScheme,
    DEFAULT_PAGIBIG_BRACKETS,
    DEFAULT_PHILHEALTH_BRACKETS,
    DEFAULT_SSS_BRACKETS,
    parse_contribution_brackets,
    validate_contribution_brackets,
)
from app.services.tax_calculators.withholding import (
    DEFAULT_WITHHOLDING_BRACKETS,
    WithholdingTaxBracket,
    WithholdingTaxCalculator,
    parse_withholding_brackets,
    validate_withholding_brackets,
)
from app.utils.error_handling import (
    NotFoundException,
    TaxConfigurationMissingException,
    TaxTableInUseException,
)

logger = logging.getLogger(__name__)


@dataclass
class TaxTableSnapshot:
    """Parsed, immutable view of one tax table version."""
    sss: List[ContributionBracket]
    philhealth: List[ContributionBracket]
    pagibig: List[ContributionBracket]
    withholding: List[WithholdingTaxBracket]
    version: Optional[int] = None
    table_id: Optional[uuid.UUID] = None

    @classmethod
    def from_model(cls, table: TaxTable) -> "TaxTableSnapshot":
        return cls(
            sss=parse_contribution_brackets(table.sss_brackets),
            philhealth=parse_contribution_brackets(table.philhealth_brackets),
            pagibig=parse_contribution_brackets(table.pagibig_brackets),
            withholding=parse_withholding_brackets(table.withholding_brackets),
            version=table.version,
            table_id=table.id,
        )

    @classmethod
    def default(cls) -> "TaxTableSnapshot":
        return cls(
            sss=list(DEFAULT_SSS_BRACKETS),
            philhealth=list(DEFAULT_PHILHEALTH_BRACKETS),
            pagibig=list(DEFAULT_PAGIBIG_BRACKETS),
            withholding=list(DEFAULT_WITHHOLDING_BRACKETS),
        )


@dataclass
class ContributionSet:
    """Employee contributions for the three schemes."""
    sss: ContributionResult
    philhealth: ContributionResult
    pagibig: ContributionResult
    warnings: List[str] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return self.sss.amount + self.philhealth.amount + self.pagibig.amount


class TaxEngine:
    """
    Pure lookup/formula evaluator over one tax table.

    Contributions fail open (zero plus a warning). Withholding fails closed
    when a positive taxable income falls outside every bracket.
    """

    def __init__(self, table: TaxTableSnapshot):
        self.table = table
        self._calculators = {
            ContributionScheme.SSS: ContributionCalculator(ContributionScheme.SSS, table.sss),
            ContributionScheme.PHILHEALTH: ContributionCalculator(ContributionScheme.PHILHEALTH, table.philhealth),
            ContributionScheme.PAGIBIG: ContributionCalculator(ContributionScheme.PAGIBIG, table.pagibig),
        }
        self._withholding = WithholdingTaxCalculator(table.withholding)

    def contribution(self, scheme: ContributionScheme, gross_pay: Decimal) -> ContributionResult:
        return self._calculators[scheme].calculate(gross_pay)

    def government_contributions(self, gross_pay: Decimal) -> ContributionSet:
        results = {scheme: self.contribution(scheme, gross_pay) for scheme in ContributionScheme}
        warnings = [
            f"No {scheme.value} bracket matched gross pay {gross_pay}; contribution set to 0"
            for scheme, result in results.items()
            if not result.matched
        ]
        return ContributionSet(
            sss=results[ContributionScheme.SSS],
            philhealth=results[ContributionScheme.PHILHEALTH],
            pagibig=results[ContributionScheme.PAGIBIG],
            warnings=warnings,
        )

    def withholding_tax(self, taxable_income: Decimal, is_tax_exempt: bool = False) -> Decimal:
        return self._withholding.calculate(taxable_income, is_tax_exempt=is_tax_exempt)


class TaxTableService:
    """Maintains the single active tax table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_active_table(self) -> Optional[TaxTable]:
        result = await self.db.execute(
            select(TaxTable)
            .where(TaxTable.is_active.is_(True))
            .order_by(TaxTable.version.desc())
        )
        return result.scalars().first()

    async def get_active_engine(self) -> TaxEngine:
        """Engine over the active table; raises when none is configured."""
        table = await self.get_active_table()
        if table is None:
            raise TaxConfigurationMissingException("No active government tax table is configured")
        snapshot = TaxTableSnapshot.from_model(table)
        if not snapshot.withholding:
            raise TaxConfigurationMissingException(
                f"Tax table version {table.version} has no withholding brackets",
                table="withholding",
            )
        return TaxEngine(snapshot)

    async def list_tables(self) -> List[TaxTable]:
        result = await self.db.execute(select(TaxTable).order_by(TaxTable.version.desc()))
        return list(result.scalars().all())

    async def publish_table(
        self,
        name: str,
        sss_brackets: List[ContributionBracket],
        philhealth_brackets: List[ContributionBracket],
        pagibig_brackets: List[ContributionBracket],
        withholding_brackets: List[WithholdingTaxBracket],
        effective_date: Optional[date] = None,
        created_by_id: Optional[uuid.UUID] = None,
    ) -> TaxTable:
        """
        Validate and store a new version, making it the only active table.

        Older versions stay in place untouched so records computed against
        them keep pointing at the brackets they used.
        """
        gaps: Dict[str, List[str]] = {
            "sss": validate_contribution_brackets("sss", sss_brackets),
            "philhealth": validate_contribution_brackets("philhealth", philhealth_brackets),
            "pagibig": validate_contribution_brackets("pagibig", pagibig_brackets),
            "withholding": validate_withholding_brackets(withholding_brackets),
        }
        for table_name, table_gaps in gaps.items():
            for gap in table_gaps:
                logger.warning(f"Tax table '{name}': {table_name} brackets leave a gap between {gap}")

        result = await self.db.execute(select(func.max(TaxTable.version)))
        next_version = (result.scalar() or 0) + 1

        await self.db.execute(
            update(TaxTable).where(TaxTable.is_active.is_(True)).values(is_active=False)
        )

        table = TaxTable(
            version=next_version,
            name=name,
            is_active=True,
            effective_date=effective_date,
            sss_brackets=[b.to_dict() for b in sss_brackets],
            philhealth_brackets=[b.to_dict() for b in philhealth_brackets],
            pagibig_brackets=[b.to_dict() for b in pagibig_brackets],
            withholding_brackets=[b.to_dict() for b in withholding_brackets],
            created_by_id=created_by_id,
        )
        self.db.add(table)
        await self.db.commit()
        await self.db.refresh(table)

        logger.info(f"Published tax table '{name}' as version {next_version}")
        return table

    async def ensure_default_table(self, created_by_id: Optional[uuid.UUID] = None) -> TaxTable:
        """Publish the built-in schedule when no table is active."""
        existing = await self.get_active_table()
        if existing is not None:
            return existing
        defaults = TaxTableSnapshot.default()
        return await self.publish_table(
            name="Default statutory schedule",
            sss_brackets=defaults.sss,
            philhealth_brackets=defaults.philhealth,
            pagibig_brackets=defaults.pagibig,
            withholding_brackets=defaults.withholding,
            created_by_id=created_by_id,
        )

    async def update_table(self, table_id: uuid.UUID, **changes: Any) -> TaxTable:
        """Edit a table that no payroll record references yet."""
        table = await self.db.get(TaxTable, table_id)
        if table is None:
            raise NotFoundException("TaxTable", table_id)

        result = await self.db.execute(
            select(func.count(PayrollRecord.id)).where(PayrollRecord.tax_table_id == table_id)
        )
        references = result.scalar() or 0
        if references:
            raise TaxTableInUseException(table.version, references)

        validators = {
            "sss_brackets": lambda b: validate_contribution_brackets("sss", b),
            "philhealth_brackets": lambda b: validate_contribution_brackets("philhealth", b),
            "pagibig_brackets": lambda b: validate_contribution_brackets("pagibig", b),
            "withholding_brackets": validate_withholding_brackets,
        }
        for key, value in changes.items():
            if key in validators:
                validators[key](value)
                value = [b.to_dict() for b in value]
            setattr(table, key, value)

        await self.db.commit()
        await self.db.refresh(table)
        return table
