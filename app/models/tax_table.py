"""
Payroll Back Office - Government Tax Table Model

A single active version holds the three contribution bracket lists and the
withholding-tax brackets. Versions are never edited once records reference
them; publishing a new version supersedes the old one.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, Date, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import AuditMixin, BaseModel


class TaxTable(BaseModel, AuditMixin):
    """Government contribution and withholding tax brackets."""

    __tablename__ = "tax_tables"

    version: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    effective_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # [{salary_range: {min, max}, monthly_contribution, employer_share}]
    sss_brackets: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    philhealth_brackets: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    pagibig_brackets: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    # [{income_range: {min, max}, tax_rate, fixed_tax_amount, description}]
    withholding_brackets: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    def __repr__(self) -> str:
        return f"<TaxTable(version={self.version}, active={self.is_active})>"
