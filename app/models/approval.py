"""
Payroll Back Office - Approval Chain Columns

Columns shared by every row that carries an embedded approval chain. The
chain status column itself is declared on each model because payroll
records keep it apart from their lifecycle status.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, Enum as SQLEnum, Integer, JSON, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.employee import EmployeeRole


class ApprovalChainMixin:
    """Ordered approval log plus level counters."""

    submitter_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    submitter_role: Mapped[Optional[EmployeeRole]] = mapped_column(
        SQLEnum(EmployeeRole, native_enum=False, length=20),
        nullable=True,
    )
    # [{approver_id, approver_name, role, action, comment, timestamp}]
    approvals: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    current_approval_level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_approvals_required: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    finalized_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
