"""
Ordered Approval Chain
Role-routed sequential approval shared by leave, time corrections and payroll records

Who approves whom comes from one declarative routing table keyed by
workflow and submitter role. The chain depth is the length of the route,
fixed when the chain starts. Status vocabulary:

- pending
- approved_by_<role>   (after a non-final approval by <role>)
- approved             (terminal)
- rejected             (terminal)
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
import logging

from app.models.employee import EmployeeRole
from app.utils.error_handling import (
    AlreadyFinalizedException,
    ApprovalRouteNotFoundException,
    ApproverNotAuthorizedException,
    ValidationException,
)

logger = logging.getLogger(__name__)


STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
TERMINAL_STATUSES = (STATUS_APPROVED, STATUS_REJECTED)

ACTION_APPROVE = "approve"
ACTION_REJECT = "reject"


class WorkflowType(str, Enum):
    LEAVE = "leave"
    TIME_CORRECTION = "time_correction"
    PAYROLL_RECORD = "payroll_record"


R = EmployeeRole

# (workflow, submitter role) -> approver role per level
APPROVAL_ROUTES: Dict[WorkflowType, Dict[EmployeeRole, Tuple[EmployeeRole, ...]]] = {
    WorkflowType.LEAVE: {
        R.EMPLOYEE: (R.HR_STAFF, R.HR_HEAD),
        R.HR_STAFF: (R.HR_HEAD,),
        R.HR_HEAD: (R.SUPERVISOR,),
        R.SUPERVISOR: (R.SEEDER_ADMIN,),
    },
    WorkflowType.TIME_CORRECTION: {
        R.EMPLOYEE: (R.HR_STAFF, R.HR_HEAD),
        R.HR_STAFF: (R.HR_HEAD, R.SUPERVISOR),
        R.HR_HEAD: (R.SUPERVISOR,),
        R.SUPERVISOR: (R.SEEDER_ADMIN,),
    },
    WorkflowType.PAYROLL_RECORD: {
        R.HR_STAFF: (R.HR_HEAD,),
        R.HR_HEAD: (R.SUPERVISOR,),
    },
}


def intermediate_status(role: EmployeeRole) -> str:
    return f"approved_by_{role.value}"


def is_terminal(status: Optional[str]) -> bool:
    return status in TERMINAL_STATUSES


@dataclass
class ChainOutcome:
    """Result of one approve/reject call."""
    status: str
    level: int
    required: int
    finalized: bool

    @property
    def approved(self) -> bool:
        return self.status == STATUS_APPROVED


class ApprovalChain:
    """
    Generic ordered-approval state machine.

    Operates on any object carrying the ApprovalChainMixin columns plus a
    chain status attribute (``status`` unless configured otherwise). The
    caller persists the object and runs terminal side effects when the
    returned outcome is finalized.
    """

    def __init__(self, workflow: WorkflowType, status_field: str = "status", label: Optional[str] = None):
        self.workflow = workflow
        self.status_field = status_field
        self.label = label or workflow.value.replace("_", " ").title()

    # ===========================================
    # ROUTING
    # ===========================================

    def route_for(self, submitter_role: EmployeeRole) -> Tuple[EmployeeRole, ...]:
        route = APPROVAL_ROUTES.get(self.workflow, {}).get(EmployeeRole(submitter_role))
        if not route:
            raise ApprovalRouteNotFoundException(self.workflow.value, EmployeeRole(submitter_role).value)
        return route

    def required_approvals(self, submitter_role: EmployeeRole) -> int:
        return len(self.route_for(submitter_role))

    def next_approver_role(self, target: Any) -> Optional[EmployeeRole]:
        """Role that must act next, or None once terminal."""
        if is_terminal(self.get_status(target)):
            return None
        route = self.route_for(target.submitter_role)
        level = target.current_approval_level
        if level >= len(route):
            return None
        return route[level]

    def pending_levels_for(self, approver_role: EmployeeRole) -> List[Tuple[EmployeeRole, int]]:
        """(submitter role, level) pairs at which ``approver_role`` acts."""
        pairs = []
        for submitter_role, route in APPROVAL_ROUTES.get(self.workflow, {}).items():
            for level, role in enumerate(route):
                if role == approver_role:
                    pairs.append((submitter_role, level))
        return pairs

    # ===========================================
    # STATE
    # ===========================================

    def get_status(self, target: Any) -> Optional[str]:
        return getattr(target, self.status_field)

    def _set_status(self, target: Any, status: str) -> None:
        setattr(target, self.status_field, status)

    def start(self, target: Any, submitter_id: UUID, submitter_role: EmployeeRole) -> None:
        """Begin a fresh chain; required depth is fixed from the submitter's role."""
        route = self.route_for(submitter_role)
        target.submitter_id = submitter_id
        target.submitter_role = EmployeeRole(submitter_role)
        target.approvals = []
        target.current_approval_level = 0
        target.total_approvals_required = len(route)
        target.rejection_reason = None
        target.finalized_at = None
        self._set_status(target, STATUS_PENDING)

    def _ensure_open(self, target: Any) -> None:
        status = self.get_status(target)
        if is_terminal(status):
            raise AlreadyFinalizedException(self.label, status)
        if status is None:
            raise ValidationException(f"{self.label} has not been submitted for approval")

    def _ensure_actor(self, target: Any, actor_id: UUID, actor_role: EmployeeRole) -> EmployeeRole:
        actor_role = EmployeeRole(actor_role)
        required = self.next_approver_role(target)
        if required is None or actor_role != required:
            raise ApproverNotAuthorizedException(actor_role.value, required.value if required else None)
        if target.submitter_id is not None and actor_id == target.submitter_id:
            raise ApproverNotAuthorizedException(
                actor_role.value,
                required.value,
                reason="Submitters cannot act on their own request",
            )
        for entry in target.approvals or []:
            if entry.get("approver_id") == str(actor_id) and entry.get("action") == ACTION_APPROVE:
                raise ApproverNotAuthorizedException(
                    actor_role.value,
                    required.value,
                    reason="This approver has already approved the request",
                )
        return actor_role

    @staticmethod
    def _entry(
        actor_id: UUID,
        actor_role: EmployeeRole,
        action: str,
        comment: Optional[str],
        actor_name: Optional[str],
        at: datetime,
    ) -> Dict[str, Any]:
        return {
            "approver_id": str(actor_id),
            "approver_name": actor_name,
            "role": actor_role.value,
            "action": action,
            "comment": comment,
            "timestamp": at.isoformat(),
        }

    # ===========================================
    # TRANSITIONS
    # ===========================================

    def approve(
        self,
        target: Any,
        actor_id: UUID,
        actor_role: EmployeeRole,
        comment: Optional[str] = None,
        actor_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ChainOutcome:
        self._ensure_open(target)
        actor_role = self._ensure_actor(target, actor_id, actor_role)
        now = now or datetime.now(timezone.utc)

        # Reassign so the JSON column registers the change
        target.approvals = [
            *(target.approvals or []),
            self._entry(actor_id, actor_role, ACTION_APPROVE, comment, actor_name, now),
        ]
        target.current_approval_level += 1

        required = target.total_approvals_required
        finalized = target.current_approval_level >= required
        if finalized:
            self._set_status(target, STATUS_APPROVED)
            target.finalized_at = now
        else:
            self._set_status(target, intermediate_status(actor_role))

        logger.info(
            f"{self.label} {getattr(target, 'id', '')} approved by {actor_role.value} "
            f"({target.current_approval_level}/{required})"
        )
        return ChainOutcome(
            status=self.get_status(target),
            level=target.current_approval_level,
            required=required,
            finalized=finalized,
        )

    def reject(
        self,
        target: Any,
        actor_id: UUID,
        actor_role: EmployeeRole,
        reason: str,
        actor_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ChainOutcome:
        self._ensure_open(target)
        if not reason or not reason.strip():
            raise ValidationException("A rejection reason is required", field="reason")
        actor_role = self._ensure_actor(target, actor_id, actor_role)
        now = now or datetime.now(timezone.utc)

        target.approvals = [
            *(target.approvals or []),
            self._entry(actor_id, actor_role, ACTION_REJECT, reason, actor_name, now),
        ]
        target.rejection_reason = reason.strip()
        target.finalized_at = now
        self._set_status(target, STATUS_REJECTED)

        logger.info(f"{self.label} {getattr(target, 'id', '')} rejected by {actor_role.value}: {reason}")
        return ChainOutcome(
            status=STATUS_REJECTED,
            level=target.current_approval_level,
            required=target.total_approvals_required,
            finalized=True,
        )


LEAVE_CHAIN = ApprovalChain(WorkflowType.LEAVE, label="Leave request")
TIME_CORRECTION_CHAIN = ApprovalChain(WorkflowType.TIME_CORRECTION, label="Time correction")
PAYROLL_RECORD_CHAIN = ApprovalChain(
    WorkflowType.PAYROLL_RECORD,
    status_field="approval_status",
    label="Payroll record",
)
