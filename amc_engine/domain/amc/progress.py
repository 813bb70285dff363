"""Visit progress - records visit completion against the contract's quota"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Optional

from ...errors import AlreadyCompleted
from ...models import AMCContract, AMCVisit
from .scheduling import apply_cadence_next_visit, get_visit

logger = logging.getLogger(__name__)


@dataclass
class VisitIssue:
    description: str
    severity: str = "low"  # low, medium, high, critical
    resolved: bool = False
    follow_up_required: bool = False


@dataclass
class VisitCompletion:
    """Everything a technician reports when closing out a visit"""

    completed_date: date
    service_report: Optional[str] = None
    issues: list[VisitIssue] = field(default_factory=list)
    customer_signature: Optional[str] = None
    follow_up_recommendations: Optional[str] = None
    assigned_to: Optional[str] = None


class VisitProgressTracker:
    """Applies completions to individual visits"""

    @staticmethod
    def complete(contract: AMCContract, visit_index: int, payload: VisitCompletion) -> AMCVisit:
        """
        Mark the visit at visit_index as completed.

        The index is only meaningful within one read-modify-write cycle; the
        schedule may be replaced between requests.

        next_visit_date is deliberately left as is; use
        reconcile_next_visit_date() to refresh it.

        Raises:
            InvalidVisitIndex: index outside the schedule
            AlreadyCompleted: the visit was completed before
        """
        visit = get_visit(contract, visit_index)
        if visit.is_completed:
            raise AlreadyCompleted("Visit is already completed")

        visit.status = "completed"
        visit.completed_date = payload.completed_date
        visit.service_report = payload.service_report
        visit.issues = [asdict(issue) for issue in payload.issues]
        visit.follow_up_recommendations = payload.follow_up_recommendations
        if payload.assigned_to:
            visit.assigned_to = payload.assigned_to

        # A blank signature means it has not been captured yet
        if payload.customer_signature and payload.customer_signature.strip():
            visit.customer_signature = payload.customer_signature

        # Not capped at the quota
        contract.completed_visit_count = (contract.completed_visit_count or 0) + 1

        logger.info(
            f"✅ Visit {visit_index + 1} of {contract.contract_number} completed "
            f"({contract.completed_visit_count}/{contract.scheduled_visit_quota})"
        )
        return visit

    @staticmethod
    def reconcile_next_visit_date(contract: AMCContract) -> Optional[date]:
        """Re-derive next_visit_date from the earliest pending visit"""
        return apply_cadence_next_visit(contract)
