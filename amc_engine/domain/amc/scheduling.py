"""
Visit schedule generation.

Visits are spread over the contract window at a fixed month cadence:
interval = months_between(start, end) // quota, and visit i lands on
start + (i + 1) * interval months, so the first visit is one interval after
the start date, never on it.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from ... import config
from ...errors import (
    AlreadyCompleted,
    HasCompletedVisits,
    InvalidVisitIndex,
    InvalidVisitPayload,
    QuotaExceeded,
)
from ...models import VISIT_TYPES, AMCContract, AMCVisit, earliest_pending_date

logger = logging.getLogger(__name__)


@dataclass
class PlannedVisit:
    """A visit to be added to a schedule"""

    scheduled_date: date
    assigned_to: Optional[str] = None
    visit_type: str = "routine"
    notes: Optional[str] = None

    def to_model(self) -> AMCVisit:
        return AMCVisit(
            scheduled_date=self.scheduled_date,
            assigned_to=self.assigned_to,
            visit_type=self.visit_type or "routine",
            notes=self.notes,
            status="pending",
        )


def months_between(start: date, end: date) -> int:
    """Whole calendar months between two dates, ignoring the day of month"""
    return (end.year - start.year) * 12 + (end.month - start.month)


def parse_visit_date(value: Any) -> Optional[date]:
    """Parse a date, datetime or ISO-8601 string; None if it cannot be read"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return isoparse(value.strip()).date()
        except ValueError:
            return None
    return None


def is_valid_technician_ref(value: Any) -> bool:
    return isinstance(value, str) and re.match(config.TECHNICIAN_REF_PATTERN, value) is not None


def apply_cadence_next_visit(contract: AMCContract) -> Optional[date]:
    """Point next_visit_date at the earliest pending visit"""
    contract.next_visit_date = earliest_pending_date(contract.visit_schedule)
    contract.next_visit_policy = "cadence"
    return contract.next_visit_date


class VisitScheduleGenerator:
    """Builds, replaces and extends a contract's visit schedule"""

    @staticmethod
    def generate(start_date: date, end_date: date, quota: int) -> list[AMCVisit]:
        """Compute `quota` pending visits spaced evenly (in months) across the window"""
        total_months = months_between(start_date, end_date)
        interval_months = total_months // quota if quota > 0 else 0

        visits = []
        for i in range(max(quota, 0)):
            if interval_months > 0:
                offset = (i + 1) * interval_months
            else:
                # Window shorter than one interval per visit: every visit falls at the end
                offset = total_months
            visits.append(
                AMCVisit(
                    scheduled_date=start_date + relativedelta(months=offset),
                    status="pending",
                    visit_type="routine",
                )
            )
        return visits

    def populate(self, contract: AMCContract) -> list[AMCVisit]:
        """Fill a new contract's schedule from its own window and quota"""
        contract.visit_schedule = self.generate(
            contract.start_date, contract.end_date, contract.scheduled_visit_quota
        )
        apply_cadence_next_visit(contract)
        return contract.visit_schedule

    def regenerate(self, contract: AMCContract) -> list[AMCVisit]:
        """
        Replace the schedule with a freshly generated one.

        Only allowed while no visit is completed, so completion history is
        never discarded. Renewal resets the counter but keeps completed visits
        in the schedule, so both are checked.
        """
        has_completed = any(visit.is_completed for visit in contract.visit_schedule)
        if (contract.completed_visit_count or 0) > 0 or has_completed:
            raise HasCompletedVisits(
                "Cannot regenerate visit schedule for contracts with completed visits"
            )

        schedule = self.populate(contract)
        logger.info(
            f"🗓️ Regenerated {len(schedule)} visits for {contract.contract_number}"
        )
        return schedule

    def append_manual(self, contract: AMCContract, visit: PlannedVisit) -> list[AMCVisit]:
        """Add one visit, as long as the schedule has room under the quota"""
        if len(contract.visit_schedule) >= contract.scheduled_visit_quota:
            raise QuotaExceeded(
                f"Cannot schedule more visits. Maximum allowed: {contract.scheduled_visit_quota}"
            )

        contract.visit_schedule.append(visit.to_model())
        apply_cadence_next_visit(contract)
        return contract.visit_schedule

    def append_bulk(self, contract: AMCContract, entries: list[dict]) -> list[AMCVisit]:
        """
        Replace the whole schedule with the given visits.

        Every entry is validated before anything is touched; the first bad
        entry rejects the call and leaves the schedule as it was.

        Args:
            contract: Contract whose schedule is replaced
            entries: Dicts with scheduledDate, assignedTo and optional visitType/notes
        """
        if not entries:
            raise InvalidVisitPayload("Visits array is required and cannot be empty")
        if len(entries) > contract.scheduled_visit_quota:
            raise QuotaExceeded(
                f"Cannot schedule {len(entries)} visits. "
                f"Maximum allowed: {contract.scheduled_visit_quota}"
            )

        planned = [self._validate_entry(index, entry) for index, entry in enumerate(entries)]

        contract.visit_schedule = [visit.to_model() for visit in planned]
        apply_cadence_next_visit(contract)
        logger.info(f"🗓️ Scheduled {len(planned)} visits for {contract.contract_number}")
        return contract.visit_schedule

    def reschedule(self, contract: AMCContract, visit_index: int, new_date: date) -> AMCVisit:
        """Move a pending visit to a new date"""
        visit = get_visit(contract, visit_index)
        if visit.is_completed:
            raise AlreadyCompleted("Cannot reschedule completed visit")

        visit.scheduled_date = new_date
        apply_cadence_next_visit(contract)
        return visit

    @staticmethod
    def _validate_entry(index: int, entry: dict) -> PlannedVisit:
        label = f"Visit {index + 1}"
        if not isinstance(entry, dict):
            raise InvalidVisitPayload(f"{label}: Visit details are required")

        raw_date = entry.get("scheduledDate")
        if not raw_date:
            raise InvalidVisitPayload(f"{label}: Scheduled date is required")
        scheduled_date = parse_visit_date(raw_date)
        if scheduled_date is None:
            raise InvalidVisitPayload(f"{label}: Invalid date format")

        assigned_to = entry.get("assignedTo")
        if not assigned_to:
            raise InvalidVisitPayload(f"{label}: Assigned engineer is required")
        if not is_valid_technician_ref(assigned_to):
            raise InvalidVisitPayload(f"{label}: Invalid engineer ID format")

        visit_type = entry.get("visitType") or "routine"
        if visit_type not in VISIT_TYPES:
            raise InvalidVisitPayload(f"{label}: Unknown visit type {visit_type}")

        return PlannedVisit(
            scheduled_date=scheduled_date,
            assigned_to=assigned_to,
            visit_type=visit_type,
            notes=entry.get("notes"),
        )


def get_visit(contract: AMCContract, visit_index: int) -> AMCVisit:
    """Look up a visit by list position"""
    if visit_index is None or visit_index < 0 or visit_index >= len(contract.visit_schedule):
        raise InvalidVisitIndex("Invalid visit index")
    return contract.visit_schedule[visit_index]
