"""
Automated status maintenance for AMC contracts
Handles active → expired once the end date has passed, and refreshes the
next visit date of active contracts from their pending visits
(unless it was set by renewal)
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ..domain.amc.repository import AMCRepository
from ..domain.amc.scheduling import apply_cadence_next_visit

logger = logging.getLogger(__name__)


def update_contract_statuses(db: Session, today: Optional[date] = None) -> dict:
    """
    Update contract statuses based on dates
    Should be run as a scheduled job (e.g., daily cron)

    Returns:
        dict: Summary of changes made
    """
    summary = {
        "active_to_expired": 0,
        "next_visit_refreshed": 0,
        "total_updated": 0,
    }

    try:
        today = today or date.today()

        # 1. ACTIVE → EXPIRED (end date has passed)
        for contract in AMCRepository.get_overdue_active_contracts(db, today):
            contract.status = "expired"
            summary["active_to_expired"] += 1
            logger.info(f"⏰ Contract {contract.contract_number} transitioned: active → expired")
        db.flush()

        # 2. Completion leaves next_visit_date stale; re-derive it. Dates set by
        # renewal (start + N days) are left alone until the schedule is edited
        for contract in AMCRepository.get_active_cadence_contracts(db):
            previous = contract.next_visit_date
            if apply_cadence_next_visit(contract) != previous:
                summary["next_visit_refreshed"] += 1

        total = summary["active_to_expired"] + summary["next_visit_refreshed"]
        if total > 0:
            db.commit()
            summary["total_updated"] = total
            logger.info(f"📊 Status automation summary: {summary}")
        else:
            logger.debug("ℹ️ No contract status updates needed")

        return summary

    except Exception as e:
        logger.error(f"❌ Error updating contract statuses: {str(e)}")
        db.rollback()
        raise
