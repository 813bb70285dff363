"""
Status automation runner script (for cron)
Usage: python run_status_automation.py [YYYY-MM-DD]
"""
import logging
import sys

from dateutil.parser import isoparse

from amc_engine.database import SessionLocal, init_db
from amc_engine.services.status_automation import update_contract_statuses

logging.basicConfig(level=logging.INFO, format='%(message)s')
logger = logging.getLogger(__name__)


def run(today=None):
    """Run one automation pass against the configured database"""
    init_db()
    db = SessionLocal()
    try:
        summary = update_contract_statuses(db, today)
    finally:
        db.close()

    logger.info(f"✅ Status automation completed: {summary}")
    return summary


if __name__ == "__main__":
    as_of = None
    if len(sys.argv) > 1:
        try:
            as_of = isoparse(sys.argv[1]).date()
        except ValueError:
            logger.error("Usage: python run_status_automation.py [YYYY-MM-DD]")
            sys.exit(1)

    try:
        run(as_of)
    except Exception as e:
        logger.error(f"❌ Status automation failed: {e}")
        sys.exit(1)
