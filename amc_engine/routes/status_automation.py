"""
API endpoint for AMC status automation
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.status_automation import update_contract_statuses

router = APIRouter(prefix="/amc/status", tags=["status"])


class AutomationResult(BaseModel):
    active_to_expired: int
    next_visit_refreshed: int
    total_updated: int


@router.post("/automation/run", response_model=AutomationResult)
async def run_status_automation(db: Session = Depends(get_db)):
    """
    Manually trigger status automation
    (In production, this should be run via scheduled job/cron)
    """
    result = update_contract_statuses(db)
    return AutomationResult(**result)
