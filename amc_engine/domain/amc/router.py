"""AMC router - FastAPI endpoints for maintenance contract operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from .schemas import (
    AMCCreate,
    AMCResponse,
    AMCUpdate,
    ArchiveRequest,
    BatchDeleteRequest,
    BulkRenewRequest,
    BulkRenewResponse,
    BulkVisitRequest,
    CompleteVisitRequest,
    DeleteResponse,
    RenewalFailureResponse,
    RenewRequest,
    RescheduleRequest,
    StatusUpdateRequest,
    VisitCreate,
)
from .service import AMCService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/amc", tags=["AMC"])


def get_amc_service(db: Session = Depends(get_db)) -> AMCService:
    """Dependency injection for AMCService"""
    return AMCService(db)


# ============================================================================
# CREATE & COLLECTION QUERIES
# ============================================================================


@router.post("", response_model=AMCResponse, status_code=201)
async def create_amc(data: AMCCreate, service: AMCService = Depends(get_amc_service)):
    """Create a new AMC contract, optionally generating its visit schedule"""
    contract = service.create_contract(data)
    return AMCResponse.from_contract(contract)


@router.get("/expiring", response_model=list[AMCResponse])
async def get_expiring_amcs(
    days: Optional[int] = Query(None, ge=0, description="Look-ahead window in days"),
    service: AMCService = Depends(get_amc_service),
):
    """Active contracts ending within the window"""
    return [AMCResponse.from_contract(c) for c in service.get_expiring_contracts(days)]


@router.get("/pending-visits", response_model=list[AMCResponse])
async def get_amcs_with_pending_visits(service: AMCService = Depends(get_amc_service)):
    return [AMCResponse.from_contract(c) for c in service.get_contracts_with_pending_visits()]


# ============================================================================
# BULK OPERATIONS
# ============================================================================


@router.post("/bulk-renew", response_model=BulkRenewResponse)
async def bulk_renew_amcs(
    data: BulkRenewRequest, service: AMCService = Depends(get_amc_service)
):
    """Renew several contracts, each by its own duration. Best effort."""
    result = service.bulk_renew(data.contractIds, data.priceAdjustment, data.renewalTerms)
    return BulkRenewResponse(
        message=f"Successfully renewed {len(result.renewed)} contracts",
        renewedContracts=[AMCResponse.from_contract(c) for c in result.renewed],
        failed=[
            RenewalFailureResponse(
                contractId=f.contract_id, contractNumber=f.contract_number, reason=f.reason
            )
            for f in result.failed
        ],
    )


@router.post("/bulk-delete", response_model=DeleteResponse)
async def bulk_delete_amcs(
    data: BatchDeleteRequest, service: AMCService = Depends(get_amc_service)
):
    """Hard delete several contracts. All-or-nothing."""
    deleted = service.bulk_delete(data.contractIds, data.reason)
    return DeleteResponse(
        message=f"Successfully deleted {len(deleted)} contracts",
        deletedCount=len(deleted),
        contractNumbers=deleted,
    )


# ============================================================================
# SINGLE CONTRACT
# ============================================================================


@router.get("/number/{contract_number}", response_model=AMCResponse)
async def get_amc_by_number(contract_number: str, service: AMCService = Depends(get_amc_service)):
    return AMCResponse.from_contract(service.get_contract_by_number(contract_number))


@router.get("/{contract_id}", response_model=AMCResponse)
async def get_amc(contract_id: int, service: AMCService = Depends(get_amc_service)):
    return AMCResponse.from_contract(service.get_contract(contract_id))


@router.put("/{contract_id}", response_model=AMCResponse)
async def update_amc(
    contract_id: int, data: AMCUpdate, service: AMCService = Depends(get_amc_service)
):
    """Edit contract details. Use /status for status changes."""
    return AMCResponse.from_contract(service.update_contract(contract_id, data))


@router.delete("/{contract_id}", response_model=DeleteResponse)
async def delete_amc(contract_id: int, service: AMCService = Depends(get_amc_service)):
    """Hard delete. Only for non-active contracts without completed visits."""
    contract_number = service.delete_contract(contract_id)
    return DeleteResponse(
        message="AMC contract deleted successfully",
        deletedCount=1,
        contractNumbers=[contract_number],
    )


# ============================================================================
# VISIT SCHEDULE
# ============================================================================


@router.post("/{contract_id}/regenerate-visits", response_model=AMCResponse)
async def regenerate_visits(contract_id: int, service: AMCService = Depends(get_amc_service)):
    """Replace the schedule with an evenly spaced one. Rejected once a visit is completed."""
    return AMCResponse.from_contract(service.regenerate_visits(contract_id))


@router.post("/{contract_id}/visits", response_model=AMCResponse)
async def schedule_visit(
    contract_id: int, data: VisitCreate, service: AMCService = Depends(get_amc_service)
):
    return AMCResponse.from_contract(service.schedule_visit(contract_id, data))


@router.post("/{contract_id}/visits/bulk", response_model=AMCResponse)
async def schedule_visits_bulk(
    contract_id: int, data: BulkVisitRequest, service: AMCService = Depends(get_amc_service)
):
    """Replace the whole schedule with the given entries"""
    return AMCResponse.from_contract(service.schedule_visits_bulk(contract_id, data.visits))


@router.patch("/{contract_id}/visits/{visit_index}/reschedule", response_model=AMCResponse)
async def reschedule_visit(
    contract_id: int,
    visit_index: int,
    data: RescheduleRequest,
    service: AMCService = Depends(get_amc_service),
):
    return AMCResponse.from_contract(
        service.reschedule_visit(contract_id, visit_index, data.scheduledDate)
    )


@router.post("/{contract_id}/visits/{visit_index}/complete", response_model=AMCResponse)
async def complete_visit(
    contract_id: int,
    visit_index: int,
    data: CompleteVisitRequest,
    service: AMCService = Depends(get_amc_service),
):
    return AMCResponse.from_contract(service.complete_visit(contract_id, visit_index, data))


# ============================================================================
# RENEWAL & LIFECYCLE
# ============================================================================


@router.post("/{contract_id}/renew", response_model=AMCResponse)
async def renew_amc(
    contract_id: int, data: RenewRequest, service: AMCService = Depends(get_amc_service)
):
    return AMCResponse.from_contract(service.renew_contract(contract_id, data))


@router.post("/{contract_id}/activate", response_model=AMCResponse)
async def activate_amc(contract_id: int, service: AMCService = Depends(get_amc_service)):
    return AMCResponse.from_contract(service.activate(contract_id))


@router.post("/{contract_id}/archive", response_model=AMCResponse)
async def archive_amc(
    contract_id: int,
    data: Optional[ArchiveRequest] = None,
    service: AMCService = Depends(get_amc_service),
):
    """Soft delete: the contract is cancelled and its history kept"""
    reason = data.reason if data else None
    return AMCResponse.from_contract(service.archive(contract_id, reason))


@router.put("/{contract_id}/status", response_model=AMCResponse)
async def update_amc_status(
    contract_id: int, data: StatusUpdateRequest, service: AMCService = Depends(get_amc_service)
):
    return AMCResponse.from_contract(service.update_status(contract_id, data.status, data.reason))
