"""AMC service - Orchestrates the engine components inside one request's session"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ... import config
from ...errors import (
    AllocationExhausted,
    ContractNotFound,
    DuplicateAsset,
    InvalidContractTerms,
    QuotaExceeded,
)
from ...models import AMCContract
from .identity import ContractIdentityService
from .lifecycle import ContractLifecycleManager
from .progress import VisitCompletion, VisitIssue, VisitProgressTracker
from .renewal import BulkRenewal, PriceAdjustment, RenewalEngine
from .repository import AMCRepository
from .scheduling import PlannedVisit, VisitScheduleGenerator
from .schemas import (
    AMCCreate,
    AMCUpdate,
    CompleteVisitRequest,
    PriceAdjustmentSchema,
    RenewRequest,
    VisitCreate,
)

logger = logging.getLogger(__name__)


def to_price_adjustment(data: Optional[PriceAdjustmentSchema]) -> Optional[PriceAdjustment]:
    if data is None:
        return None
    return PriceAdjustment(kind=data.type, value=data.value, reason=data.reason)


class AMCService:
    """Service layer for AMC contract business logic"""

    def __init__(
        self,
        db: Session,
        identity: Optional[ContractIdentityService] = None,
        lifecycle: Optional[ContractLifecycleManager] = None,
    ):
        self.db = db
        self.repo = AMCRepository()
        self.identity = identity or ContractIdentityService(db)
        self.lifecycle = lifecycle or ContractLifecycleManager()
        self.scheduler = VisitScheduleGenerator()
        self.progress = VisitProgressTracker()
        self.renewals = RenewalEngine(self.lifecycle)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_contract(self, contract_id: int) -> AMCContract:
        contract = self.repo.get_contract_by_id(self.db, contract_id)
        if not contract:
            raise ContractNotFound("AMC contract not found")
        return contract

    def get_contract_by_number(self, contract_number: str) -> AMCContract:
        contract = self.repo.get_contract_by_number(self.db, contract_number)
        if not contract:
            raise ContractNotFound("AMC contract not found")
        return contract

    def get_expiring_contracts(
        self, days: Optional[int] = None, today: Optional[date] = None
    ) -> list[AMCContract]:
        days = config.EXPIRING_SOON_DAYS if days is None else days
        return self.repo.get_expiring_contracts(self.db, today or date.today(), days)

    def get_contracts_with_pending_visits(self) -> list[AMCContract]:
        return self.repo.get_contracts_with_pending_visits(self.db)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_contract(self, data: AMCCreate, year: Optional[int] = None) -> AMCContract:
        """Allocate a number, persist the contract and (optionally) its schedule"""
        year = year or date.today().year
        logger.info(f"📝 Creating AMC for asset {data.engineSerialNumber}")

        contract_number = self.identity.allocate(year, data.engineSerialNumber)

        contract = AMCContract(
            contract_number=contract_number,
            asset_serial_number=data.engineSerialNumber,
            engine_model=data.engineModel,
            kva=data.kva,
            dg_make=data.dgMake,
            date_of_commissioning=data.dateOfCommissioning,
            amc_type=data.amcType,
            number_of_oil_services=data.numberOfOilServices,
            customer_ref=data.customerRef,
            product_refs=list(dict.fromkeys(data.products)),
            start_date=data.startDate,
            end_date=data.endDate,
            contract_value=data.contractValue,
            scheduled_visit_quota=data.numberOfVisits,
            completed_visit_count=0,
            status=data.status,
            terms=data.terms,
        )
        if data.generateSchedule:
            self.scheduler.populate(contract)

        try:
            return self.repo.create_contract(self.db, contract)
        except IntegrityError:
            self.db.rollback()
            # The asset check and the insert are separate statements; the unique
            # indexes catch whatever slipped between them
            if self.repo.asset_exists(self.db, data.engineSerialNumber):
                logger.warning(f"⚠️ Concurrent AMC creation for asset {data.engineSerialNumber}")
                raise DuplicateAsset(
                    f"An AMC contract already exists for engine serial number "
                    f"{data.engineSerialNumber}"
                )
            logger.warning(f"⚠️ Contract number {contract_number} was taken concurrently")
            raise AllocationExhausted(
                "Contract number collided with a concurrent request, please retry"
            )

    def update_contract(self, contract_id: int, data: AMCUpdate) -> AMCContract:
        """Edit contract details. The number and status are not editable here."""
        contract = self.get_contract(contract_id)

        updates = {}
        if data.customerRef is not None:
            updates["customer_ref"] = data.customerRef
        if data.engineSerialNumber is not None:
            updates["asset_serial_number"] = data.engineSerialNumber
        if data.engineModel is not None:
            updates["engine_model"] = data.engineModel
        if data.kva is not None:
            updates["kva"] = data.kva
        if data.dgMake is not None:
            updates["dg_make"] = data.dgMake
        if data.dateOfCommissioning is not None:
            updates["date_of_commissioning"] = data.dateOfCommissioning
        if data.amcType is not None:
            updates["amc_type"] = data.amcType
        if data.numberOfOilServices is not None:
            updates["number_of_oil_services"] = data.numberOfOilServices
        if data.startDate is not None:
            updates["start_date"] = data.startDate
        if data.endDate is not None:
            updates["end_date"] = data.endDate
        if data.contractValue is not None:
            updates["contract_value"] = data.contractValue
        if data.numberOfVisits is not None:
            updates["scheduled_visit_quota"] = data.numberOfVisits
        if data.products is not None:
            updates["product_refs"] = list(dict.fromkeys(data.products))
        if data.terms is not None:
            updates["terms"] = data.terms

        start = updates.get("start_date", contract.start_date)
        end = updates.get("end_date", contract.end_date)
        if end <= start:
            raise InvalidContractTerms("End date must be after start date")
        if updates.get("contract_value", 0) < 0:
            raise InvalidContractTerms("Contract value cannot be negative")

        quota = updates.get("scheduled_visit_quota")
        if quota is not None and quota < len(contract.visit_schedule):
            raise QuotaExceeded(
                f"Contract already has {len(contract.visit_schedule)} scheduled visits"
            )

        serial = updates.get("asset_serial_number")
        if serial is not None and serial != contract.asset_serial_number:
            self.identity.ensure_asset_available(serial)

        try:
            contract = self.repo.update_contract(self.db, contract, **updates)
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"⚠️ Concurrent AMC update claimed asset {serial}")
            raise DuplicateAsset(
                f"An AMC contract already exists for engine serial number {serial}"
            )

        logger.info(f"✏️ Updated AMC {contract.contract_number}: {', '.join(updates) or 'no changes'}")
        return contract

    # ------------------------------------------------------------------
    # Visit schedule
    # ------------------------------------------------------------------

    def regenerate_visits(self, contract_id: int) -> AMCContract:
        contract = self.get_contract(contract_id)
        self.scheduler.regenerate(contract)
        return self._save(contract)

    def schedule_visit(self, contract_id: int, data: VisitCreate) -> AMCContract:
        contract = self.get_contract(contract_id)
        self.scheduler.append_manual(
            contract,
            PlannedVisit(
                scheduled_date=data.scheduledDate,
                assigned_to=data.assignedTo,
                visit_type=data.visitType,
                notes=data.notes,
            ),
        )
        return self._save(contract)

    def schedule_visits_bulk(self, contract_id: int, entries: list[dict]) -> AMCContract:
        contract = self.get_contract(contract_id)
        self.scheduler.append_bulk(contract, entries)
        return self._save(contract)

    def reschedule_visit(self, contract_id: int, visit_index: int, new_date: date) -> AMCContract:
        contract = self.get_contract(contract_id)
        self.scheduler.reschedule(contract, visit_index, new_date)
        return self._save(contract)

    def complete_visit(
        self, contract_id: int, visit_index: int, data: CompleteVisitRequest
    ) -> AMCContract:
        contract = self.get_contract(contract_id)
        payload = VisitCompletion(
            completed_date=data.completedDate,
            service_report=data.serviceReport,
            issues=[
                VisitIssue(
                    description=issue.description,
                    severity=issue.severity,
                    resolved=issue.resolved,
                    follow_up_required=issue.followUpRequired,
                )
                for issue in data.issues
            ],
            customer_signature=data.customerSignature,
            follow_up_recommendations=data.nextVisitRecommendations,
            assigned_to=data.assignedTo,
        )
        self.progress.complete(contract, visit_index, payload)
        return self._save(contract)

    # ------------------------------------------------------------------
    # Renewal
    # ------------------------------------------------------------------

    def renew_contract(self, contract_id: int, data: RenewRequest) -> AMCContract:
        contract = self.get_contract(contract_id)
        self.renewals.renew(
            contract,
            new_start=data.newStartDate,
            new_end=data.newEndDate,
            new_value=data.newContractValue,
            new_quota=data.newScheduledVisits,
            price_adjustment=to_price_adjustment(data.priceAdjustment),
            terms_update=data.updatedTerms,
            add_products=data.addProducts,
            remove_products=data.removeProducts,
        )
        return self._save(contract)

    def bulk_renew(
        self,
        contract_ids: list[int],
        price_adjustment: Optional[PriceAdjustmentSchema] = None,
        renewal_terms: Optional[str] = None,
    ) -> BulkRenewal:
        contracts = self.repo.get_contracts_by_ids(self.db, contract_ids)
        if not contracts:
            raise ContractNotFound("No valid contracts found for renewal")

        result = self.renewals.bulk_renew(
            contracts, to_price_adjustment(price_adjustment), renewal_terms
        )
        if result.renewed:
            self._save_all(result.renewed)
        return result

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def activate(self, contract_id: int) -> AMCContract:
        contract = self.get_contract(contract_id)
        self.lifecycle.activate(contract)
        return self._save(contract)

    def archive(self, contract_id: int, reason: Optional[str] = None) -> AMCContract:
        contract = self.get_contract(contract_id)
        self.lifecycle.archive(contract, reason)
        return self._save(contract)

    def update_status(
        self, contract_id: int, status: str, reason: Optional[str] = None
    ) -> AMCContract:
        contract = self.get_contract(contract_id)
        self.lifecycle.set_status(contract, status, reason)
        return self._save(contract)

    def delete_contract(self, contract_id: int) -> str:
        """Hard delete one contract. Returns its number."""
        contract = self.get_contract(contract_id)
        self.lifecycle.ensure_deletable(contract)
        contract_number = contract.contract_number
        try:
            self.repo.delete_contract(self.db, contract)
        except SQLAlchemyError:
            self.db.rollback()
            raise
        logger.info(f"🗑️ Deleted AMC {contract_number}")
        return contract_number

    def bulk_delete(self, contract_ids: list[int], reason: Optional[str] = None) -> list[str]:
        """Hard delete several contracts. Returns the deleted numbers."""
        contracts = self.repo.get_contracts_by_ids(self.db, contract_ids)
        if not contracts:
            raise ContractNotFound("No valid contracts found")

        # All-or-nothing: one failing member rejects the whole batch
        self.lifecycle.ensure_batch_deletable(contracts)
        contract_numbers = [c.contract_number for c in contracts]
        try:
            deleted = self.repo.delete_contracts(self.db, contracts)
        except SQLAlchemyError:
            self.db.rollback()
            raise
        logger.info(f"🗑️ Deleted {deleted} AMC contracts ({reason or 'Bulk deletion'})")
        return contract_numbers

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def _save(self, contract: AMCContract) -> AMCContract:
        try:
            return self.repo.save(self.db, contract)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to save {contract.contract_number}: {e}")
            self.db.rollback()
            raise

    def _save_all(self, contracts: list[AMCContract]) -> list[AMCContract]:
        try:
            return self.repo.save_all(self.db, contracts)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to save renewed contracts: {e}")
            self.db.rollback()
            raise
