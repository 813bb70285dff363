"""AMC domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ContractStatus = Literal["draft", "pending", "active", "expired", "cancelled", "suspended"]
ManualStatus = Literal["draft", "pending", "active", "cancelled", "suspended"]
VisitType = Literal["routine", "breakdown", "inspection", "emergency"]


class AMCCreate(BaseModel):
    """Schema for creating a new AMC contract"""

    customerRef: str = Field(..., min_length=1, max_length=64)
    engineSerialNumber: str = Field(..., min_length=1, max_length=100)
    engineModel: Optional[str] = Field(None, max_length=100)
    kva: Optional[float] = Field(None, ge=0)
    dgMake: Optional[str] = Field(None, max_length=100)
    dateOfCommissioning: Optional[date] = None
    amcType: Literal["AMC", "CAMC"] = "AMC"
    numberOfOilServices: int = Field(0, ge=0)
    startDate: date
    endDate: date
    contractValue: float = Field(0, ge=0)
    numberOfVisits: int = Field(..., ge=1)
    products: list[str] = []
    terms: Optional[str] = Field(None, max_length=5000)
    status: ManualStatus = "active"
    generateSchedule: bool = True

    @field_validator("engineSerialNumber")
    @classmethod
    def normalize_serial(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Engine serial number is required")
        return v

    @model_validator(mode="after")
    def check_window(self):
        if self.endDate <= self.startDate:
            raise ValueError("End date must be after start date")
        return self


class AMCUpdate(BaseModel):
    """
    Schema for editing contract details. The contract number is immutable and
    status has its own endpoint, so unknown fields are rejected.
    """

    model_config = ConfigDict(extra="forbid")

    customerRef: Optional[str] = Field(None, min_length=1, max_length=64)
    engineSerialNumber: Optional[str] = Field(None, min_length=1, max_length=100)
    engineModel: Optional[str] = Field(None, max_length=100)
    kva: Optional[float] = Field(None, ge=0)
    dgMake: Optional[str] = Field(None, max_length=100)
    dateOfCommissioning: Optional[date] = None
    amcType: Optional[Literal["AMC", "CAMC"]] = None
    numberOfOilServices: Optional[int] = Field(None, ge=0)
    startDate: Optional[date] = None
    endDate: Optional[date] = None
    contractValue: Optional[float] = Field(None, ge=0)
    numberOfVisits: Optional[int] = Field(None, ge=1)
    products: Optional[list[str]] = None
    terms: Optional[str] = Field(None, max_length=5000)

    @field_validator("engineSerialNumber")
    @classmethod
    def normalize_serial(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Engine serial number is required")
        return v


class VisitCreate(BaseModel):
    """Schema for scheduling a single visit"""

    scheduledDate: date
    assignedTo: Optional[str] = Field(None, max_length=64)
    visitType: VisitType = "routine"
    notes: Optional[str] = Field(None, max_length=1000)


class BulkVisitRequest(BaseModel):
    """Bulk schedule: entries are validated by the engine, all-or-nothing"""

    visits: list[dict[str, Any]]


class RescheduleRequest(BaseModel):
    scheduledDate: date


class VisitIssueSchema(BaseModel):
    description: str = Field(..., min_length=1)
    severity: Literal["low", "medium", "high", "critical"] = "low"
    resolved: bool = False
    followUpRequired: bool = False


class CompleteVisitRequest(BaseModel):
    """Schema for completing a visit"""

    completedDate: date
    serviceReport: Optional[str] = None
    issues: list[VisitIssueSchema] = []
    customerSignature: Optional[str] = None
    nextVisitRecommendations: Optional[str] = None
    assignedTo: Optional[str] = Field(None, max_length=64)


class PriceAdjustmentSchema(BaseModel):
    type: Literal["percentage", "fixed"]
    value: float
    reason: Optional[str] = Field(None, max_length=200)


class RenewRequest(BaseModel):
    """Schema for renewing a contract with explicit terms"""

    newStartDate: date
    newEndDate: date
    newContractValue: Optional[float] = Field(None, ge=0)
    newScheduledVisits: Optional[int] = Field(None, ge=1)
    priceAdjustment: Optional[PriceAdjustmentSchema] = None
    updatedTerms: Optional[str] = Field(None, max_length=5000)
    addProducts: list[str] = []
    removeProducts: list[str] = []


class BulkRenewRequest(BaseModel):
    contractIds: list[int] = Field(..., min_length=1)
    renewalTerms: Optional[str] = Field(None, max_length=5000)
    priceAdjustment: Optional[PriceAdjustmentSchema] = None


class StatusUpdateRequest(BaseModel):
    status: ManualStatus
    reason: Optional[str] = Field(None, max_length=500)


class ArchiveRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class BatchDeleteRequest(BaseModel):
    """Schema for batch delete operation"""

    contractIds: list[int] = Field(..., min_length=1)
    reason: Optional[str] = None


class VisitResponse(BaseModel):
    position: int
    scheduledDate: date
    completedDate: Optional[date] = None
    assignedTo: Optional[str] = None
    visitType: str
    status: str
    notes: Optional[str] = None
    serviceReport: Optional[str] = None
    issues: Optional[list[dict]] = None
    hasCustomerSignature: bool = False
    followUpRecommendations: Optional[str] = None

    @classmethod
    def from_visit(cls, visit) -> "VisitResponse":
        return cls(
            position=visit.position,
            scheduledDate=visit.scheduled_date,
            completedDate=visit.completed_date,
            assignedTo=visit.assigned_to,
            visitType=visit.visit_type,
            status=visit.status,
            notes=visit.notes,
            serviceReport=visit.service_report,
            issues=visit.issues,
            hasCustomerSignature=bool(visit.customer_signature),
            followUpRecommendations=visit.follow_up_recommendations,
        )


class AMCResponse(BaseModel):
    """Schema for contract response"""

    id: int
    contractNumber: str
    customerRef: str
    engineSerialNumber: str
    engineModel: Optional[str]
    kva: Optional[float]
    dgMake: Optional[str]
    dateOfCommissioning: Optional[date]
    amcType: str
    numberOfOilServices: int
    products: list[str]
    startDate: date
    endDate: date
    contractValue: float
    scheduledVisits: int
    completedVisits: int
    remainingVisits: int
    completionPercentage: int
    daysRemaining: int
    nextVisitDate: Optional[date]
    status: ContractStatus
    terms: Optional[str]
    visitSchedule: list[VisitResponse]
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_contract(cls, contract) -> "AMCResponse":
        return cls(
            id=contract.id,
            contractNumber=contract.contract_number,
            customerRef=contract.customer_ref,
            engineSerialNumber=contract.asset_serial_number,
            engineModel=contract.engine_model,
            kva=contract.kva,
            dgMake=contract.dg_make,
            dateOfCommissioning=contract.date_of_commissioning,
            amcType=contract.amc_type,
            numberOfOilServices=contract.number_of_oil_services or 0,
            products=list(contract.product_refs or []),
            startDate=contract.start_date,
            endDate=contract.end_date,
            contractValue=contract.contract_value,
            scheduledVisits=contract.scheduled_visit_quota,
            completedVisits=contract.completed_visit_count,
            remainingVisits=contract.remaining_visits,
            completionPercentage=contract.completion_percentage,
            daysRemaining=contract.days_remaining,
            nextVisitDate=contract.next_visit_date,
            status=contract.status,
            terms=contract.terms,
            visitSchedule=[VisitResponse.from_visit(v) for v in contract.visit_schedule],
            createdAt=contract.created_at,
            updatedAt=contract.updated_at,
        )


class RenewalFailureResponse(BaseModel):
    contractId: int
    contractNumber: str
    reason: str


class BulkRenewResponse(BaseModel):
    message: str
    renewedContracts: list[AMCResponse]
    failed: list[RenewalFailureResponse]


class DeleteResponse(BaseModel):
    message: str
    deletedCount: int
    contractNumbers: list[str]
