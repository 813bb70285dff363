"""
AMC (maintenance contract) models: contracts, their visit schedule, and sequence counters
"""

from datetime import date
from typing import Optional

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# Contract status workflow: draft → pending → active → suspended/expired/cancelled
# expired: set only by status automation once end_date has passed
# cancelled: archived (soft delete), terminal
CONTRACT_STATUSES = ("draft", "pending", "active", "expired", "cancelled", "suspended")
VISIT_STATUSES = ("pending", "completed", "cancelled")
VISIT_TYPES = ("routine", "breakdown", "inspection", "emergency")
AMC_TYPES = ("AMC", "CAMC")


class AMCContract(Base):
    __tablename__ = "amc_contracts"

    id = Column(Integer, primary_key=True, index=True)
    # AMC-<year>-<4-digit sequence>, never rewritten after creation
    contract_number = Column(String(32), unique=True, nullable=False, index=True)

    # Asset under contract: one contract per engine serial number, whatever its status
    asset_serial_number = Column(String(100), unique=True, nullable=False, index=True)
    engine_model = Column(String(100), nullable=True)
    kva = Column(Float, nullable=True)
    dg_make = Column(String(100), nullable=True)
    date_of_commissioning = Column(Date, nullable=True)
    amc_type = Column(String(10), default="AMC", nullable=False)  # AMC, CAMC
    number_of_oil_services = Column(Integer, default=0, nullable=False)

    # Weak references into the customer/product registries
    customer_ref = Column(String(64), nullable=False, index=True)
    product_refs = Column(JSON, default=list, nullable=False)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False, index=True)
    contract_value = Column(Float, default=0, nullable=False)
    scheduled_visit_quota = Column(Integer, nullable=False)
    completed_visit_count = Column(Integer, default=0, nullable=False)
    next_visit_date = Column(Date, nullable=True, index=True)  # Advisory cache of next pending visit
    # Rule that last set next_visit_date: cadence (earliest pending visit) or renewal (start + N days)
    next_visit_policy = Column(String(20), default="cadence", nullable=False)

    status = Column(String(20), default="active", nullable=False, index=True)
    terms = Column(Text, nullable=True)  # Status-change reasons are appended here

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    visit_schedule = relationship(
        "AMCVisit",
        back_populates="contract",
        order_by="AMCVisit.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )

    @property
    def remaining_visits(self) -> int:
        return max(0, (self.scheduled_visit_quota or 0) - (self.completed_visit_count or 0))

    @property
    def completion_percentage(self) -> int:
        if not self.scheduled_visit_quota:
            return 0
        return round((self.completed_visit_count or 0) / self.scheduled_visit_quota * 100)

    @property
    def contract_duration_days(self) -> int:
        if self.start_date and self.end_date:
            return (self.end_date - self.start_date).days
        return 0

    @property
    def days_remaining(self) -> int:
        if self.end_date:
            return max(0, (self.end_date - date.today()).days)
        return 0

    def __repr__(self) -> str:
        return f"<AMCContract {self.contract_number} asset={self.asset_serial_number} status={self.status}>"


class AMCVisit(Base):
    """A scheduled maintenance visit, owned by its contract and addressed by list position"""

    __tablename__ = "amc_visits"

    id = Column(Integer, primary_key=True, index=True)
    contract_id = Column(
        Integer, ForeignKey("amc_contracts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False)  # Insertion order within the contract

    scheduled_date = Column(Date, nullable=False)
    completed_date = Column(Date, nullable=True)
    assigned_to = Column(String(64), nullable=True)  # Technician reference
    visit_type = Column(String(20), default="routine", nullable=False)
    # pending → completed; cancelled visits stay in the list
    status = Column(String(20), default="pending", nullable=False)
    notes = Column(Text, nullable=True)

    # Completion payload, empty until the visit is completed
    service_report = Column(Text, nullable=True)
    issues = Column(JSON, nullable=True)  # [{description, severity, resolved, follow_up_required}]
    customer_signature = Column(Text, nullable=True)  # Base64 signature image
    follow_up_recommendations = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    contract = relationship("AMCContract", back_populates="visit_schedule")

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"


class SequenceCounter(Base):
    """Named counter advanced by atomic increment-and-read"""

    __tablename__ = "sequence_counters"

    id = Column(Integer, primary_key=True)
    scope_key = Column(String(100), unique=True, nullable=False)  # e.g. "contractNumber:2025"
    value = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.scope_key}={self.value}>"


def earliest_pending_date(visits) -> Optional[date]:
    """Earliest scheduled date among pending visits (list order is not chronological)"""
    pending = [v.scheduled_date for v in visits if v.status == "pending" and v.scheduled_date]
    return min(pending) if pending else None
