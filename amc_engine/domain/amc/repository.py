"""AMC repository - Database operations for maintenance contracts"""

from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import AMCContract, AMCVisit


class AMCRepository:
    """Repository for AMC contract database operations"""

    @staticmethod
    def get_contract_by_id(db: Session, contract_id: int) -> Optional[AMCContract]:
        """Get a contract by ID"""
        return db.query(AMCContract).filter(AMCContract.id == contract_id).first()

    @staticmethod
    def get_contract_by_number(db: Session, contract_number: str) -> Optional[AMCContract]:
        """Get a contract by its AMC number"""
        return (
            db.query(AMCContract)
            .filter(AMCContract.contract_number == contract_number.strip().upper())
            .first()
        )

    @staticmethod
    def get_contracts_by_ids(db: Session, contract_ids: list[int]) -> list[AMCContract]:
        """Get the contracts matching the given IDs, in ID order"""
        if not contract_ids:
            return []
        return (
            db.query(AMCContract)
            .filter(AMCContract.id.in_(contract_ids))
            .order_by(AMCContract.id)
            .all()
        )

    @staticmethod
    def asset_exists(db: Session, asset_serial_number: str) -> bool:
        """Check whether any contract, in any status, covers this asset"""
        return (
            db.query(AMCContract.id)
            .filter(AMCContract.asset_serial_number == asset_serial_number)
            .first()
            is not None
        )

    @staticmethod
    def get_last_contract_number(db: Session, number_prefix: str) -> Optional[str]:
        """
        Highest contract number starting with number_prefix (e.g. "AMC-2025-").
        Sequence suffixes are zero-padded, so string order matches numeric order.
        """
        row = (
            db.query(AMCContract.contract_number)
            .filter(AMCContract.contract_number.startswith(number_prefix, autoescape=True))
            .order_by(AMCContract.contract_number.desc())
            .first()
        )
        return row[0] if row else None

    @staticmethod
    def contract_number_exists(db: Session, contract_number: str) -> bool:
        """Check for a contract with this exact number"""
        return (
            db.query(AMCContract.id)
            .filter(AMCContract.contract_number == contract_number)
            .first()
            is not None
        )

    @staticmethod
    def create_contract(db: Session, contract: AMCContract) -> AMCContract:
        """Insert a new contract together with its visit schedule"""
        db.add(contract)
        db.commit()
        db.refresh(contract)
        return contract

    @staticmethod
    def update_contract(db: Session, contract: AMCContract, **updates) -> AMCContract:
        """Update a contract with provided fields"""
        for key, value in updates.items():
            if hasattr(contract, key):
                setattr(contract, key, value)

        db.commit()
        db.refresh(contract)
        return contract

    @staticmethod
    def save(db: Session, contract: AMCContract) -> AMCContract:
        """Commit pending changes on a contract"""
        db.commit()
        db.refresh(contract)
        return contract

    @staticmethod
    def save_all(db: Session, contracts: list[AMCContract]) -> list[AMCContract]:
        """Commit pending changes on several contracts"""
        db.commit()
        for contract in contracts:
            db.refresh(contract)
        return contracts

    @staticmethod
    def delete_contract(db: Session, contract: AMCContract) -> None:
        """Hard delete a contract (its visits go with it)"""
        db.delete(contract)
        db.commit()

    @staticmethod
    def delete_contracts(db: Session, contracts: list[AMCContract]) -> int:
        """Hard delete several contracts in one transaction. Returns count deleted."""
        for contract in contracts:
            db.delete(contract)
        db.commit()
        return len(contracts)

    @staticmethod
    def get_expiring_contracts(db: Session, today: date, days: int) -> list[AMCContract]:
        """Active contracts whose end date falls within the next `days` days"""
        return (
            db.query(AMCContract)
            .filter(
                AMCContract.status == "active",
                AMCContract.end_date >= today,
                AMCContract.end_date <= today + timedelta(days=days),
            )
            .order_by(AMCContract.end_date.asc())
            .all()
        )

    @staticmethod
    def get_contracts_with_pending_visits(db: Session) -> list[AMCContract]:
        """Active contracts that still have at least one pending visit"""
        return (
            db.query(AMCContract)
            .filter(
                AMCContract.status == "active",
                AMCContract.visit_schedule.any(AMCVisit.status == "pending"),
            )
            .order_by(AMCContract.next_visit_date.asc())
            .all()
        )

    @staticmethod
    def get_active_cadence_contracts(db: Session) -> list[AMCContract]:
        """Active contracts whose next_visit_date follows the visit schedule"""
        return (
            db.query(AMCContract)
            .filter(AMCContract.status == "active", AMCContract.next_visit_policy == "cadence")
            .all()
        )

    @staticmethod
    def get_overdue_active_contracts(db: Session, today: date) -> list[AMCContract]:
        """Active contracts whose end date has already passed"""
        return (
            db.query(AMCContract)
            .filter(AMCContract.status == "active", AMCContract.end_date < today)
            .all()
        )
