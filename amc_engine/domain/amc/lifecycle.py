"""
Contract lifecycle - status transitions and the preconditions for deletion

Statuses: draft, pending, active, expired, cancelled, suspended

Note:
- 'expired' is automatic only (set by status automation when end_date passes)
- 'cancelled' is the archive state and is terminal
"""

import logging
from typing import Optional

from ... import config
from ...errors import ActiveContract, HasHistory, InvalidTransition
from ...models import CONTRACT_STATUSES, AMCContract

logger = logging.getLogger(__name__)

# Valid manual transitions
VALID_TRANSITIONS = {
    "draft": ["pending", "active", "cancelled"],
    "pending": ["draft", "active", "cancelled"],
    "active": ["suspended", "pending", "cancelled"],
    "suspended": ["active", "cancelled"],
    "expired": ["active", "cancelled"],  # Reactivated by renewal
    "cancelled": [],  # Terminal state
}

AUTOMATIC_ONLY_STATUSES = ("expired",)


def append_terms_note(terms: Optional[str], note: str) -> str:
    """Append an audit line to the contract terms"""
    return f"{terms}\n\n{note}" if terms else note


class ContractLifecycleManager:
    """Owns the contract status state machine"""

    def __init__(self, enforce_transitions: Optional[bool] = None):
        if enforce_transitions is None:
            enforce_transitions = config.ENFORCE_STATUS_TRANSITIONS
        self.enforce_transitions = enforce_transitions

    def can_transition(self, current_status: str, new_status: str) -> bool:
        """Check whether a manual move from current_status to new_status is allowed"""
        if new_status not in CONTRACT_STATUSES or new_status in AUTOMATIC_ONLY_STATUSES:
            return current_status == new_status and new_status in CONTRACT_STATUSES

        # Same status is a no-op
        if current_status == new_status:
            return True

        if not self.enforce_transitions:
            return True

        return new_status in VALID_TRANSITIONS.get(current_status, [])

    def ensure_transition(self, contract: AMCContract, new_status: str) -> None:
        if not self.can_transition(contract.status, new_status):
            logger.warning(
                f"⚠️ Rejected status change {contract.status} → {new_status} "
                f"for {contract.contract_number}"
            )
            raise InvalidTransition(
                f"Cannot change contract status from {contract.status} to {new_status}"
            )

    def activate(self, contract: AMCContract) -> AMCContract:
        self.ensure_transition(contract, "active")
        contract.status = "active"
        logger.info(f"✅ Contract {contract.contract_number} activated")
        return contract

    def archive(self, contract: AMCContract, reason: Optional[str] = None) -> AMCContract:
        """Soft delete: cancel the contract and keep its history"""
        self.ensure_transition(contract, "cancelled")
        contract.status = "cancelled"
        if reason:
            contract.terms = append_terms_note(contract.terms, f"Archived: {reason}")
        logger.info(f"🗄️ Contract {contract.contract_number} archived")
        return contract

    def set_status(
        self, contract: AMCContract, new_status: str, reason: Optional[str] = None
    ) -> AMCContract:
        """Administrative status change, with the reason kept in the terms"""
        self.ensure_transition(contract, new_status)
        previous = contract.status
        contract.status = new_status
        if reason:
            contract.terms = append_terms_note(contract.terms, f"Status Update: {reason}")
        logger.info(f"Contract {contract.contract_number} status: {previous} → {new_status}")
        return contract

    @staticmethod
    def ensure_deletable(contract: AMCContract) -> None:
        """
        Only non-active contracts with no recorded completions may be hard
        deleted; everything else has to be archived.
        """
        if contract.status == "active":
            raise ActiveContract(
                "Cannot delete active contracts. Please cancel or expire the contract first."
            )
        if (contract.completed_visit_count or 0) > 0:
            raise HasHistory(
                "Cannot delete contracts with completed visits. Please archive instead."
            )

    @staticmethod
    def ensure_batch_deletable(contracts: list[AMCContract]) -> None:
        """Check every member of a batch before any of them is deleted"""
        active = [c for c in contracts if c.status == "active"]
        if active:
            raise ActiveContract(
                f"Cannot delete {len(active)} active contracts. "
                "Please cancel or expire them first."
            )

        with_history = [c for c in contracts if (c.completed_visit_count or 0) > 0]
        if with_history:
            raise HasHistory(
                f"Cannot delete {len(with_history)} contracts with completed visits. "
                "Please archive instead."
            )
