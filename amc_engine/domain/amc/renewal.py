"""
Contract renewal.

Two distinct rules are kept on purpose:
- renew(): the caller supplies the new window, value and quota
- bulk_renew(): each contract is extended by its own original duration,
  starting on its current end date

Both set next_visit_date a fixed number of days after the new start date,
independently of the visit cadence.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional

from ... import config
from ...errors import AMCError, InvalidContractTerms
from ...models import AMCContract
from .lifecycle import ContractLifecycleManager

logger = logging.getLogger(__name__)


@dataclass
class PriceAdjustment:
    kind: str  # percentage, fixed
    value: float
    reason: Optional[str] = None

    def apply(self, current_value: float) -> float:
        if self.kind == "percentage":
            return current_value * (1 + self.value / 100)
        if self.kind == "fixed":
            return current_value + self.value
        raise InvalidContractTerms(f"Unknown price adjustment type: {self.kind}")


@dataclass
class RenewalFailure:
    contract_id: int
    contract_number: str
    reason: str


@dataclass
class BulkRenewal:
    renewed: list[AMCContract] = field(default_factory=list)
    failed: list[RenewalFailure] = field(default_factory=list)


def renewal_next_visit_date(new_start: date) -> date:
    return new_start + timedelta(days=config.RENEWAL_NEXT_VISIT_DAYS)


def merge_products(
    current: Iterable[str], add: Iterable[str] = (), remove: Iterable[str] = ()
) -> list[str]:
    """Union then difference, keeping first-seen order"""
    removed = set(remove or ())
    merged = []
    for ref in list(current or []) + list(add or []):
        if ref not in merged and ref not in removed:
            merged.append(ref)
    return merged


class RenewalEngine:
    """Extends or resets contract terms"""

    def __init__(self, lifecycle: Optional[ContractLifecycleManager] = None):
        self.lifecycle = lifecycle or ContractLifecycleManager()

    def renew(
        self,
        contract: AMCContract,
        new_start: date,
        new_end: date,
        new_value: Optional[float],
        new_quota: Optional[int],
        price_adjustment: Optional[PriceAdjustment] = None,
        terms_update: Optional[str] = None,
        add_products: Iterable[str] = (),
        remove_products: Iterable[str] = (),
    ) -> AMCContract:
        """
        Renew a contract with explicit terms.

        A price adjustment, when given, is applied to the current value and
        overrides new_value. Completed visits are reset to 0.
        """
        if price_adjustment is not None:
            final_value = price_adjustment.apply(contract.contract_value or 0)
        elif new_value is not None:
            final_value = new_value
        else:
            final_value = contract.contract_value or 0

        quota = new_quota if new_quota is not None else contract.scheduled_visit_quota
        self._validate_terms(new_start, new_end, final_value, quota)
        self.lifecycle.ensure_transition(contract, "active")

        contract.start_date = new_start
        contract.end_date = new_end
        contract.contract_value = final_value
        contract.scheduled_visit_quota = quota
        contract.product_refs = merge_products(
            contract.product_refs, add_products, remove_products
        )
        self._reset(contract, new_start, terms_update)

        logger.info(
            f"🔁 Renewed {contract.contract_number}: {new_start} → {new_end}, value {final_value:.2f}"
        )
        return contract

    def renew_by_extension(
        self,
        contract: AMCContract,
        price_adjustment: Optional[PriceAdjustment] = None,
        terms_update: Optional[str] = None,
    ) -> AMCContract:
        """Extend a contract by its own duration, starting where it ends now"""
        duration = contract.end_date - contract.start_date
        new_start = contract.end_date
        new_end = new_start + duration

        current_value = contract.contract_value or 0
        final_value = price_adjustment.apply(current_value) if price_adjustment else current_value

        self._validate_terms(new_start, new_end, final_value, contract.scheduled_visit_quota)
        self.lifecycle.ensure_transition(contract, "active")

        contract.start_date = new_start
        contract.end_date = new_end
        contract.contract_value = final_value
        self._reset(contract, new_start, terms_update)
        return contract

    def bulk_renew(
        self,
        contracts: list[AMCContract],
        price_adjustment: Optional[PriceAdjustment] = None,
        terms_update: Optional[str] = None,
    ) -> BulkRenewal:
        """
        Renew each contract by extension. Best effort: a contract that fails
        validation is reported and skipped, the others are still renewed.
        """
        result = BulkRenewal()
        for contract in contracts:
            try:
                self.renew_by_extension(contract, price_adjustment, terms_update)
            except AMCError as e:
                logger.warning(f"⚠️ Skipped renewal of {contract.contract_number}: {e.message}")
                result.failed.append(
                    RenewalFailure(
                        contract_id=contract.id,
                        contract_number=contract.contract_number,
                        reason=e.message,
                    )
                )
                continue
            result.renewed.append(contract)

        logger.info(
            f"🔁 Bulk renewal: {len(result.renewed)} renewed, {len(result.failed)} skipped"
        )
        return result

    @staticmethod
    def _validate_terms(start: date, end: date, value: float, quota: int) -> None:
        if end <= start:
            raise InvalidContractTerms("End date must be after start date")
        if value < 0:
            raise InvalidContractTerms("Contract value cannot be negative")
        if quota is None or quota < 1:
            raise InvalidContractTerms("At least 1 visit must be scheduled")

    @staticmethod
    def _reset(contract: AMCContract, new_start: date, terms_update: Optional[str]) -> None:
        contract.status = "active"
        contract.completed_visit_count = 0
        contract.next_visit_date = renewal_next_visit_date(new_start)
        contract.next_visit_policy = "renewal"
        if terms_update:
            contract.terms = terms_update
