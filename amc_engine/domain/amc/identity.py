"""
Contract identity - mints AMC numbers and guards the one-contract-per-asset rule
"""

import logging
import re
from typing import Optional

from sqlalchemy.orm import Session

from ... import config
from ...errors import AllocationExhausted, DuplicateAsset
from .repository import AMCRepository
from .sequence import SequenceAllocator

logger = logging.getLogger(__name__)

MAX_SEQUENCE = 9999  # Four digits in AMC-<year>-NNNN


def format_contract_number(year: int, sequence: int, prefix: Optional[str] = None) -> str:
    """Render AMC-<year>-<zero-padded sequence>"""
    return f"{prefix or config.CONTRACT_NUMBER_PREFIX}-{year}-{sequence:04d}"


def parse_sequence(contract_number: str, prefix: Optional[str] = None) -> int:
    """Extract the sequence suffix from a contract number (0 if unparseable)"""
    prefix = re.escape(prefix or config.CONTRACT_NUMBER_PREFIX)
    match = re.match(rf"^{prefix}-\d{{4}}-(\d+)$", contract_number or "")
    return int(match.group(1)) if match else 0


class ContractIdentityService:
    """
    Allocates contract numbers.

    Two strategies are available:
    - "sequence": atomic per-year counter (SequenceAllocator). A number found
      taken (minted by probing or inserted directly) resyncs the counter past
      the highest existing number for the year
    - "probe": read the highest number for the year, then try candidates
      upward, giving up after max_attempts collisions. Concurrent creations in
      the same year can still compute the same candidate; the unique index on
      contract_number turns that into an error at insert time.
    """

    def __init__(
        self,
        db: Session,
        strategy: Optional[str] = None,
        max_attempts: Optional[int] = None,
        prefix: Optional[str] = None,
    ):
        self.db = db
        self.repo = AMCRepository()
        self.sequences = SequenceAllocator(db)
        self.strategy = strategy or config.CONTRACT_NUMBER_STRATEGY
        self.max_attempts = max_attempts or config.CONTRACT_NUMBER_MAX_ATTEMPTS
        self.prefix = prefix or config.CONTRACT_NUMBER_PREFIX

        if self.strategy not in ("sequence", "probe"):
            raise ValueError(f"Unknown contract number strategy: {self.strategy}")

    def allocate(self, year: int, asset_serial_number: str) -> str:
        """
        Return a fresh contract number for `year`.

        Raises:
            DuplicateAsset: a contract already covers the asset
            AllocationExhausted: no free number could be found
        """
        self.ensure_asset_available(asset_serial_number)

        if self.strategy == "sequence":
            contract_number = self._allocate_from_sequence(year)
        else:
            contract_number = self._allocate_by_probing(year)

        logger.info(f"🔢 Allocated {contract_number} for asset {asset_serial_number}")
        return contract_number

    def ensure_asset_available(self, asset_serial_number: str) -> None:
        if self.repo.asset_exists(self.db, asset_serial_number):
            logger.warning(f"⚠️ Asset {asset_serial_number} is already under contract")
            raise DuplicateAsset(
                f"An AMC contract already exists for engine serial number {asset_serial_number}"
            )

    def _year_prefix(self, year: int) -> str:
        return f"{self.prefix}-{year}-"

    def _last_sequence(self, year: int) -> int:
        last_number = self.repo.get_last_contract_number(self.db, self._year_prefix(year))
        return parse_sequence(last_number, self.prefix) if last_number else 0

    def _allocate_from_sequence(self, year: int) -> str:
        scope_key = f"contractNumber:{year}"
        sequence = self.sequences.next_value(scope_key, seed=lambda: self._last_sequence(year))
        contract_number = self._checked_number(year, sequence)

        if self.repo.contract_number_exists(self.db, contract_number):
            # Minted outside the counter (probing strategy, imports): skip past the highest number
            logger.warning(f"Contract number {contract_number} already taken, resyncing counter")
            self.sequences.advance_to(scope_key, self._last_sequence(year))
            sequence = self.sequences.next_value(scope_key)
            contract_number = self._checked_number(year, sequence)

        return contract_number

    def _checked_number(self, year: int, sequence: int) -> str:
        if sequence > MAX_SEQUENCE:
            raise AllocationExhausted(f"Contract numbers for {year} are exhausted")
        return format_contract_number(year, sequence, self.prefix)

    def _allocate_by_probing(self, year: int) -> str:
        candidate = self._last_sequence(year) + 1

        for attempt in range(1, self.max_attempts + 1):
            if candidate > MAX_SEQUENCE:
                break
            contract_number = format_contract_number(year, candidate, self.prefix)
            if not self.repo.contract_number_exists(self.db, contract_number):
                return contract_number
            logger.warning(f"Contract number {contract_number} taken (attempt {attempt})")
            candidate += 1

        raise AllocationExhausted(
            f"Could not allocate a contract number for {year} after {self.max_attempts} attempts"
        )
