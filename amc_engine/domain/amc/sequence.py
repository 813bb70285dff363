"""Sequence allocator - atomic increment-and-read counters in the store"""

import logging
from typing import Callable, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import SequenceCounter

logger = logging.getLogger(__name__)


class SequenceAllocator:
    """
    Hands out monotonically increasing integers per scope key.

    The increment and the read happen in one UPDATE ... RETURNING statement,
    so two concurrent callers can never observe the same value.
    """

    def __init__(self, db: Session):
        self.db = db

    def next_value(self, scope_key: str, seed: Optional[Callable[[], int]] = None) -> int:
        """
        Increment the counter for scope_key and return the new value.

        Args:
            scope_key: Logical counter name, e.g. "contractNumber:2025"
            seed: Called once when the counter does not exist yet; returns the
                value the counter should start from (the first value handed
                out is seed() + 1). Defaults to 0.
        """
        value = self._increment(scope_key)
        if value is not None:
            return value

        start = seed() if seed else 0
        try:
            with self.db.begin_nested():
                self.db.execute(
                    insert(SequenceCounter).values(scope_key=scope_key, value=start + 1)
                )
            logger.info(f"Created sequence counter {scope_key} starting at {start + 1}")
            return start + 1
        except IntegrityError:
            # Another request created the counter first
            value = self._increment(scope_key)
            if value is None:
                raise
            return value

    def advance_to(self, scope_key: str, floor: int) -> bool:
        """
        Raise the counter to at least `floor`; never moves it backwards.
        Returns True if the counter was moved.
        """
        result = self.db.execute(
            update(SequenceCounter)
            .where(SequenceCounter.scope_key == scope_key, SequenceCounter.value < floor)
            .values(value=floor)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.warning(f"Sequence counter {scope_key} advanced to {floor}")
        return bool(result.rowcount)

    def current_value(self, scope_key: str) -> int:
        """Read a counter without advancing it (0 if it does not exist)"""
        value = self.db.execute(
            select(SequenceCounter.value).where(SequenceCounter.scope_key == scope_key)
        ).scalar_one_or_none()
        return value or 0

    def _increment(self, scope_key: str) -> Optional[int]:
        return self.db.execute(
            update(SequenceCounter)
            .where(SequenceCounter.scope_key == scope_key)
            .values(value=SequenceCounter.value + 1)
            .returning(SequenceCounter.value)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()
