"""
Shared machinery for completion handlers.

A terminal transition is: validate, write status + lock release in one
update, feed the ledger, then acquire the next item for the same reviewer.
A failed write triggers a best-effort revert to pending-and-still-locked;
a failed ledger update does not undo the transition and is reported on the
result instead.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Union

from .errors import (
    WorkflowError, StoreError, TransitionError, PreconditionError,
    NoCandidatesError, AllLockedError, LockAcquisitionError,
)
from .leasing import LeaseManager
from .ledger import ContributionLedger
from .logging import logger
from .models import ReviewerId
from .state_machine import plan_transition, revert_updates
from .store import DocumentStore
from .utils import now_utc


@dataclass
class TransitionResult:
    """Outcome of a completion handler whose primary write succeeded."""
    item: Dict[str, Any]
    ledger_error: Optional[Exception] = None
    next_item: Optional[Dict[str, Any]] = None
    next_error: Optional[WorkflowError] = None

    @property
    def ledger_ok(self) -> bool:
        return self.ledger_error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'item': self.item,
            'ledgerUpdated': self.ledger_ok,
            'next': self.next_item,
            'nextError': type(self.next_error).__name__ if self.next_error else None,
        }


class CompletionHandler:
    """Base for the review and evaluation workflows over one collection."""

    collection = None

    def __init__(
        self,
        store: DocumentStore,
        leases: LeaseManager = None,
        ledger: ContributionLedger = None,
        clock: Callable[[], datetime] = now_utc
    ):
        self.store = store
        self.clock = clock
        self.leases = leases or LeaseManager(store, clock=clock)
        self.ledger = ledger or self.default_ledger(store)

    def default_ledger(self, store: DocumentStore) -> ContributionLedger:
        raise NotImplementedError

    def acquire(self, reviewer: Union[str, ReviewerId]) -> Dict[str, Any]:
        return self.leases.acquire(self.collection, reviewer)

    def analytics(self) -> Optional[Dict[str, Any]]:
        return self.ledger.snapshot()

    @staticmethod
    def _require(item: Optional[Dict[str, Any]], reviewer: Union[str, ReviewerId, None]) -> ReviewerId:
        if not item or not item.get('id'):
            raise PreconditionError('Document is required')
        if reviewer is None:
            raise PreconditionError('Reviewer identity is required')
        return ReviewerId.of(reviewer)

    def _write(self, item_id: str, fields: Dict[str, Any], action: str) -> None:
        """Single non-terminal write; nothing to compensate if it fails."""
        try:
            self.store.update_fields(self.collection, item_id, fields)
        except StoreError as e:
            logger.error(f"Failed to {action} {self.collection}/{item_id}: {e}")
            raise TransitionError(f"Failed to {action}: {e}") from e

    def _terminal(
        self,
        item: Dict[str, Any],
        transition: str,
        reviewer: ReviewerId,
        record: Callable[[], None],
        extra_fields: Dict[str, Any] = None
    ) -> TransitionResult:
        now = self.clock()
        planned = {**item, **(extra_fields or {})}
        updates = {**(extra_fields or {}), **plan_transition(planned, self.collection, transition, reviewer, now)}

        try:
            self.store.update_fields(self.collection, item['id'], updates)
        except StoreError as e:
            logger.error(f"{transition} on {self.collection}/{item['id']} failed: {e}")
            reverted = self._revert(item, transition, reviewer)
            raise TransitionError(f"Failed to {transition.replace('_', ' ')}: {e}", reverted=reverted) from e

        logger.info(f"{self.collection}/{item['id']} {updates['status']} by {reviewer.key}")
        result = TransitionResult({**item, **updates}, ledger_error=self._record(record))
        return self._chain(result, reviewer)

    def _revert(self, item: Dict[str, Any], transition: str, reviewer: ReviewerId) -> bool:
        item_id = item['id']
        try:
            self.store.update_fields(
                self.collection, item_id, revert_updates(transition, reviewer, self.clock(), previous=item)
            )
        except StoreError as e:
            logger.error(f"Failed to revert {self.collection}/{item_id}; left for lease timeout: {e}")
            return False
        logger.info(f"Reverted {self.collection}/{item_id} to pending for {reviewer.key}")
        return True

    def _record(self, record: Callable[[], None]) -> Optional[Exception]:
        try:
            record()
        except StoreError as e:
            logger.warning(f"Ledger update failed for {self.collection}: {e}")
            return e
        return None

    def _chain(self, result: TransitionResult, reviewer: ReviewerId) -> TransitionResult:
        try:
            result.next_item = self.acquire(reviewer)
        except (NoCandidatesError, AllLockedError, LockAcquisitionError) as e:
            logger.info(f"No next {self.collection} item for {reviewer.key}: {e}")
            result.next_error = e
        return result
