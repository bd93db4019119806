"""
Contribution ledger - per-collection throughput counters.

Each ledger is one document in the analytics collection holding flat
counters plus a `contribution` map keyed by sanitized reviewer id. All
writes go through the store's atomic increment, so concurrent reviewers
never lose counts.
"""
from typing import Any, Dict, Optional, Union

from .config import config
from .errors import DocumentNotFoundError
from .logging import logger
from .models import Collection, LedgerField, ReviewerId
from .store import DocumentStore


class ContributionLedger:

    def __init__(self, store: DocumentStore, doc_id: str):
        self.store = store
        self.doc_id = doc_id

    def _increment(self, field_path: str, delta: int = 1) -> None:
        self.store.increment_field(Collection.ANALYTICS, self.doc_id, field_path, delta)

    def credit(self, reviewer: Union[str, ReviewerId], delta: int = 1) -> None:
        reviewer = ReviewerId.of(reviewer)
        self._increment(f"{LedgerField.CONTRIBUTION}.{reviewer.key}", delta)

    def record_done(self, reviewer: Union[str, ReviewerId], was_previously_done: bool = False) -> None:
        """
        Count a finished review and credit the reviewer.
        Items that were already done before are credited but not recounted.
        """
        if not was_previously_done:
            self._increment(LedgerField.DONE)
        self.credit(reviewer)
        logger.info(f"Ledger {self.doc_id}: done recorded for {ReviewerId.of(reviewer).key}")

    def record_problematic(self) -> None:
        self._increment(LedgerField.PROBLEMATIC)

    def record_edit(self) -> None:
        self._increment(LedgerField.EDITED)

    def record_completed(self, reviewer: Union[str, ReviewerId]) -> None:
        self._increment(LedgerField.COMPLETED)
        self.credit(reviewer)

    def snapshot(self) -> Optional[Dict[str, Any]]:
        """Current counters, or None before anything was recorded."""
        try:
            return self.store.get_by_id(Collection.ANALYTICS, self.doc_id)
        except DocumentNotFoundError:
            logger.info(f"Ledger document {self.doc_id} does not exist yet")
            return None


def review_ledger(store: DocumentStore) -> ContributionLedger:
    return ContributionLedger(store, config.REVIEW_ANALYTICS_DOC_ID)


def evaluation_ledger(store: DocumentStore) -> ContributionLedger:
    return ContributionLedger(store, config.EVAL_ANALYTICS_DOC_ID)
