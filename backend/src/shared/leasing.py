"""
Lease manager: hands each reviewer one pending, unclaimed work item.

A lease is a soft lock recorded on the item itself (`lock`, `locked_by`,
`locked_at`). There is no sweeper: an expired lease stays on the row until
another reviewer's candidate scan finds it and takes it over.

The scan and the claim write are separate requests, so two reviewers can
select the same candidate and both claim it. That double assignment is
accepted; it is isolated behind `LeaseStore.claim` so a conditional write
can replace it without touching callers.
"""
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from .config import config
from .errors import (
    StoreError, NoCandidatesError, AllLockedError, LockAcquisitionError,
)
from .logging import logger
from .models import Collection, WorkStatus, ReviewerId
from .state_machine import Transition, plan_transition
from .store import DocumentStore, EQ, NE
from .utils import now_utc, parse_timestamp


class LeasePolicy:
    """Per-collection lease settings."""

    def __init__(self, timeout: timedelta, resume_held: bool = False):
        self.timeout = timeout
        # Return the reviewer's unfinished item before scanning for a new one
        self.resume_held = resume_held


DEFAULT_POLICIES = {
    Collection.PROBAD: LeasePolicy(timedelta(hours=config.REVIEW_LOCK_TIMEOUT_HOURS)),
    Collection.EVAL: LeasePolicy(timedelta(hours=config.EVAL_LOCK_TIMEOUT_HOURS), resume_held=True),
}


def should_skip(
    candidate: Dict[str, Any],
    reviewer: Union[str, ReviewerId],
    now: datetime,
    timeout: timedelta
) -> bool:
    """
    Decide whether a pending candidate is unavailable to `reviewer`.

    Unlocked items and items already held by the reviewer are always
    available. A lock held by someone else blocks until `timeout` has
    elapsed since `locked_at`; a lock without `locked_at` always blocks.
    """
    if not candidate.get('lock'):
        return False

    reviewer = ReviewerId.of(reviewer)
    if candidate.get('locked_by') == reviewer.key:
        return False

    locked_at = parse_timestamp(candidate.get('locked_at'))
    if locked_at is None:
        return True

    return now - locked_at < timeout


class LeaseStore:
    """Reads and writes the lease fields through a document store."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def scan_candidates(self, collection: str, limit: int) -> List[Dict[str, Any]]:
        # Ordering on the filtered field is degenerate; it only satisfies the index
        return self.store.query(
            collection,
            filters=[('status', EQ, WorkStatus.PENDING)],
            order_by='status',
            limit=limit
        )

    def find_held(self, collection: str, reviewer: ReviewerId) -> Optional[Dict[str, Any]]:
        held = self.store.query(
            collection,
            filters=[('locked_by', EQ, reviewer.key), ('status', NE, WorkStatus.COMPLETED)],
            limit=1
        )
        return held[0] if held else None

    def claim(self, collection: str, item_id: str, lock: Dict[str, Any]) -> None:
        """Unconditional write of the lock fields: last writer wins."""
        self.store.update_fields(collection, item_id, lock)


class LeaseManager:
    """Finds and claims the next available item in a collection."""

    def __init__(
        self,
        store: DocumentStore,
        policies: Dict[str, LeasePolicy] = None,
        clock: Callable[[], datetime] = now_utc,
        scan_limit: int = None,
        lease_store: LeaseStore = None
    ):
        self.leases = lease_store or LeaseStore(store)
        self.policies = policies or DEFAULT_POLICIES
        self.clock = clock
        self.scan_limit = scan_limit or config.CANDIDATE_SCAN_LIMIT

    def policy(self, collection: str) -> LeasePolicy:
        try:
            return self.policies[collection]
        except KeyError:
            raise ValueError(f"No lease policy for collection {collection}")

    def acquire(self, collection: str, reviewer: Union[str, ReviewerId]) -> Dict[str, Any]:
        """
        Claim one eligible item for `reviewer` and return it with its new lock fields.

        Raises:
            NoCandidatesError: no pending items at all
            AllLockedError: every candidate is actively leased by someone else
            LockAcquisitionError: the store failed during the scan or the claim
        """
        reviewer = ReviewerId.of(reviewer)
        policy = self.policy(collection)

        try:
            if policy.resume_held:
                held = self.leases.find_held(collection, reviewer)
                if held is not None:
                    logger.info(f"Resuming {collection}/{held['id']} for {reviewer.key}")
                    return held

            candidates = self.leases.scan_candidates(collection, self.scan_limit)
        except StoreError as e:
            logger.warning(f"Candidate scan on {collection} failed: {e}")
            raise LockAcquisitionError(f"Could not read {collection} candidates") from e

        if not candidates:
            raise NoCandidatesError(f"No pending {collection} items")

        now = self.clock()
        selected = next(
            (c for c in candidates if not should_skip(c, reviewer, now, policy.timeout)),
            None
        )
        if selected is None:
            raise AllLockedError(
                f"All {len(candidates)} pending {collection} items are locked by other reviewers"
            )

        lock = plan_transition(selected, collection, Transition.ACQUIRE, reviewer, now)
        try:
            self.leases.claim(collection, selected['id'], lock)
        except StoreError as e:
            logger.error(f"Failed to lock {collection}/{selected['id']} for {reviewer.key}: {e}")
            raise LockAcquisitionError(f"Failed to lock {selected['id']}") from e

        if selected.get('lock') and selected.get('locked_by') != reviewer.key:
            logger.info(
                f"Reclaimed expired lease on {collection}/{selected['id']} "
                f"from {selected.get('locked_by')}"
            )
        logger.info(f"Locked {collection}/{selected['id']} for {reviewer.key}")
        return {**selected, **lock}
