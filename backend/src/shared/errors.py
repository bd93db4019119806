"""
Typed errors raised by the lease manager and the completion handlers.
Store-level faults are converted to one of these before reaching callers.
"""


class WorkflowError(Exception):
    """Base class for every error surfaced by the review pipeline."""
    status_code = 500


class StoreError(WorkflowError):
    """The document store rejected or failed a read/write."""


class DocumentNotFoundError(StoreError):
    """The target document does not exist."""
    status_code = 404


class NoCandidatesError(WorkflowError):
    """No pending items exist in the collection at all."""
    status_code = 404


class AllLockedError(WorkflowError):
    """Pending items exist but every one is actively leased by someone else."""
    status_code = 409


class LockAcquisitionError(WorkflowError):
    """Claiming the selected candidate failed at the store level."""
    status_code = 503


class TransitionError(WorkflowError):
    """
    A terminal-state or field write failed mid-flight.

    `reverted` tells whether the compensating pending/locked write landed.
    When it did not, the item stays stale until its lease times out.
    """

    def __init__(self, message: str, reverted: bool = False):
        super().__init__(message)
        self.reverted = reverted


class PredictionError(WorkflowError):
    """The external model endpoint failed or returned no answer."""
    status_code = 502


class PreconditionError(WorkflowError):
    """The requested move is illegal for the item's current state. Nothing was written."""
    status_code = 400


class AuthenticationError(WorkflowError):
    """No authenticated identity on the request."""
    status_code = 401
