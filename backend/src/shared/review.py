"""
Review flow over the primary proverb corpus.
"""
from typing import Any, Dict, Union

from .completion import CompletionHandler, TransitionResult
from .errors import StoreError, TransitionError, PreconditionError
from .ledger import ContributionLedger, review_ledger
from .logging import logger
from .models import Collection, WorkStatus, ReviewerId, MODEL_IDS, new_prediction
from .state_machine import Transition

# Payload sections the edit form may overwrite
EDITABLE_FIELDS = ('proverb', 'annotations', 'linguistic_features', 'cross_cultural')

# Workflow bookkeeping that never travels to a spawned evaluation item
_NOT_CLONED = {
    'id', 'status', 'lock', 'locked_by', 'locked_at', 'taken',
    'completed_by', 'completed_at', 'marked_problematic_by', 'marked_problematic_at',
}


def build_evaluation_item(source: Dict[str, Any]) -> Dict[str, Any]:
    """Evaluation task for a corpus item: its payload plus one sub-task per model."""
    fields = {k: v for k, v in source.items() if k not in _NOT_CLONED}
    fields.update({
        'probad_id': source['id'],
        'predictions': [new_prediction(model) for model in MODEL_IDS],
        'status': WorkStatus.PENDING,
        'lock': False,
    })
    return fields


class ReviewWorkflow(CompletionHandler):
    """Acquire, finish and spawn evaluations for corpus items."""

    collection = Collection.PROBAD

    def default_ledger(self, store) -> ContributionLedger:
        return review_ledger(store)

    def mark_done(self, item: Dict[str, Any], reviewer: Union[str, ReviewerId]) -> TransitionResult:
        reviewer = self._require(item, reviewer)
        # An edited item returns to pending but keeps its earlier completion stamp
        was_previously_done = item.get('completed_by') is not None
        return self._terminal(
            item, Transition.MARK_DONE, reviewer,
            lambda: self.ledger.record_done(reviewer, was_previously_done)
        )

    def mark_problematic(self, item: Dict[str, Any], reviewer: Union[str, ReviewerId]) -> TransitionResult:
        reviewer = self._require(item, reviewer)
        return self._terminal(item, Transition.MARK_PROBLEMATIC, reviewer, self.ledger.record_problematic)

    def send_to_evaluation(self, item: Dict[str, Any]) -> TransitionResult:
        """
        Spawn an evaluation task from a corpus item and flag the source as taken.

        The `taken` check reads the caller's copy of the item, so two
        concurrent senders can still both spawn.
        """
        if not item or not item.get('id'):
            raise PreconditionError('Document is required')
        if item.get('taken'):
            raise PreconditionError(f"Item {item['id']} was already sent to evaluation")

        try:
            eval_id = self.store.create_document(Collection.EVAL, build_evaluation_item(item))
        except StoreError as e:
            logger.error(f"Failed to create evaluation item for {item['id']}: {e}")
            raise TransitionError(f"Failed to send to evaluation: {e}") from e

        try:
            self.store.update_fields(self.collection, item['id'], {'taken': True})
        except StoreError as e:
            logger.error(f"Failed to mark {item['id']} as taken: {e}")
            raise TransitionError(
                f"Failed to send to evaluation: {e}",
                reverted=self._discard_spawned(eval_id)
            ) from e

        logger.info(f"{self.collection}/{item['id']} sent to evaluation as eval/{eval_id}")
        return TransitionResult({**item, 'taken': True, 'eval_id': eval_id})

    def _discard_spawned(self, eval_id: str) -> bool:
        try:
            self.store.delete_document(Collection.EVAL, eval_id)
        except StoreError as e:
            logger.error(f"Orphaned evaluation item eval/{eval_id}: {e}")
            return False
        return True

    def save_edits(
        self,
        item_id: str,
        reviewer: Union[str, ReviewerId],
        payload: Dict[str, Any]
    ) -> TransitionResult:
        """Overwrite payload sections and put the item back in the pending pool."""
        reviewer = self._require({'id': item_id}, reviewer)
        updates = {k: payload[k] for k in EDITABLE_FIELDS if k in (payload or {})}
        if not updates:
            raise PreconditionError(f"Nothing to update; editable fields are {', '.join(EDITABLE_FIELDS)}")
        updates['status'] = WorkStatus.PENDING

        self._write(item_id, updates, 'save edits to')
        logger.info(f"{self.collection}/{item_id} edited by {reviewer.key}")
        return TransitionResult({'id': item_id, **updates}, ledger_error=self._record(self.ledger.record_edit))
