"""
Evaluation flow: scoring model predictions for spawned evaluation items,
plus curation of the evaluation queue.
"""
from typing import Any, Callable, Dict, List, Optional, Union

from .completion import CompletionHandler, TransitionResult
from .errors import StoreError, TransitionError, PreconditionError, PredictionError
from .ledger import ContributionLedger, evaluation_ledger
from .logging import logger
from .models import (
    Collection, ReviewerId, is_evaluated, prediction_started,
)
from .state_machine import (
    Transition, begin_fetch, attach_prediction, score_prediction, unscore_prediction,
)
from .store import EQ, get_path
from .utils import to_iso

# (model_id, proverb_text) -> model output
Predictor = Callable[[str, Optional[str]], str]


def _scores(scores: Optional[Dict[str, Any]]):
    scores = scores or {}
    return scores.get('semantic'), scores.get('cultural')


class EvaluationWorkflow(CompletionHandler):
    """Acquire, score and complete evaluation items."""

    collection = Collection.EVAL

    def default_ledger(self, store) -> ContributionLedger:
        return evaluation_ledger(store)

    def fetch_prediction(
        self,
        item: Dict[str, Any],
        model_id: str,
        reviewer: Union[str, ReviewerId],
        predictor: Predictor
    ) -> Dict[str, Any]:
        """
        Ask one model for its reading of the proverb and store the answer.

        `fetch` is persisted before the call, so a failed call still keeps
        the item out of the curation queue.
        """
        reviewer = self._require(item, reviewer)
        predictions = begin_fetch(item, model_id, reviewer)
        self._write(item['id'], {'predictions': predictions}, 'start fetch on')
        item = {**item, 'predictions': predictions}

        try:
            text = predictor(model_id, get_path(item, 'proverb.text'))
        except PredictionError:
            raise
        except Exception as e:
            logger.error(f"Prediction call to {model_id} for {item['id']} failed: {e}")
            raise TransitionError(f"Failed to fetch prediction from {model_id}: {e}") from e

        predictions = attach_prediction(item, model_id, reviewer, text)
        self._write(item['id'], {'predictions': predictions}, 'store prediction on')
        logger.info(f"Stored {model_id} prediction on {self.collection}/{item['id']}")
        return {**item, 'predictions': predictions}

    def save_prediction_score(
        self,
        item: Dict[str, Any],
        model_id: str,
        reviewer: Union[str, ReviewerId],
        scores: Dict[str, Any]
    ) -> Dict[str, Any]:
        reviewer = self._require(item, reviewer)
        semantic, cultural = _scores(scores)
        predictions = score_prediction(item, model_id, reviewer, semantic, cultural, self.clock())
        self._write(item['id'], {'predictions': predictions}, 'save score on')
        logger.info(f"{reviewer.key} scored {model_id} on {self.collection}/{item['id']}")
        return {**item, 'predictions': predictions}

    def undo_prediction_score(
        self,
        item: Dict[str, Any],
        model_id: str,
        reviewer: Union[str, ReviewerId]
    ) -> Dict[str, Any]:
        reviewer = self._require(item, reviewer)
        predictions = unscore_prediction(item, model_id, reviewer)
        self._write(item['id'], {'predictions': predictions}, 'undo score on')
        logger.info(f"{reviewer.key} cleared {model_id} score on {self.collection}/{item['id']}")
        return {**item, 'predictions': predictions}

    def submit_all_evaluations(
        self,
        item: Dict[str, Any],
        reviewer: Union[str, ReviewerId],
        scores: Dict[str, Dict[str, Any]]
    ) -> TransitionResult:
        """
        Score every remaining prediction from `scores` (model id -> scores)
        and complete the item. Fails unless every prediction ends up evaluated.
        """
        reviewer = self._require(item, reviewer)
        now = self.clock()
        working = dict(item)
        for prediction in item.get('predictions') or []:
            model_id = prediction.get('model')
            if is_evaluated(prediction) or model_id not in (scores or {}):
                continue
            semantic, cultural = _scores(scores[model_id])
            working['predictions'] = score_prediction(working, model_id, reviewer, semantic, cultural, now)

        return self._terminal(
            item, Transition.COMPLETE, reviewer,
            lambda: self.ledger.record_completed(reviewer),
            extra_fields={'predictions': working.get('predictions') or []}
        )

    def list_curation_candidates(self) -> List[Dict[str, Any]]:
        """Evaluation items nobody has started on and nobody has chosen to keep."""
        items = self.store.query(self.collection)
        return [
            item for item in items
            if not item.get('kept')
            and not any(prediction_started(p) for p in item.get('predictions') or [])
        ]

    def keep_in_queue(self, item: Dict[str, Any], reviewer: Union[str, ReviewerId]) -> Dict[str, Any]:
        reviewer = self._require(item, reviewer)
        updates = {'kept': True, 'kept_at': to_iso(self.clock()), 'kept_by': reviewer.key}
        self._write(item['id'], updates, 'keep')
        return {**item, **updates}

    def remove_from_queue(self, item: Dict[str, Any], reviewer: Union[str, ReviewerId]) -> Dict[str, Any]:
        """
        Delete an unstarted evaluation item and release its source for re-sending.
        Resetting the source is fire-and-forget.
        """
        reviewer = self._require(item, reviewer)
        started = [p.get('model') for p in item.get('predictions') or [] if prediction_started(p)]
        if started:
            raise PreconditionError(f"Cannot remove {item['id']}: {len(started)} predictions already started")

        try:
            self.store.delete_document(self.collection, item['id'])
        except StoreError as e:
            logger.error(f"Failed to remove {self.collection}/{item['id']}: {e}")
            raise TransitionError(f"Failed to remove: {e}") from e
        logger.info(f"{reviewer.key} removed {self.collection}/{item['id']} from evaluation")

        source_id = self._reset_source(item)
        return {'removed': item['id'], 'sourceId': source_id, 'sourceReset': source_id is not None}

    def _reset_source(self, item: Dict[str, Any]) -> Optional[str]:
        source_id = item.get('probad_id')
        try:
            if not source_id:
                text = get_path(item, 'proverb.text')
                if not text:
                    return None
                matches = self.store.query(Collection.PROBAD, [('proverb.text', EQ, text)], limit=1)
                if not matches:
                    logger.warning(f"No source item found for {self.collection}/{item['id']}")
                    return None
                source_id = matches[0]['id']
            self.store.update_fields(Collection.PROBAD, source_id, {'taken': False})
        except StoreError as e:
            logger.warning(f"Failed to reset taken on source of {item['id']}: {e}")
            return None
        return source_id

    def evaluation_stats(self) -> Dict[str, int]:
        """Count items by how many predictions carry a semantic score."""
        items = self.store.query(self.collection)

        completed = in_progress = 0
        for item in items:
            predictions = item.get('predictions') or []
            scored = len([p for p in predictions if p.get('semantic_score') is not None])
            if predictions and scored == len(predictions):
                completed += 1
            elif scored:
                in_progress += 1

        return {
            'total': len(items),
            'completed': completed,
            'inProgress': in_progress,
            'pending': len(items) - completed - in_progress,
        }
