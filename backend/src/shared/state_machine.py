"""
Work item state machine.

An item is Pending, Locked by one reviewer, or in a Terminal status. The
lock fields and `status` are written together by the updates planned here,
so a terminal status never goes out with `lock = true`.

Evaluation items additionally carry per-model predictions, each moving
unevaluated → evaluated (and back, via undo) while the parent is locked by
the same reviewer.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .errors import PreconditionError
from .models import (
    Collection, WorkStatus, ReviewerId, MIN_SCORE, MAX_SCORE,
    find_prediction, is_evaluated,
)
from .utils import parse_timestamp, to_iso


@dataclass(frozen=True)
class Pending:
    pass


@dataclass(frozen=True)
class Locked:
    holder: str
    locked_at: Optional[datetime]


@dataclass(frozen=True)
class Terminal:
    status: str


def state_of(item: Dict[str, Any]):
    """Classify a stored item. Terminal status wins over stale lock fields."""
    status = item.get('status')
    if status in WorkStatus.TERMINAL:
        return Terminal(status)
    if item.get('lock'):
        return Locked(item.get('locked_by'), parse_timestamp(item.get('locked_at')))
    return Pending()


class Transition:
    """Named moves on the parent item."""
    ACQUIRE = 'acquire'
    MARK_DONE = 'mark_done'
    MARK_PROBLEMATIC = 'mark_problematic'
    COMPLETE = 'complete'


# Collections each transition applies to
_ALLOWED_COLLECTIONS = {
    Transition.ACQUIRE: {Collection.PROBAD, Collection.EVAL},
    Transition.MARK_DONE: {Collection.PROBAD},
    Transition.MARK_PROBLEMATIC: {Collection.PROBAD},
    Transition.COMPLETE: {Collection.EVAL},
}

# Metadata each terminal transition stamps, cleared again on revert
_TERMINAL_FIELDS = {
    Transition.MARK_DONE: (WorkStatus.DONE, 'completed_by', 'completed_at'),
    Transition.MARK_PROBLEMATIC: (WorkStatus.PROBLEMATIC, 'marked_problematic_by', 'marked_problematic_at'),
    Transition.COMPLETE: (WorkStatus.COMPLETED, None, None),
}

RELEASED_LOCK = {'lock': False, 'locked_by': None, 'locked_at': None}


def lock_fields(reviewer: ReviewerId, now: datetime) -> Dict[str, Any]:
    return {'lock': True, 'locked_by': reviewer.key, 'locked_at': to_iso(now)}


def holds_lock(item: Dict[str, Any], reviewer: ReviewerId) -> bool:
    state = state_of(item)
    return isinstance(state, Locked) and state.holder == reviewer.key


def plan_transition(
    item: Dict[str, Any],
    collection: str,
    transition: str,
    reviewer: ReviewerId,
    now: datetime
) -> Dict[str, Any]:
    """
    Validate a move and return the field updates that perform it.

    Acquire eligibility (lease expiry, same holder) is decided by the lease
    manager before this is called; here acquire only rejects terminal items.

    Raises:
        PreconditionError: if the move is illegal from the item's state
    """
    if collection not in _ALLOWED_COLLECTIONS.get(transition, ()):
        raise PreconditionError(f"{transition} is not valid for {collection} items")

    state = state_of(item)
    if isinstance(state, Terminal):
        raise PreconditionError(f"Item {item.get('id')} is already {state.status}")

    if transition == Transition.ACQUIRE:
        return lock_fields(reviewer, now)

    if not isinstance(state, Locked) or state.holder != reviewer.key:
        raise PreconditionError(f"Item {item.get('id')} is not locked by {reviewer.display}")

    if transition == Transition.COMPLETE:
        predictions = item.get('predictions') or []
        remaining = [p.get('model') for p in predictions if not is_evaluated(p)]
        if remaining:
            raise PreconditionError(f"{len(remaining)} predictions are not evaluated yet")

    status, by_field, at_field = _TERMINAL_FIELDS[transition]
    updates = {'status': status}
    if by_field:
        updates[by_field] = reviewer.key
        updates[at_field] = to_iso(now)
    updates.update(RELEASED_LOCK)
    return updates


def revert_updates(
    transition: str,
    reviewer: ReviewerId,
    now: datetime,
    previous: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Compensating write after a failed terminal transition: back to pending, still ours.

    Stamp fields go back to what `previous` (the item as read before the
    transition) carried, so an earlier completion stamp survives the revert.
    """
    previous = previous or {}
    _, by_field, at_field = _TERMINAL_FIELDS[transition]
    updates = {'status': WorkStatus.PENDING}
    if by_field:
        updates[by_field] = previous.get(by_field)
        updates[at_field] = previous.get(at_field)
    updates.update(lock_fields(reviewer, now))
    return updates


def _locate(item: Dict[str, Any], model_id: str, reviewer: ReviewerId) -> Tuple[List[Dict[str, Any]], int]:
    if not holds_lock(item, reviewer):
        raise PreconditionError(f"Item {item.get('id')} is not locked by {reviewer.display}")
    predictions = [dict(p) for p in item.get('predictions') or []]
    idx = find_prediction(predictions, model_id)
    if idx is None:
        raise PreconditionError(f"No prediction for model {model_id}")
    return predictions, idx


def _validate_score(name: str, value: Any) -> int:
    if value is None or value == '':
        raise PreconditionError(f"{name} score is required")
    if isinstance(value, bool):
        raise PreconditionError(f"{name} score must be a whole number")
    try:
        score = int(value)
    except (TypeError, ValueError):
        raise PreconditionError(f"{name} score must be a whole number")
    if isinstance(value, float) and value != score:
        raise PreconditionError(f"{name} score must be a whole number")
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise PreconditionError(f"{name} score must be between {MIN_SCORE} and {MAX_SCORE}")
    return score


def begin_fetch(item, model_id: str, reviewer: ReviewerId) -> List[Dict[str, Any]]:
    predictions, idx = _locate(item, model_id, reviewer)
    if is_evaluated(predictions[idx]):
        raise PreconditionError(f"Prediction for {model_id} is already evaluated")
    predictions[idx]['fetch'] = True
    return predictions


def attach_prediction(item, model_id: str, reviewer: ReviewerId, text: str) -> List[Dict[str, Any]]:
    if not text:
        raise PreconditionError(f"Model {model_id} returned no prediction")
    predictions, idx = _locate(item, model_id, reviewer)
    if is_evaluated(predictions[idx]):
        raise PreconditionError(f"Prediction for {model_id} is already evaluated")
    predictions[idx]['fetch'] = True
    predictions[idx]['prediction'] = text
    return predictions


def score_prediction(
    item: Dict[str, Any],
    model_id: str,
    reviewer: ReviewerId,
    semantic: Any,
    cultural: Any,
    now: datetime
) -> List[Dict[str, Any]]:
    """unevaluated → evaluated. The model output must have been fetched first."""
    predictions, idx = _locate(item, model_id, reviewer)
    prediction = predictions[idx]
    if prediction.get('prediction') is None:
        raise PreconditionError(f"Prediction for {model_id} has not been fetched")
    if is_evaluated(prediction):
        raise PreconditionError(f"Prediction for {model_id} is already evaluated")

    prediction.update({
        'semantic_score': _validate_score('Semantic', semantic),
        'cultural_score': _validate_score('Cultural', cultural),
        'evaluated_by': reviewer.key,
        'evaluated_at': to_iso(now),
    })
    return predictions


def unscore_prediction(item: Dict[str, Any], model_id: str, reviewer: ReviewerId) -> List[Dict[str, Any]]:
    """evaluated → unevaluated, only for the reviewer who scored it."""
    predictions, idx = _locate(item, model_id, reviewer)
    prediction = predictions[idx]
    if prediction.get('evaluated_by') != reviewer.key:
        raise PreconditionError(f"Prediction for {model_id} was not evaluated by {reviewer.display}")

    prediction.update({
        'semantic_score': None,
        'cultural_score': None,
        'evaluated_by': None,
        'evaluated_at': None,
    })
    return predictions
