"""
Data models and status constants for the proverb review pipeline.
Based on the work item lifecycle: Pending → Locked → Done/Problematic → Taken → Evaluated
"""
from typing import Any, Dict, List, Optional, Union

from .errors import PreconditionError


class Collection:
    """Logical collection names."""
    PROBAD = 'probad'        # primary proverb corpus
    EVAL = 'eval'            # evaluation tasks spawned from the corpus
    ANALYTICS = 'analytics'  # contribution ledger documents


class WorkStatus:
    """Work item statuses. Locking is tracked separately in the lock fields."""
    PENDING = 'pending'
    DONE = 'done'
    PROBLEMATIC = 'problematic'
    COMPLETED = 'completed'

    TERMINAL = frozenset({DONE, PROBLEMATIC, COMPLETED})


class LedgerField:
    """Counter fields kept on the ledger documents."""
    DONE = 'done'
    PROBLEMATIC = 'problematic'
    EDITED = 'edited'
    COMPLETED = 'completed'
    CONTRIBUTION = 'contribution'


# Models every evaluation item is scored against, in display order.
MODEL_IDS = [
    'openai/gpt-4o',
    'anthropic/claude-sonnet-4.5',
    'google/gemini-2.5-flash',
    'mistralai/mistral-large',
    'x-ai/grok-4-fast',
    'qwen/qwen-vl-max',
    'deepseek/deepseek-chat-v3.1',
    'meta-llama/llama-3.3-70b-instruct',
    'meta-llama/llama-4-maverick',
    'meta-llama/llama-4-scout',
    'qwen/qwen3-max',
    'google/gemma-3-27b-it',
    'openai/gpt-4.1',
    'meituan/longcat-flash-chat',
    'alibaba/tongyi-deepresearch-30b-a3b',
]

MIN_SCORE = 1
MAX_SCORE = 5


class ReviewerId:
    """
    Normalized reviewer identity.

    `key` is the sanitized form stored in lock fields and used as a ledger
    map key; dots are not allowed in those, so they become `_DOT_`.
    """

    DOT_TOKEN = '_DOT_'

    __slots__ = ('raw', 'key')

    def __init__(self, raw: str):
        raw = (raw or '').strip()
        if not raw:
            raise PreconditionError('Reviewer identity is required')
        self.raw = raw
        self.key = raw.replace('.', self.DOT_TOKEN)

    @classmethod
    def of(cls, value: Union[str, 'ReviewerId']) -> 'ReviewerId':
        if isinstance(value, ReviewerId):
            return value
        return cls(value)

    @property
    def display(self) -> str:
        return self.key.replace(self.DOT_TOKEN, '.')

    def __eq__(self, other):
        if isinstance(other, ReviewerId):
            return self.key == other.key
        return NotImplemented

    def __hash__(self):
        return hash(self.key)

    def __str__(self):
        return self.key

    def __repr__(self):
        return f"ReviewerId({self.raw!r})"


def new_prediction(model: str) -> Dict[str, Any]:
    """Fresh, unstarted scoring sub-task for one model."""
    return {
        'model': model,
        'prediction': None,
        'fetch': False,
        'evaluated_by': None,
        'evaluated_at': None,
        'semantic_score': None,
        'cultural_score': None,
    }


def fetch_started(prediction: Dict[str, Any]) -> bool:
    """True once a model call has been issued for this sub-task."""
    flag = prediction.get('fetch')
    # Older documents carry the flag as a string
    return flag is True or flag == 'true'


def prediction_started(prediction: Dict[str, Any]) -> bool:
    return prediction.get('prediction') is not None or fetch_started(prediction)


def is_evaluated(prediction: Dict[str, Any]) -> bool:
    return prediction.get('evaluated_by') is not None


def find_prediction(predictions: List[Dict[str, Any]], model_id: str) -> Optional[int]:
    """Index of the sub-task for `model_id`, or None."""
    for idx, prediction in enumerate(predictions):
        if prediction.get('model') == model_id:
            return idx
    return None
