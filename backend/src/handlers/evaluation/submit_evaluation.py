"""
Submit Evaluation Handler.
Scores the remaining predictions, completes the item and hands out the next one.
"""
from shared.auth import require_reviewer
from shared.dynamo import DynamoDocumentStore
from shared.errors import WorkflowError, PreconditionError
from shared.evaluation import EvaluationWorkflow
from shared.logging import logger, log_event
from shared.models import Collection
from shared.utils import format_response, error_response, parse_body, get_path_param

store = DynamoDocumentStore()
workflow = EvaluationWorkflow(store)


def handler(event, context):
    """
    POST /evaluation/items/{itemId}/submit
    Body: { "scores": { "<model>": { "semantic": 4, "cultural": 3 }, ... } }
    """
    log_event(event)

    try:
        reviewer = require_reviewer(event)
        item_id = get_path_param(event, 'itemId')
        if not item_id:
            raise PreconditionError('Missing itemId')

        item = store.get_by_id(Collection.EVAL, item_id)
        result = workflow.submit_all_evaluations(item, reviewer, parse_body(event).get('scores') or {})
        return format_response(200, result.to_dict())

    except WorkflowError as e:
        logger.warning(f"Could not submit evaluation: {e}")
        return error_response(e)
    except Exception as e:
        logger.error(f"Error submitting evaluation: {e}")
        return format_response(500, {'message': 'Internal Server Error'})
