"""
Score Prediction Handler.
Saves (POST) or clears (DELETE) the caller's score for one model's prediction.
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
    POST   /evaluation/items/{itemId}/score  Body: { "model": "...", "semantic": 4, "cultural": 5 }
    DELETE /evaluation/items/{itemId}/score  Body: { "model": "..." }
    """
    log_event(event)

    try:
        reviewer = require_reviewer(event)
        item_id = get_path_param(event, 'itemId')
        body = parse_body(event)
        model_id = body.get('model')

        if not item_id or not model_id:
            raise PreconditionError('Missing itemId or model')

        item = store.get_by_id(Collection.EVAL, item_id)
        if event.get('httpMethod') == 'DELETE':
            item = workflow.undo_prediction_score(item, model_id, reviewer)
        else:
            item = workflow.save_prediction_score(item, model_id, reviewer, body)

        return format_response(200, {'item': item})

    except WorkflowError as e:
        logger.warning(f"Could not update prediction score: {e}")
        return error_response(e)
    except Exception as e:
        logger.error(f"Error updating prediction score: {e}")
        return format_response(500, {'message': 'Internal Server Error'})
