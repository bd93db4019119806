"""
Fetch Prediction Handler.
Asks one model for its reading of the caller's locked evaluation item.
"""
from shared.auth import require_reviewer
from shared.dynamo import DynamoDocumentStore
from shared.errors import WorkflowError, PreconditionError
from shared.evaluation import EvaluationWorkflow
from shared.logging import logger, log_event
from shared.models import Collection
from shared.predictor import ChatCompletionPredictor
from shared.utils import format_response, error_response, parse_body, get_path_param

store = DynamoDocumentStore()
workflow = EvaluationWorkflow(store)
predictor = ChatCompletionPredictor()


def handler(event, context):
    """
    POST /evaluation/items/{itemId}/predict
    Body: { "model": "..." }
    """
    log_event(event)

    try:
        reviewer = require_reviewer(event)
        item_id = get_path_param(event, 'itemId')
        model_id = parse_body(event).get('model')

        if not item_id or not model_id:
            raise PreconditionError('Missing itemId or model')

        item = store.get_by_id(Collection.EVAL, item_id)
        item = workflow.fetch_prediction(item, model_id, reviewer, predictor)

        return format_response(200, {'item': item})

    except WorkflowError as e:
        logger.warning(f"Could not fetch prediction: {e}")
        return error_response(e)
    except Exception as e:
        logger.error(f"Error fetching prediction: {e}")
        return format_response(500, {'message': 'Internal Server Error'})
