"""
Manage Evaluation Queue Handler.
Lists unstarted evaluation items and keeps or removes them.
"""
from shared.auth import require_reviewer
from shared.dynamo import DynamoDocumentStore
from shared.errors import WorkflowError, PreconditionError
from shared.evaluation import EvaluationWorkflow
from shared.logging import logger, log_event
from shared.models import Collection
from shared.utils import format_response, error_response, get_path_param

store = DynamoDocumentStore()
workflow = EvaluationWorkflow(store)


def handler(event, context):
    """
    GET    /evaluation/queue
    POST   /evaluation/queue/{itemId}/keep
    DELETE /evaluation/queue/{itemId}
    """
    log_event(event)

    try:
        reviewer = require_reviewer(event)
        method = event.get('httpMethod', 'GET')

        if method == 'GET':
            items = workflow.list_curation_candidates()
            return format_response(200, {'items': items, 'total': len(items)})

        item_id = get_path_param(event, 'itemId')
        if not item_id:
            raise PreconditionError('Missing itemId')
        item = store.get_by_id(Collection.EVAL, item_id)

        if method == 'DELETE':
            return format_response(200, workflow.remove_from_queue(item, reviewer))
        if method == 'POST':
            return format_response(200, {'item': workflow.keep_in_queue(item, reviewer)})

        return format_response(405, {'message': f'Method {method} not allowed'})

    except WorkflowError as e:
        logger.warning(f"Could not update evaluation queue: {e}")
        return error_response(e)
    except Exception as e:
        logger.error(f"Error managing evaluation queue: {e}")
        return format_response(500, {'message': 'Internal Server Error'})
