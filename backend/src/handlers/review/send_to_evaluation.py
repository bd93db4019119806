"""
Send To Evaluation Handler.
Spawns an evaluation task from a corpus item.
"""
from shared.auth import require_reviewer
from shared.dynamo import DynamoDocumentStore
from shared.errors import WorkflowError, PreconditionError
from shared.logging import logger, log_event
from shared.models import Collection
from shared.review import ReviewWorkflow
from shared.utils import format_response, error_response, get_path_param

store = DynamoDocumentStore()
workflow = ReviewWorkflow(store)


def handler(event, context):
    """
    POST /review/items/{itemId}/evaluate
    """
    log_event(event)

    try:
        reviewer = require_reviewer(event)
        item_id = get_path_param(event, 'itemId')
        if not item_id:
            raise PreconditionError('Missing itemId')

        item = store.get_by_id(Collection.PROBAD, item_id)
        result = workflow.send_to_evaluation(item)
        logger.info(f"{reviewer.key} sent {item_id} to evaluation")

        return format_response(201, {'item': result.item, 'evalId': result.item['eval_id']})

    except WorkflowError as e:
        logger.warning(f"Could not send item to evaluation: {e}")
        return error_response(e)
    except Exception as e:
        logger.error(f"Error sending item to evaluation: {e}")
        return format_response(500, {'message': 'Internal Server Error'})
