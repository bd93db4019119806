"""
Complete Review Item Handler.
Marks the caller's locked item done or problematic, then hands out the next one.
"""
from shared.auth import require_reviewer
from shared.dynamo import DynamoDocumentStore
from shared.errors import WorkflowError, PreconditionError
from shared.logging import logger, log_event
from shared.models import Collection, WorkStatus
from shared.review import ReviewWorkflow
from shared.utils import format_response, error_response, parse_body, get_path_param

store = DynamoDocumentStore()
workflow = ReviewWorkflow(store)


def handler(event, context):
    """
    POST /review/items/{itemId}/complete
    Body: { "outcome": "done" | "problematic" }
    """
    log_event(event)

    try:
        reviewer = require_reviewer(event)
        item_id = get_path_param(event, 'itemId')
        outcome = parse_body(event).get('outcome')

        if not item_id:
            raise PreconditionError('Missing itemId')
        if outcome not in (WorkStatus.DONE, WorkStatus.PROBLEMATIC):
            raise PreconditionError("outcome must be 'done' or 'problematic'")

        item = store.get_by_id(Collection.PROBAD, item_id)
        if outcome == WorkStatus.DONE:
            result = workflow.mark_done(item, reviewer)
        else:
            result = workflow.mark_problematic(item, reviewer)

        return format_response(200, result.to_dict())

    except WorkflowError as e:
        logger.warning(f"Could not complete review item: {e}")
        return error_response(e)
    except Exception as e:
        logger.error(f"Error completing review item: {e}")
        return format_response(500, {'message': 'Internal Server Error'})
