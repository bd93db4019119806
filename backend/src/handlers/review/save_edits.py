"""
Save Edits Handler.
Stores annotation edits and returns the item to the pending pool.
"""
from shared.auth import require_reviewer
from shared.dynamo import DynamoDocumentStore
from shared.errors import WorkflowError, PreconditionError
from shared.logging import logger, log_event
from shared.review import ReviewWorkflow
from shared.utils import format_response, error_response, parse_body, get_path_param

workflow = ReviewWorkflow(DynamoDocumentStore())


def handler(event, context):
    """
    PUT /review/items/{itemId}
    Body: { "proverb": {...}, "annotations": {...}, ... }
    """
    log_event(event)

    try:
        reviewer = require_reviewer(event)
        item_id = get_path_param(event, 'itemId')
        if not item_id:
            raise PreconditionError('Missing itemId')

        result = workflow.save_edits(item_id, reviewer, parse_body(event))
        return format_response(200, {'item': result.item, 'ledgerUpdated': result.ledger_ok})

    except WorkflowError as e:
        logger.warning(f"Could not save edits: {e}")
        return error_response(e)
    except Exception as e:
        logger.error(f"Error saving edits: {e}")
        return format_response(500, {'message': 'Internal Server Error'})
