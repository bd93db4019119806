"""
Acquire Review Item Handler.
Hands the caller the next unclaimed corpus item, locked for them.
"""
from shared.auth import require_reviewer
from shared.dynamo import DynamoDocumentStore
from shared.errors import WorkflowError
from shared.logging import logger, log_event
from shared.review import ReviewWorkflow
from shared.utils import format_response, error_response

workflow = ReviewWorkflow(DynamoDocumentStore())


def handler(event, context):
    """
    POST /review/next
    """
    log_event(event)

    try:
        reviewer = require_reviewer(event)
        item = workflow.acquire(reviewer)
        return format_response(200, {'item': item})

    except WorkflowError as e:
        logger.warning(f"Could not acquire review item: {e}")
        return error_response(e)
    except Exception as e:
        logger.error(f"Error acquiring review item: {e}")
        return format_response(500, {'message': 'Internal Server Error'})
