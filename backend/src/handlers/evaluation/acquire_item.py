"""
Acquire Evaluation Item Handler.
Returns the caller's unfinished evaluation item, or locks a new one.
"""
from shared.auth import require_reviewer
from shared.dynamo import DynamoDocumentStore
from shared.errors import WorkflowError
from shared.evaluation import EvaluationWorkflow
from shared.logging import logger, log_event
from shared.utils import format_response, error_response

workflow = EvaluationWorkflow(DynamoDocumentStore())


def handler(event, context):
    """
    POST /evaluation/next
    """
    log_event(event)

    try:
        reviewer = require_reviewer(event)
        item = workflow.acquire(reviewer)
        return format_response(200, {'item': item})

    except WorkflowError as e:
        logger.warning(f"Could not acquire evaluation item: {e}")
        return error_response(e)
    except Exception as e:
        logger.error(f"Error acquiring evaluation item: {e}")
        return format_response(500, {'message': 'Internal Server Error'})
