"""
Get Analytics Handler.
Returns ledger counters for the review or evaluation flow.
"""
from shared.auth import require_reviewer
from shared.dynamo import DynamoDocumentStore
from shared.errors import WorkflowError
from shared.evaluation import EvaluationWorkflow
from shared.logging import logger, log_event
from shared.review import ReviewWorkflow
from shared.utils import format_response, error_response, get_query_param

store = DynamoDocumentStore()
review = ReviewWorkflow(store)
evaluation = EvaluationWorkflow(store)


def handler(event, context):
    """
    GET /analytics?flow=review|evaluation
    """
    log_event(event)

    try:
        require_reviewer(event)
        flow = get_query_param(event, 'flow', 'review')

        if flow == 'evaluation':
            return format_response(200, {
                'analytics': evaluation.analytics(),
                'stats': evaluation.evaluation_stats()
            })

        return format_response(200, {'analytics': review.analytics()})

    except WorkflowError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error fetching analytics: {e}")
        return format_response(500, {'message': 'Internal Server Error'})
